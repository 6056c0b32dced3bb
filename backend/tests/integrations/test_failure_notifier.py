import pytest
import requests

from shopworker.core.errors import NotificationError
from shopworker.integrations.notify.failure_notifier import FailureNotifier
from shopworker.integrations.notify.resend_client import ResendClient


SHOP = {
    "shopify_domain": "yarra-test.myshopify.com",
    "resend_api_key": "re_test",
    "failure_notification_email": "ops@yarra.example.com",
}
JOB = {"title": "Tag product", "notifyOnFailure": True}


class FakeResend:
    sent = []

    def __init__(self, api_key):
        self.api_key = api_key

    def send(self, **kwargs):
        FakeResend.sent.append((self.api_key, kwargs))
        return {"id": "email-1"}


@pytest.fixture(autouse=True)
def _reset():
    FakeResend.sent = []


def _notify(notifier, job=JOB, shop=SHOP):
    try:
        raise RuntimeError("productUpdate failed")
    except RuntimeError as e:
        return notifier.notify(run_id="job-1-aaaaaaaaa", job_path="product/tag", job_config=job,
                               shop_config=shop, error=e)


def test_sends_email_with_job_and_error():
    assert _notify(FailureNotifier(FakeResend)) is True

    (api_key, email), = FakeResend.sent
    assert api_key == "re_test"
    assert email["to"] == "ops@yarra.example.com"
    assert email["subject"] == "[Shopworker] Job failed: Tag product"
    assert "job-1-aaaaaaaaa" in email["text"]
    assert "productUpdate failed" in email["text"]
    assert "Traceback" in email["text"]


@pytest.mark.parametrize("job,shop", [
    ({"title": "t"}, SHOP),
    ({"title": "t", "notifyOnFailure": False}, SHOP),
    (JOB, {"shopify_domain": "x", "resend_api_key": "re_test"}),
    (JOB, {"shopify_domain": "x", "failure_notification_email": "ops@x"}),
    (None, SHOP),
])
def test_skipped_unless_opted_in_and_configured(job, shop):
    assert _notify(FailureNotifier(FakeResend), job=job, shop=shop) is False
    assert FakeResend.sent == []


def test_delivery_errors_are_swallowed():
    class Failing(FakeResend):
        def send(self, **kwargs):
            raise NotificationError("Resend HTTP 422: invalid from")

    class Exploding(FakeResend):
        def send(self, **kwargs):
            raise KeyError("id")

    assert _notify(FailureNotifier(Failing)) is False
    assert _notify(FailureNotifier(Exploding)) is False


class FakeHTTPResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.text = str(body)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(str(self.status_code), response=self)

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.posts = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append((url, headers, json))
        return self.response


def test_resend_client_posts_email():
    session = FakeSession(FakeHTTPResponse(200, {"id": "abc"}))
    client = ResendClient("re_test", session=session, api_url="https://resend.test/emails", timeout=3)

    assert client.send(to="ops@x", subject="hi", text="body", sender="bot@x") == {"id": "abc"}

    url, headers, email = session.posts[0]
    assert url == "https://resend.test/emails"
    assert headers["Authorization"] == "Bearer re_test"
    assert email == {"from": "bot@x", "to": ["ops@x"], "subject": "hi", "text": "body"}


def test_resend_client_errors():
    with pytest.raises(NotificationError):
        ResendClient(None)
    client = ResendClient("re_test", session=FakeSession(FakeHTTPResponse(422, {"message": "bad"})))
    with pytest.raises(NotificationError, match="Resend HTTP 422"):
        client.send(to="ops@x", subject="hi", text="body")
    with pytest.raises(NotificationError):
        client.send(to="", subject="hi")
