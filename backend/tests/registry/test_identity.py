from urllib.parse import unquote

import pytest

from shopworker.registry.identity import (
    build_callback_url,
    clean_job_path,
    job_paths_match,
    parse_job_from_callback_url,
    same_origin_and_path,
)


def test_clean_job_path_strips_location_prefix():
    assert clean_job_path("local/jobs/order/tag-skus") == "order/tag-skus"
    assert clean_job_path("core/jobs/webrequest-example") == "webrequest-example"
    assert clean_job_path("order/tag-skus") == "order/tag-skus"
    # 只去掉开头的前缀
    assert clean_job_path("order/local/jobs/x") == "order/local/jobs/x"


@pytest.mark.parametrize(
    "left,right",
    [
        ("order/tag-skus", "order/tag-skus"),
        ("order%2Ftag-skus", "order/tag-skus"),
        ("local/jobs/order/tag-skus", "order/tag-skus"),
        ("order/tag-skus", "core/jobs/order/tag-skus"),
    ],
)
def test_job_paths_match_equivalent_forms(left, right):
    assert job_paths_match(left, right)
    assert job_paths_match(right, left)


def test_job_paths_match_rejects_empty_and_different():
    assert not job_paths_match(None, "order/tag-skus")
    assert not job_paths_match("", "")
    assert not job_paths_match("order/tag-skus", "order/tag-sku")


def test_build_callback_url_uses_path_form():
    url = build_callback_url("https://worker.example.com", "local/jobs/product/tag-when-title-updated")
    assert url == "https://worker.example.com/product/tag-when-title-updated"

    # 原有 path 被替换，特殊字符会被编码
    assert build_callback_url("https://worker.example.com/old", "a b/c") == "https://worker.example.com/a%20b/c"


def test_build_callback_url_rejects_non_http_base():
    with pytest.raises(ValueError):
        build_callback_url("ftp://worker.example.com", "x")
    with pytest.raises(ValueError):
        build_callback_url("worker.example.com", "x")


def test_parse_job_from_callback_url_path_and_legacy_forms():
    assert parse_job_from_callback_url("https://w.example.com/order/tag-skus") == "order/tag-skus"
    assert parse_job_from_callback_url("https://w.example.com/?job=order/tag-skus") == "order/tag-skus"
    assert parse_job_from_callback_url("https://w.example.com/ignored?job=legacy/job") == "legacy/job"


@pytest.mark.parametrize("identity", [
    "order/tag-skus-when-created",
    "webrequest-example",
    "a b/c",
    "reports/50%-off",
    "local/jobs/product/tag-when-title-updated",
])
def test_callback_url_round_trip(identity):
    parsed = parse_job_from_callback_url(build_callback_url("https://worker.example.com", identity))

    assert unquote(parsed) == clean_job_path(identity)
    assert job_paths_match(parsed, identity)


@pytest.mark.parametrize("url", [None, "", "https://w.example.com/", "https://w.example.com", "not a url"])
def test_parse_job_from_callback_url_without_identity(url):
    assert parse_job_from_callback_url(url) is None


def test_same_origin_and_path():
    assert same_origin_and_path("https://W.example.com:443/a/b", "https://w.example.com/a/b")
    assert same_origin_and_path("https://w.example.com/a/b?job=x", "https://w.example.com/a/b")
    assert not same_origin_and_path("http://w.example.com/a/b", "https://w.example.com/a/b")
    assert not same_origin_and_path("https://w.example.com/a", "https://w.example.com/a/b")
    assert not same_origin_and_path(None, "https://w.example.com/a")
