from datetime import datetime

import pytest

from shopworker.integrations.storage.checkpoint_store import InMemoryCheckpointStore
from shopworker.orchestration.job_dispatch.context import JobContext, load_secrets_from_env
from shopworker.orchestration.job_dispatch.steps import DurableStepRunner, PassThroughStepRunner


def test_durable_step_runs_once_per_run():
    store = InMemoryCheckpointStore()
    calls = []

    def fetch():
        calls.append(1)
        return {"fetched_at": datetime(2026, 10, 16, 8, 0)}

    first = DurableStepRunner(store, "job-1-aaaaaaaaa").run_step("fetch", fetch)
    again = DurableStepRunner(store, "job-1-aaaaaaaaa").run_step("fetch", fetch)
    other_run = DurableStepRunner(store, "job-2-aaaaaaaaa").run_step("fetch", fetch)

    assert first == again == other_run == {"fetched_at": "2026-10-16T08:00:00"}
    assert len(calls) == 2


def test_none_result_is_still_a_checkpoint():
    store = InMemoryCheckpointStore()
    calls = []
    runner = DurableStepRunner(store, "job-1-aaaaaaaaa")

    assert runner.run_step("noop", lambda: calls.append(1)) is None
    assert runner.run_step("noop", lambda: calls.append(1)) is None
    assert calls == [1]


def test_failed_step_is_not_recorded():
    store = InMemoryCheckpointStore()
    runner = DurableStepRunner(store, "job-1-aaaaaaaaa")

    def flaky():
        raise TimeoutError("slow")

    with pytest.raises(TimeoutError):
        runner.run_step("flaky", flaky)
    assert store.get("job-1-aaaaaaaaa", "flaky") is None
    assert runner.run_step("flaky", lambda: "ok") == "ok"


def test_step_name_required():
    with pytest.raises(ValueError):
        DurableStepRunner(InMemoryCheckpointStore(), "job-1").run_step("", lambda: 1)


def test_checkpoints_can_be_cleared():
    store = InMemoryCheckpointStore()
    store.put("job-1", "a", [1, 2])
    assert store.get("job-1", "a") == ([1, 2],)
    store.put("job-2", "a", "other run")

    DurableStepRunner(store, "job-1").clear()

    assert store.get("job-1", "a") is None
    assert store.get("job-2", "a") == ("other run",)


def test_pass_through_and_context_without_steps():
    runner = PassThroughStepRunner()
    assert runner.run_step("x", lambda: 5) == 5
    runner.clear()

    ctx = JobContext(shopify=None, payload={}, shop_config={}, job_config={})
    assert ctx.run_step("x", lambda: "direct") == "direct"


def test_load_secrets_from_env():
    env = {"SECRET_RESEND": "re_123", "SECRET_MAP": '{"a": [1, 2]}', "SECRET_N": "7", "HOME": "/root"}
    assert load_secrets_from_env(env) == {"RESEND": "re_123", "MAP": {"a": [1, 2]}, "N": 7}
