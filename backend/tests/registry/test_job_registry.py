import pytest

from shopworker.core.errors import ConfigError
from shopworker.registry.job_registry import JobRegistry


@pytest.fixture
def roots(tmp_path, write_trigger):
    core, local = tmp_path / "core", tmp_path / "local"
    write_trigger(core, "product-updated", {"webhook": {"topic": "products/update"}})
    write_trigger(core, "webrequest", {"webhook": {"topic": "shopworker/webrequest"}})
    return core, local


def test_local_job_overrides_core_job(roots, write_job):
    core, local = roots
    write_job(core, "product/retag", {"title": "core version", "trigger": "product-updated"})
    write_job(local, "product/retag", {"title": "local version", "trigger": "product-updated"})

    registry = JobRegistry.build(core, local)

    job = registry.resolve("product/retag")
    assert job.definition.location == "local"
    assert job.definition.title == "local version"
    assert job.webhook_topic == "products/update"
    assert len(registry) == 1


def test_local_trigger_overrides_core_trigger(roots, write_job, write_trigger):
    core, local = roots
    write_trigger(local, "product-updated", {"webhook": {"topic": "products/create"}})
    write_job(core, "product/retag", {"title": "t", "trigger": "product-updated"})

    registry = JobRegistry.build(core, local)

    assert registry.resolve("product/retag").webhook_topic == "products/create"
    assert registry.resolve_trigger("product-updated").location == "local"


def test_missing_trigger_is_recorded_on_the_job(roots, write_job):
    core, _ = roots
    write_job(core, "orphan/trigger", {"title": "t", "trigger": "does-not-exist"})

    job = JobRegistry.build(core, None).resolve("orphan/trigger")

    assert job.trigger is None
    assert "does-not-exist" in job.trigger_error


def test_broken_jobs_are_reported_not_registered(roots, write_job):
    core, local = roots
    write_job(local, "broken/syntax", {"title": "t", "trigger": "product-updated"}, source="def process(:\n")
    write_job(local, "broken/no-process", {"title": "t"}, source="VALUE = 1\n")
    write_job(local, "broken/no-module", {"title": "t"}, source=None)
    write_job(local, "works", {"title": "t", "trigger": "product-updated"})

    registry = JobRegistry.build(core, local)

    assert registry.identities() == ["works"]
    assert set(registry.errors) == {
        "local/jobs/broken/syntax",
        "local/jobs/broken/no-process",
        "local/jobs/broken/no-module",
    }
    assert "process" in registry.errors["local/jobs/broken/no-process"]


def test_invalid_config_json_is_reported(roots, write_job):
    core, _ = roots
    job_dir = write_job(core, "bad-json", {"title": "t"})
    (job_dir / "config.json").write_text("{nope", encoding="utf-8")

    registry = JobRegistry.build(core, None)

    assert "bad-json" not in registry
    assert "Invalid job config" in registry.errors["core/jobs/bad-json"]


def test_find_accepts_prefixed_and_encoded_identities(roots, write_job):
    core, _ = roots
    write_job(core, "product/retag", {"title": "t", "trigger": "product-updated"})
    registry = JobRegistry.build(core, None)

    assert registry.find("core/jobs/product/retag").path == "product/retag"
    assert registry.find("product%2Fretag").path == "product/retag"
    assert registry.find("/product/retag") is None
    assert registry.find("") is None


def test_resolve_unknown_job_raises_config_error(roots):
    registry = JobRegistry.build(roots[0], None)
    with pytest.raises(ConfigError, match="Job config not found for: nope"):
        registry.resolve("nope")
    with pytest.raises(ConfigError):
        registry.resolve_trigger("nope")


def test_job_kinds(roots, write_job):
    core, _ = roots
    write_job(core, "hook", {"title": "t", "trigger": "webrequest"})
    write_job(core, "async-product", {"title": "t", "trigger": "product-updated"})
    registry = JobRegistry.build(core, None)

    hook = registry.resolve("hook")
    assert hook.is_public and not hook.is_schedule

    product = registry.resolve("async-product")
    assert not product.is_public


def test_jobs_can_exclude_core(roots, write_job):
    core, local = roots
    write_job(core, "core-only", {"title": "t"})
    write_job(local, "local-only", {"title": "t"})
    registry = JobRegistry.build(core, local)

    assert [j.path for j in registry.jobs()] == ["core-only", "local-only"]
    assert [j.path for j in registry.jobs(include_core=False)] == ["local-only"]


def test_core_jobs_ship_with_the_package(core_registry):
    assert {"webrequest-example", "product/tag-when-title-updated",
            "order/tag-skus-when-created", "report/daily-order-count"} <= set(core_registry.identities())
    assert not core_registry.errors

    product = core_registry.resolve("product/tag-when-title-updated")
    assert product.webhook_topic == "products/update"
    assert product.definition.include_fields == ("id", "title", "tags", "updated_at")
    assert product.definition.to_config_dict()["test"] == {"limit": 1}

    assert core_registry.resolve("webrequest-example").is_public
    assert core_registry.resolve("report/daily-order-count").is_schedule
