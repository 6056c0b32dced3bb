"""
静态 Job 注册表：进程启动时扫描一次 job 目录，之后只读。

  目录约定（core 随包发布，local 放业务自定义 job）：
    <root>/jobs/<job-path>/config.json   job 配置
    <root>/jobs/<job-path>/job.py        handler 入口，必须定义 process(context)
    <root>/triggers/<name>.json          trigger 配置

  同一个 job identity 同时存在于 local / core 时，local 覆盖 core。
"""
from __future__ import annotations

import functools, importlib.util, json, logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from shopworker.core.config import settings
from shopworker.core.errors import ConfigError
from shopworker.registry.identity import clean_job_path, job_paths_match
from shopworker.registry.models import JobDefinition, RegisteredJob, TriggerDefinition


logger = logging.getLogger(__name__)

CORE_ROOT = Path(__file__).resolve().parent.parent      # shopworker/jobs, shopworker/triggers

CONFIG_FILE = "config.json"
HANDLER_FILE = "job.py"


class JobRegistry:

    def __init__(
        self,
        jobs: Mapping[str, RegisteredJob],
        triggers: Mapping[str, TriggerDefinition],
        errors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._jobs = MappingProxyType(dict(jobs))
        self._triggers = MappingProxyType(dict(triggers))
        self.errors = MappingProxyType(dict(errors or {}))   # job path -> 加载失败原因

    # ---------- 构建 ----------
    @classmethod
    def build(cls, core_root: Optional[Path] = CORE_ROOT, local_root: Optional[Path] = None) -> "JobRegistry":
        roots = []
        if local_root is not None:
            roots.append(("local", Path(local_root)))
        if core_root is not None:
            roots.append(("core", Path(core_root)))

        # 1) triggers：先 core 后 local，local 覆盖
        triggers: Dict[str, TriggerDefinition] = {}
        for location, root in reversed(roots):
            triggers.update(_load_triggers(root / "triggers", location))

        # 2) jobs：先 local 后 core，已存在的 identity 跳过
        jobs: Dict[str, RegisteredJob] = {}
        errors: Dict[str, str] = {}
        for location, root in roots:
            for job_path, job_dir in _find_job_dirs(root / "jobs"):
                if job_path in jobs:
                    logger.info("registry.job_overridden job=%s by=%s", job_path, jobs[job_path].definition.location)
                    continue
                try:
                    jobs[job_path] = _load_job(job_path, job_dir, location, triggers)
                except ConfigError as e:
                    errors[f"{location}/jobs/{job_path}"] = str(e)
                    logger.error("registry.job_load_failed job=%s location=%s err=%s", job_path, location, e)

        logger.info("registry.built jobs=%s triggers=%s errors=%s", len(jobs), len(triggers), len(errors))
        return cls(jobs, triggers, errors)

    @classmethod
    def from_settings(cls) -> "JobRegistry":
        local_root = Path(settings.LOCAL_JOBS_ROOT) if settings.LOCAL_JOBS_ROOT else None
        if local_root is not None and not local_root.is_dir():
            local_root = None
        return cls.build(CORE_ROOT, local_root)

    # ---------- 查询 ----------
    def find(self, identity: Optional[str]) -> Optional[RegisteredJob]:
        if not identity:
            return None
        job = self._jobs.get(clean_job_path(identity))
        if job is not None:
            return job
        # URL 编码过 / 带前缀的 identity
        for path, candidate in self._jobs.items():
            if job_paths_match(identity, path):
                return candidate
        return None

    def resolve(self, identity: Optional[str]) -> RegisteredJob:
        job = self.find(identity)
        if job is None:
            raise ConfigError(f"Job config not found for: {identity}")
        return job

    def resolve_trigger(self, name: Optional[str]) -> TriggerDefinition:
        trigger = self._triggers.get(name or "")
        if trigger is None:
            raise ConfigError(f"Trigger '{name}' not found in local/triggers/ or core/triggers/")
        return trigger

    def identities(self) -> List[str]:
        return sorted(self._jobs)

    def jobs(self, *, include_core: bool = True) -> List[RegisteredJob]:
        return [
            job for _, job in sorted(self._jobs.items())
            if include_core or job.definition.location != "core"
        ]

    def __contains__(self, identity: str) -> bool:
        return self.find(identity) is not None

    def __len__(self) -> int:
        return len(self._jobs)


# 进程级单例：第一次调用时构建
@functools.lru_cache(maxsize=1)
def get_registry() -> JobRegistry:
    return JobRegistry.from_settings()


# ---------------- 内部：扫描 / 加载 ----------------

def _load_triggers(triggers_dir: Path, location: str) -> Dict[str, TriggerDefinition]:
    found: Dict[str, TriggerDefinition] = {}
    if not triggers_dir.is_dir():
        return found
    for path in sorted(triggers_dir.glob("*.json")):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("registry.trigger_parse_failed file=%s err=%s", path, e)
            continue
        found[path.stem] = TriggerDefinition.from_dict(path.stem, data, location=location)
    return found


def _find_job_dirs(jobs_dir: Path) -> Iterable[tuple]:
    """递归查找含 config.json 的目录；job 目录下面还可以再嵌套 job。"""
    if not jobs_dir.is_dir():
        return []
    found = []
    for config_path in sorted(jobs_dir.rglob(CONFIG_FILE)):
        job_dir = config_path.parent
        if job_dir == jobs_dir:
            continue
        found.append((job_dir.relative_to(jobs_dir).as_posix(), job_dir))
    return found


def _load_job(
    job_path: str,
    job_dir: Path,
    location: str,
    triggers: Mapping[str, TriggerDefinition],
) -> RegisteredJob:
    try:
        data = json.loads((job_dir / CONFIG_FILE).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Invalid job config for {job_path}: {e}") from e

    definition = JobDefinition.from_dict(job_path, location, data)
    handler = _load_handler(job_path, job_dir, location)

    trigger = None
    trigger_error = None
    if definition.trigger:
        trigger = triggers.get(definition.trigger)
        if trigger is None:
            trigger_error = f"Trigger '{definition.trigger}' not found in local/triggers/ or core/triggers/"

    return RegisteredJob(definition=definition, handler=handler, trigger=trigger, trigger_error=trigger_error)


def _load_handler(job_path: str, job_dir: Path, location: str):
    handler_file = job_dir / HANDLER_FILE
    if not handler_file.is_file():
        raise ConfigError(f"Job module not found for {job_path} in {location}/jobs")

    safe_name = job_path.replace("/", ".").replace("-", "_")
    module_name = f"shopworker_jobs.{location}.{safe_name}"
    spec = importlib.util.spec_from_file_location(module_name, handler_file)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Job module not loadable for {job_path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ConfigError(f"Job module for {job_path} failed to import: {e}") from e

    process = getattr(module, "process", None)
    if not callable(process):
        raise ConfigError(f"Job {job_path} does not export a process function")
    return process
