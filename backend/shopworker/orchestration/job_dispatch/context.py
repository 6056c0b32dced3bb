from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from shopworker.orchestration.job_dispatch.steps import StepRunner
from shopworker.utils.serialization import maybe_json


SECRET_PREFIX = "SECRET_"


def load_secrets_from_env(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """SECRET_FOO=... -> {"FOO": ...}; values are JSON-decoded when they parse."""
    env = os.environ if env is None else env
    return {
        key[len(SECRET_PREFIX):]: maybe_json(value)
        for key, value in env.items()
        if key.startswith(SECRET_PREFIX)
    }


@dataclass
class JobContext:
    """Everything a job's process(context) gets. `step` is None for synchronous jobs."""

    shopify: Any
    payload: Any
    shop_config: Dict[str, Any]
    job_config: Dict[str, Any]
    env: Mapping[str, str] = field(default_factory=dict)
    secrets: Dict[str, Any] = field(default_factory=dict)
    step: Optional[StepRunner] = None

    def run_step(self, name: str, fn):
        # 同步 job 没有 step：直接执行
        if self.step is None:
            return fn()
        return self.step.run_step(name, fn)
