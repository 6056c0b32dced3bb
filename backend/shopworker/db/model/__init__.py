
# 聚合导入所有模型，供 Alembic 发现

from .job_run import JobRun, RunStatus

__all__ = ["JobRun", "RunStatus"]
