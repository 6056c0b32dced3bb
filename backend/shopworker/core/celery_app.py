
# Celery = durable execution host
# 投递 / 重投 / worker 崩溃恢复都交给 Celery，本项目不自己实现重试

from celery import Celery
from kombu import Exchange, Queue
from shopworker.core.config import settings
from shopworker.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)


'''
初始化 Celery 应用/实例
   - Web(gateway): 只负责投递 run
   - Worker: 执行 JobDispatcher（每个 run 一个任务，run 内部串行）
'''
celery_app = Celery(
    "shopworker",
    broker=settings.CELERY_BROKER_URL,          # 队列位置 (Redis)
    backend=settings.CELERY_RESULT_BACKEND,     # 结果存储 (Redis)
    include=[
        "shopworker.orchestration.job_dispatch.job_dispatch_task",     # JobDispatcher 任务
    ],
)


'''
  通用 Celery 配置
'''
celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,                             # 内部还是存 UTC
    task_serializer="json",                      # run params 必须是 JSON 可序列化的
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    # === 容错 ===
    worker_prefetch_multiplier=1,    # 一个 worker 一次只取一个 run
    task_acks_late=True,             # 执行完再 ack：worker crash 后 run 会被重投，已完成的 step 由 checkpoint 跳过
    task_reject_on_worker_lost=True,
    broker_heartbeat=30,
    broker_pool_limit=10,
)


'''
队列拆分：
   - default: 其他杂项
   - jobs: JobDispatcher，job 里多是 Shopify / 第三方 I/O
'''
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("jobs", Exchange("jobs"), routing_key="jobs"),
)
celery_app.conf.task_default_queue = "default"

celery_app.conf.task_routes = {
    "shopworker.orchestration.job_dispatch.run_job_workflow": {"queue": "jobs"},
}
