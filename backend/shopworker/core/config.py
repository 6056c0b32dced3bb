# 环境变量和配置
# pydantic‑settings 读取 .env = core/config.py

from typing import Optional, List
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 本机直接跑 uvicorn / celery worker 时，会读取 backend/.env
# 容器里直接走环境变量

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # ========= project config =========
    PROJECT_NAME: str = "Shopworker"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = Field("INFO", alias="LOG_LEVEL")


    # ========= 店铺配置（.shopworker.json 的内容） =========
    # 两种来源：
    #   - SHOPWORKER_CONFIG: 直接放 JSON 字符串（部署时作为 secret 注入）
    #   - SHOPWORKER_CONFIG_FILE: 本地文件路径
    # 格式支持单店铺平铺 {shopify_domain, shopify_token, ...} 或旧版 {"shops": [...]}
    SHOPWORKER_CONFIG: Optional[SecretStr] = Field(None, alias="SHOPWORKER_CONFIG")
    SHOPWORKER_CONFIG_FILE: Optional[str] = Field(".shopworker.json", alias="SHOPWORKER_CONFIG_FILE")
    DEFAULT_SHOP_DOMAIN: Optional[str] = Field(None, alias="DEFAULT_SHOP_DOMAIN")   # webrequest 用哪个店铺；为空则取第一个

    # webhook 回调的公网地址（enable/disable 时拼 callback url）
    WORKER_URL: Optional[str] = Field(None, alias="WORKER_URL")


    # ========= Job 目录 =========
    # core 目录随包发布（shopworker/jobs, shopworker/triggers）
    # local 目录放业务自定义 job，同名时 local 覆盖 core
    LOCAL_JOBS_ROOT: Optional[str] = Field("local", alias="LOCAL_JOBS_ROOT")


    # ========= Shopify API Config =========
    SHOPIFY_API_VERSION: str = Field("2025-04", alias="SHOPIFY_API_VERSION")
    SHOPIFY_HTTP_TIMEOUT: int = Field(30, ge=1, alias="SHOPIFY_HTTP_TIMEOUT")
    SHOPIFY_WEBHOOKS_PAGE_SIZE: int = Field(100, ge=1, le=250, alias="SHOPIFY_WEBHOOKS_PAGE_SIZE")


    # ========= 大 payload 转存 =========
    PAYLOAD_SIZE_THRESHOLD: int = Field(1024 * 1024, ge=1, alias="PAYLOAD_SIZE_THRESHOLD")   # 1 MiB
    PAYLOAD_KEY_PREFIX: str = Field("payloads", alias="PAYLOAD_KEY_PREFIX")


    # ========= Redis（blob store + step checkpoint） =========
    REDIS_URL: str = Field("redis://redis:6379/0", alias="REDIS_URL")
    BLOB_TTL_SEC: int = Field(7 * 24 * 3600, ge=60, alias="BLOB_TTL_SEC")          # 兜底过期，正常由 cleanup 删除
    CHECKPOINT_TTL_SEC: int = Field(7 * 24 * 3600, ge=60, alias="CHECKPOINT_TTL_SEC")


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "UTC"


    # ========= Database（run ledger） =========
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://shopworker:shopworker@db:5432/shopworker",
        alias="DATABASE_URL",
    )
    RUN_LEDGER_ENABLED: bool = Field(True, alias="RUN_LEDGER_ENABLED")


    # ========= 管理接口 / CORS =========
    ADMIN_API_TOKEN: Optional[SecretStr] = Field(None, alias="ADMIN_API_TOKEN")
    CORS_ALLOW_ORIGIN: str = Field("*", alias="CORS_ALLOW_ORIGIN")


    # ========= 定时任务 =========
    # 已部署的 cron 表达式（逗号分隔），status 命令据此判断 schedule job 是否启用
    SCHEDULE_CRONS: str = Field("", alias="SCHEDULE_CRONS")


    # ========= 失败通知（Resend） =========
    NOTIFY_FROM_EMAIL: str = Field("shopworker@notifications.local", alias="NOTIFY_FROM_EMAIL")
    RESEND_API_URL: str = Field("https://api.resend.com/emails", alias="RESEND_API_URL")
    RESEND_HTTP_TIMEOUT: int = Field(10, ge=1, alias="RESEND_HTTP_TIMEOUT")


    @property
    def active_crons(self) -> List[str]:
        return [c.strip() for c in self.SCHEDULE_CRONS.split(",") if c.strip()]


settings = Settings()  # 只从环境读取（含 .env）
