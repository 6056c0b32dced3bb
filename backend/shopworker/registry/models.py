from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple


WEBREQUEST_TRIGGER = "webrequest"
SCHEDULE_TRIGGER = "schedule"

# 内部 topic：webrequest（公开、无鉴权）/ shopworker webhook（共享密钥）
WEBREQUEST_TOPIC = "shopworker/webrequest"
INTERNAL_WEBHOOK_TOPIC = "shopworker/webhook"


@dataclass(frozen=True)
class TriggerDefinition:
    name: str
    webhook_topic: Optional[str] = None
    test_query: Optional[str] = None
    location: str = "core"

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any], *, location: str = "core") -> "TriggerDefinition":
        webhook = data.get("webhook") or {}
        test = data.get("test") or {}
        return cls(
            name=name,
            webhook_topic=webhook.get("topic") or None,
            test_query=test.get("query") or None,
            location=location,
        )


@dataclass(frozen=True)
class JobDefinition:
    """
    一个 job 目录下 config.json 的不可变视图。
      - path: 去掉 local/jobs、core/jobs 前缀后的 job identity
      - location: local | core
    """
    path: str
    location: str
    title: str
    trigger: Optional[str]
    shop: Optional[str] = None
    api_version: Optional[str] = None
    include_fields: Optional[Tuple[str, ...]] = None
    metafield_namespaces: Optional[Tuple[str, ...]] = None
    schedule: Optional[str] = None
    notify_on_failure: bool = False
    test: Mapping[str, Any] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def full_path(self) -> str:
        return f"{self.location}/jobs/{self.path}"

    @classmethod
    def from_dict(cls, path: str, location: str, data: Mapping[str, Any]) -> "JobDefinition":
        webhook = data.get("webhook") or {}
        include_fields = webhook.get("includeFields")
        namespaces = webhook.get("metafieldNamespaces")
        return cls(
            path=path,
            location=location,
            title=data.get("title") or "(missing title)",
            trigger=data.get("trigger") or None,
            shop=data.get("shop") or None,
            api_version=data.get("apiVersion") or None,
            include_fields=tuple(include_fields) if isinstance(include_fields, list) else None,
            metafield_namespaces=tuple(namespaces) if isinstance(namespaces, list) else None,
            schedule=data.get("schedule") or None,
            notify_on_failure=bool(data.get("notifyOnFailure", False)),
            test=copy.deepcopy(dict(data.get("test") or {})),
            raw=copy.deepcopy(dict(data)),
        )

    def to_config_dict(self) -> dict:
        """JSON-serializable snapshot handed to handlers and stored in run params."""
        config = copy.deepcopy(dict(self.raw))
        config["test"] = copy.deepcopy(dict(self.test))
        config["jobPath"] = self.path
        config["fullPath"] = self.full_path
        return config


JobHandler = Callable[[Any], Any]


@dataclass(frozen=True)
class RegisteredJob:
    definition: JobDefinition
    handler: JobHandler
    trigger: Optional[TriggerDefinition] = None
    trigger_error: Optional[str] = None

    @property
    def path(self) -> str:
        return self.definition.path

    @property
    def webhook_topic(self) -> Optional[str]:
        return self.trigger.webhook_topic if self.trigger else None

    @property
    def is_public(self) -> bool:
        # webrequest：无鉴权，允许 GET / CORS preflight
        return self.definition.trigger == WEBREQUEST_TRIGGER

    @property
    def is_schedule(self) -> bool:
        return self.definition.trigger == SCHEDULE_TRIGGER
