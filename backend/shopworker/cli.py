"""
运维命令行：webhook 订阅 status / enable / disable / delete-webhook / orphans

    python scripts/shopworker_webhooks.py status [--include-core]
    python scripts/shopworker_webhooks.py status product/tag-when-title-updated
    python scripts/shopworker_webhooks.py enable  product/tag-when-title-updated --worker-url https://worker.example.com [--force]
    python scripts/shopworker_webhooks.py disable product/tag-when-title-updated
    python scripts/shopworker_webhooks.py delete-webhook 1234567890 --job product/tag-when-title-updated
    python scripts/shopworker_webhooks.py orphans

退出码：0 成功 / 1 冲突或地址被拒 / 2 配置错误 / 3 Shopify API 错误
"""
from __future__ import annotations

import argparse, json, logging, sys
from typing import Any, Dict, List, Optional

from shopworker.core.config import settings
from shopworker.core.errors import ConfigError, RemoteAPIError
from shopworker.core.logging import configure_logging
from shopworker.registry.job_registry import get_registry
from shopworker.services.webhook_reconciler import WebhookReconciler
from shopworker.shops.shop_config import get_shop_directory


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_APPLIED = 1
EXIT_CONFIG_ERROR = 2
EXIT_API_ERROR = 3

_NOT_APPLIED_ACTIONS = {"conflict", "address_not_allowed"}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="shopworker-webhooks", description="Manage Shopify webhook subscriptions for shopworker jobs.")
    sub = ap.add_subparsers(dest="command", required=True)

    st = sub.add_parser("status", help="Show webhook status for one job or all jobs")
    st.add_argument("job", nargs="?", help="Job path, e.g. product/tag-when-title-updated")
    st.add_argument("--include-core", action="store_true", help="Include core jobs in the table")

    en = sub.add_parser("enable", help="Create the webhook subscription for a job")
    en.add_argument("job")
    en.add_argument("--worker-url", default=None, help="Public HTTPS base URL of the gateway (default: WORKER_URL)")
    en.add_argument("--force", action="store_true", help="Re-run even when nothing changed; never replaces existing subscriptions")

    dis = sub.add_parser("disable", help="Delete the webhook subscription(s) for a job")
    dis.add_argument("job")
    dis.add_argument("--worker-url", default=None)

    de = sub.add_parser("delete-webhook", help="Delete a webhook subscription by id")
    de.add_argument("webhook_id", help="Numeric id or gid://shopify/WebhookSubscription/<id>")
    de.add_argument("--job", default=None, help="Job whose shop owns the webhook (default shop otherwise)")

    sub.add_parser("orphans", help="List subscriptions pointing at jobs that no longer exist")
    return ap


def _print(result: Any) -> None:
    print(json.dumps(result, ensure_ascii=False, indent=2))


def _format_table(rows: List[Dict[str, Any]]) -> str:
    headers = ["JOB", "TOPIC", "STATUS", "WEBHOOK ID", "SHOP"]
    table = [[r["job"], str(r.get("topic")), r["status"], r.get("webhookId") or "-", r.get("shop") or "-"] for r in rows]
    widths = [max(len(h), *(len(row[i]) for row in table)) if table else len(h) for i, h in enumerate(headers)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths))]
    lines += ["  ".join(c.ljust(w) for c, w in zip(row, widths)) for row in table]
    return "\n".join(lines)


def run(args: argparse.Namespace, reconciler: WebhookReconciler) -> int:
    if args.command == "status":
        if args.job:
            _print(reconciler.job_status(args.job))
            return EXIT_OK
        report = reconciler.all_jobs_status(include_core=args.include_core)
        print(_format_table(report["jobs"]))
        for shop, orphans in report["orphans"].items():
            print(f"\nShop: {shop} has {len(orphans)} orphaned webhook(s):")
            for o in orphans:
                print(f"- ID: {o['shortId']}  topic={o['topic']}  url={o['callbackUrl']}")
        return EXIT_OK

    if args.command == "enable":
        result = reconciler.enable(args.job, args.worker_url, force=args.force)
    elif args.command == "disable":
        result = reconciler.disable(args.job, args.worker_url)
    elif args.command == "delete-webhook":
        result = reconciler.delete_by_id(args.webhook_id, job=args.job)
    else:
        result = {shop: [s.to_dict() for s in subs] for shop, subs in reconciler.find_orphaned_webhooks().items()}

    _print(result)
    return EXIT_NOT_APPLIED if result.get("action") in _NOT_APPLIED_ACTIONS else EXIT_OK


def main(argv: Optional[List[str]] = None, reconciler: Optional[WebhookReconciler] = None) -> int:
    configure_logging(settings.LOG_LEVEL)
    args = build_parser().parse_args(argv)

    try:
        reconciler = reconciler or WebhookReconciler(registry=get_registry(), shops=get_shop_directory())
        return run(args, reconciler)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except RemoteAPIError as e:
        print(f"ERROR: Shopify API: {e}", file=sys.stderr)
        return EXIT_API_ERROR


if __name__ == "__main__":
    sys.exit(main())
