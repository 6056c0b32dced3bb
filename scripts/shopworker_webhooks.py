#!/usr/bin/env python3
from __future__ import annotations
import sys
from shopworker.cli import main


'''
运维小脚本：在部署后 / 切环境时把 job 的 webhook 订阅对齐
    - worker url 从 --worker-url 或环境变量 WORKER_URL 读取
    - 用法：
    python scripts/shopworker_webhooks.py enable product/tag-when-title-updated \
        --worker-url "https://<your-public-domain>"
    python scripts/shopworker_webhooks.py status --include-core
'''
if __name__ == "__main__":
    sys.exit(main())
