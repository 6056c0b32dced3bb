"""
Job identity <-> webhook callback URL.

New subscriptions carry the identity as the URL path (``https://worker/<job>``);
old ones used ``?job=<job>``. Both are read, only the path form is written.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, quote, unquote, urlsplit, urlunsplit


_LOCATION_PREFIX = re.compile(r"^(local|core)/jobs/")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def clean_job_path(job_path: str) -> str:
    return _LOCATION_PREFIX.sub("", job_path)


def job_paths_match(path1: Optional[str], path2: Optional[str]) -> bool:
    """Raw, URL-decoded and prefix-stripped forms compared pairwise."""
    if not path1 or not path2:
        return False

    clean1 = clean_job_path(unquote(path1))
    clean2 = clean_job_path(unquote(path2))

    return path1 == path2 or clean1 == path2 or path1 == clean2 or clean1 == clean2


def build_callback_url(base_url: str, job_path: str) -> str:
    parts = urlsplit(base_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid worker URL: {base_url!r}")

    path = "/" + quote(clean_job_path(job_path), safe="/")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def parse_job_from_callback_url(callback_url: Optional[str]) -> Optional[str]:
    if not callback_url:
        return None
    try:
        parts = urlsplit(callback_url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None

    # 旧格式：?job=xxx
    job_param = parse_qs(parts.query).get("job")
    if job_param and job_param[0]:
        return job_param[0]

    pathname = parts.path.strip("/")
    return pathname or None


def _origin(url: str) -> tuple:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port or _DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def same_origin_and_path(url1: Optional[str], url2: Optional[str]) -> bool:
    if not url1 or not url2:
        return False
    try:
        return _origin(url1) == _origin(url2) and urlsplit(url1).path == urlsplit(url2).path
    except ValueError:
        return False
