"""Runtime guards for the development identity shortcut."""

import os
from typing import Optional, Set
from urllib.parse import urlparse

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}

DEV_USER_EMAIL = "dev@localhost"
DEV_USER_NAME = "Development User"


def _hostname(url_value: str) -> Optional[str]:
    url_value = (url_value or "").strip()
    if not url_value:
        return None
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def _allowed_dev_hosts() -> Set[str]:
    allowed = set(_LOCAL_HOSTS)
    extra = os.getenv("DEV_MODE_ALLOWED_HOSTS", "")
    allowed.update(host.strip().lower() for host in extra.split(",") if host.strip())
    return allowed


def dev_mode_requested() -> bool:
    return os.getenv("DEV_MODE", "false").lower() == "true"


def dev_mode_active() -> bool:
    """Return True when DEV_MODE is on and permitted for APP_BASE_URL.

    Raises RuntimeError when DEV_MODE is requested for a non-local base URL so a
    misconfigured deployment never signs everyone in as the dev user.
    """
    if not dev_mode_requested():
        return False
    hostname = _hostname(os.getenv("APP_BASE_URL", ""))
    if hostname and hostname.lower() not in _allowed_dev_hosts():
        raise RuntimeError(
            "DEV_MODE=true is not permitted when APP_BASE_URL points to "
            f"'{hostname}'. Allowed hosts: {sorted(_allowed_dev_hosts())}"
        )
    return True
