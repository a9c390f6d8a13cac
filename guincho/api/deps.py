# FILE: guincho/api/deps.py

import logging
from typing import Optional

from fastapi import Request

from guincho.core.database import get_db
from guincho.core.errors import AdminUnauthorized
from guincho.services.admin_service import check_admin_password

logger = logging.getLogger("guincho.api")

__all__ = ["get_db", "require_admin_password", "request_hostname", "request_origin"]


def require_admin_password(admin_password: Optional[str]) -> None:
    if not check_admin_password(admin_password):
        masked = (admin_password or "")[:3] + "***"
        logger.warning("Admin password mismatch received=%s", masked)
        raise AdminUnauthorized()


def request_hostname(request: Request) -> str:
    # Behind the proxy the original host arrives in X-Forwarded-Host.
    forwarded = request.headers.get("x-forwarded-host")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("host") or (request.url.hostname or "")


def request_origin(request: Request) -> Optional[str]:
    return request.headers.get("origin")
