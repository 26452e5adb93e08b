"""
Admin API security

IP allowlist for /api/admin/* and path-parameter validation.

The client address is the direct peer of the connection. Forwarding
headers (X-Forwarded-For, X-Real-IP) are read only when that peer is a
trusted proxy listed in ADMIN_TRUSTED_PROXIES; from anyone else they are
ignored.
"""

import logging
import os
import re
from typing import List, Optional
from fastapi import Request, HTTPException, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


LOOPBACK_ADDRESSES = {"127.0.0.1", "::1", "::ffff:127.0.0.1", "localhost"}

ID_PATTERN = re.compile(r'^[a-zA-Z0-9_\-]+$')


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


def get_allowed_ips() -> List[str]:
    """
    IPs allowed to call the admin API, besides loopback

    Read from ADMIN_ALLOWED_IPS (comma separated); "*" allows everyone.
    """
    return _env_list("ADMIN_ALLOWED_IPS")


def get_trusted_proxies() -> List[str]:
    """Peers whose forwarding headers are believed (ADMIN_TRUSTED_PROXIES)"""
    return _env_list("ADMIN_TRUSTED_PROXIES")


def validate_id_path(id_value: str, id_name: str = "ID") -> str:
    """
    Reject path parameters that are not plain ids

    Raises:
        HTTPException: 400 for empty values or characters outside [a-zA-Z0-9_-]
    """
    if not id_value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{id_name} must not be empty"
        )

    if not ID_PATTERN.match(id_value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {id_name}: only letters, digits, underscore and hyphen are allowed"
        )

    return id_value


def get_client_ip(request: Request, trusted_proxies: Optional[List[str]] = None) -> str:
    """
    Address the admin allowlist is checked against

    Args:
        request: incoming request
        trusted_proxies: proxy addresses; defaults to ADMIN_TRUSTED_PROXIES

    Returns:
        The direct peer, or when the peer is a trusted proxy the nearest
        untrusted hop of X-Forwarded-For (then X-Real-IP)
    """
    if trusted_proxies is None:
        trusted_proxies = get_trusted_proxies()

    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # walk from the right; entries left of the first untrusted hop are client-supplied
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted_proxies:
                return hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return peer


class AdminIPWhitelistMiddleware(BaseHTTPMiddleware):
    """
    Only allowlisted IPs may reach /api/admin/*; other routes pass through

    Environment variables (read per request):
        ADMIN_ALLOWED_IPS: comma separated allowlist; loopback is always allowed
        ADMIN_TRUSTED_PROXIES: comma separated reverse proxy addresses
    """

    def __init__(self, app, admin_prefix: str = "/api/admin"):
        super().__init__(app)
        self.admin_prefix = admin_prefix

    @staticmethod
    def is_allowed(client_ip: str, allowed_ips: List[str]) -> bool:
        if "*" in allowed_ips or client_ip in allowed_ips:
            return True
        return client_ip.lower() in LOOPBACK_ADDRESSES

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.admin_prefix):
            return await call_next(request)

        client_ip = get_client_ip(request)
        if not self.is_allowed(client_ip, get_allowed_ips()):
            logger.warning(f"Admin access denied: {client_ip} {request.method} {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={
                    "detail": "Access denied: IP not in allowlist",
                    "client_ip": client_ip
                }
            )

        return await call_next(request)
