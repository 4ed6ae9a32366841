"""Async HTTP client for outbound service-to-service calls.

Order notifications go to the communications service. They are best-effort:
callers use ``send_notification_safely`` after their transaction commits, and
a failure here is logged and never surfaces to the order or cart operation.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from libs.auth.dependencies import _service_role_jwt
from libs.common.config import get_settings
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Default timeout for internal calls (seconds).
_DEFAULT_TIMEOUT = 10.0


async def internal_request(
    *,
    service_url: str,
    method: str,
    path: str,
    calling_service: str,
    json: Any = None,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> httpx.Response:
    """Make an authenticated internal service-to-service HTTP call.

    Args:
        service_url: Base URL of the target service.
        method: HTTP method (GET, POST, DELETE, …).
        path: URL path on the target service.
        calling_service: Name of the calling service for the JWT "sub" claim.
        json: Optional JSON body.
        params: Optional query parameters.
        timeout: Request timeout in seconds.

    Raises:
        httpx.RequestError on connection failures.
    """
    url = f"{service_url}{path}"
    headers = {"Authorization": f"Bearer {_service_role_jwt(calling_service)}"}
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    headers["X-Caller-Service"] = calling_service

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(
            method,
            url,
            headers=headers,
            json=json,
            params=params,
        )
    return response


async def notify_user(
    user_id: str,
    *,
    title: str,
    body: str,
    data: Optional[dict] = None,
    calling_service: str = "marketplace",
) -> None:
    """Push an in-app/push notification to a user through the communications service.

    Raises on transport errors and non-2xx responses; use
    ``send_notification_safely`` from business code.
    """
    settings = get_settings()
    response = await internal_request(
        service_url=settings.COMMUNICATIONS_SERVICE_URL,
        method="POST",
        path="/internal/notifications",
        calling_service=calling_service,
        json={
            "user_id": user_id,
            "title": title,
            "body": body,
            "data": data or {},
        },
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
    response.raise_for_status()


async def send_notification_safely(
    user_id: str,
    *,
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> bool:
    """Best-effort wrapper around ``notify_user``. Returns True when delivered."""
    if not get_settings().NOTIFICATIONS_ENABLED:
        return False
    try:
        await notify_user(user_id, title=title, body=body, data=data)
        return True
    except Exception as e:
        logger.warning("Failed to notify user %s (%s): %s", user_id, title, e)
        return False
