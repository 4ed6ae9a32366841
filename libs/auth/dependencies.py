from datetime import timedelta
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import CUSTOMER_ROLE, SELLER_ROLE, SERVICE_ROLE, AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now

settings = get_settings()
security = HTTPBearer()


def _service_role_jwt(calling_service: str) -> str:
    """Short-lived (60s) service-role token for internal calls."""
    now = utc_now()
    payload = {
        "sub": calling_service,
        "role": SERVICE_ROLE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=60)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        # Role may arrive as a top-level claim or inside app_metadata
        app_metadata = payload.get("app_metadata") or {}
        if "role" in app_metadata:
            payload["role"] = app_metadata["role"]
        return AuthUser(**payload)

    except (JWTError, ValidationError):
        raise credentials_exception


def _require_role(role: str, label: str):
    async def dependency(
        current_user: Annotated[AuthUser, Depends(get_current_user)]
    ) -> AuthUser:
        if current_user.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{label} role required",
            )
        return current_user

    return dependency


require_customer = _require_role(CUSTOMER_ROLE, "Customer")
require_seller = _require_role(SELLER_ROLE, "Seller")
require_service_role = _require_role(SERVICE_ROLE, "Service")
