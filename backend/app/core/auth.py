import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CurrentCustomer:
    id: str
    role: str
    email: Optional[str] = None
    # Forwarded to the marketplace backend as-is.
    access_token: str = ""


def _extract_role(payload: dict, allowed: list[str]) -> Optional[str]:
    # Role comes only from server-managed app_metadata, never user_metadata.
    app_meta = payload.get("app_metadata") or {}
    raw = app_meta.get("role")
    if raw is None:
        return None
    role = str(raw).strip().upper()
    if role not in allowed:
        return None
    return role


def _decode_options(settings):
    audience = (settings.auth_jwt_audience or "").strip()
    decode_kwargs = {}
    options = {}
    if audience:
        decode_kwargs["audience"] = audience
        options["verify_aud"] = True
    else:
        options["verify_aud"] = False
    return decode_kwargs, options


def _decode(token: str, settings) -> Optional[dict]:
    decode_kwargs, options = _decode_options(settings)
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=["HS256"],
            options=options,
            **decode_kwargs,
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("Token verification failed: %s", exc)
        return None


def get_current_customer(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> CurrentCustomer:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(401, "Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise HTTPException(500, "AUTH_JWT_SECRET is not configured")

    payload = _decode(token, settings)
    if payload is None:
        raise HTTPException(401, "Invalid token")

    customer_id = payload.get("sub")
    if not customer_id:
        raise HTTPException(401, "Invalid token")

    role = _extract_role(payload, settings.auth_allowed_roles)
    if not role:
        raise HTTPException(403, "Missing role")

    return CurrentCustomer(id=str(customer_id), role=role, email=payload.get("email"), access_token=token)


def require_roles(*roles: str):
    def _dependency(customer: CurrentCustomer = Depends(get_current_customer)) -> CurrentCustomer:
        if roles and customer.role not in roles:
            raise HTTPException(403, "Forbidden")
        return customer

    return _dependency
