from __future__ import annotations

from typing import Any

from fastapi import Depends, Header

from api.dependencies import get_jwt_manager
from api.errors import ApiError
from shared.security import JWTManager


def validate_bearer_token(authorization: str | None, jwt: JWTManager) -> dict[str, Any]:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise ApiError("UNAUTHORIZED", "Missing bearer token", 401)
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token)
    except ValueError as exc:
        raise ApiError("UNAUTHORIZED", str(exc), 401) from exc
    if payload.typ != "access":
        raise ApiError("UNAUTHORIZED", "Access token required", 401)
    if not payload.sub:
        raise ApiError("UNAUTHORIZED", "Token has no subject", 401)
    return {"user_id": payload.sub, "jti": payload.jti}


async def require_authenticated(
    authorization: str | None = Header(default=None),
    jwt: JWTManager = Depends(get_jwt_manager),
) -> dict[str, Any]:
    return validate_bearer_token(authorization, jwt)
