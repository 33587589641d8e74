from typing import Any, Dict

import jwt
from fastapi import Header, HTTPException, status

from .secrets import get_secret


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def require_token(authorization: str | None = Header(None)) -> Dict[str, Any]:
    """Validate the caller's Bearer token.

    Tokens with three dot-separated segments are checked as HS256 JWTs signed
    with ``JWT_SECRET``; anything else must match one of the per-operator
    tokens in ``API_TOKENS``.
    """

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _forbidden()

    if token.count(".") == 2:
        secret = get_secret("JWT_SECRET")
        if not secret:
            raise _forbidden()
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.PyJWTError as exc:
            raise _forbidden() from exc

    operators: Dict[str, str] = get_secret("API_TOKENS", {}) or {}
    for operator, expected in operators.items():
        if token == expected:
            return {"sub": operator}
    raise _forbidden()
