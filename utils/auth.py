import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt


JWT_ALGORITHM = "HS256"


def _jwt_secret() -> str:
    return os.getenv("JWT_SECRET", "your_jwt_secret")


@dataclass(frozen=True)
class AuthResult:
    user_id: str
    payload: Dict[str, Any]


class AuthError(Exception):
    pass


def _parse_bearer_token(authorization_header: Optional[str]) -> str:
    if not authorization_header:
        raise AuthError("Missing Authorization header")
    parts = authorization_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError("Invalid Authorization header")
    return parts[1].strip()


def authenticate_bearer_token(authorization_header: Optional[str]) -> AuthResult:
    token = _parse_bearer_token(authorization_header)
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token") from exc

    # Identity-provider tokens carry "sub"; locally issued ones carry "user_id".
    raw_user_id = payload.get("sub", payload.get("user_id"))
    user_id = str(raw_user_id).strip() if raw_user_id is not None else ""
    if not user_id:
        raise AuthError("Invalid token payload")

    return AuthResult(user_id=user_id, payload=payload)
