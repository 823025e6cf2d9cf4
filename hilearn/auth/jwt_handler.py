from datetime import datetime, timedelta, timezone

import jwt

from hilearn.core import config

BEARER_SCHEME = "bearer"


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def strip_bearer_prefix(token: str | None) -> str | None:
    if not token:
        return None
    parts = token.split()
    if parts and parts[0].lower() == BEARER_SCHEME:
        parts = parts[1:]
    if len(parts) != 1:
        return None
    return parts[0]


def user_id_from_payload(payload: dict) -> int | None:
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
