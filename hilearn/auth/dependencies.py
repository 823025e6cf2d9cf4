import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hilearn.auth import jwt_handler
from hilearn.database import SessionLocal
from hilearn.models.user import User

security = HTTPBearer()


def resolve_user_from_token(token: str | None) -> User | None:
    """Return the user a raw access token belongs to, or None if it does not check out."""
    token = jwt_handler.strip_bearer_prefix(token)
    if not token:
        return None
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError:
        return None

    user_id = jwt_handler.user_id_from_payload(payload)
    if user_id is None:
        return None

    db = SessionLocal()
    try:
        return db.get(User, user_id)
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user_id = jwt_handler.user_id_from_payload(payload)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.get(User, user_id)
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_roles(*roles: str):
    allowed = {str(role.value if hasattr(role, "value") else role) for role in roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action.",
            )
        return current_user

    return dependency
