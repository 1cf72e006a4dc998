import time
from typing import Optional

from fastapi import Depends, Header, HTTPException
from itsdangerous import BadData, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from config import get_settings

ADMIN_ROLE = "ADMIN"


class InvalidToken(Exception):
    pass


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="access-token")


def hash_password(password: str) -> str:
    return generate_password_hash(password, method=get_settings().password_method)


def check_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def issue_token(user, max_age_hours: Optional[int] = None) -> str:
    """Sign the user's id, email and role into a time-limited bearer token."""
    if max_age_hours is None:
        max_age_hours = get_settings().token_ttl_hours
    timestamp = int(time.time())
    token_data = {
        "userId": user.id,
        "email": user.email,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
        "iat": timestamp,
        "exp": timestamp + (max_age_hours * 3600),
    }
    return _serializer().dumps(token_data)


def decode_token(token: str, max_age_hours: Optional[int] = None) -> dict:
    if max_age_hours is None:
        max_age_hours = get_settings().token_ttl_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadData as exc:
        raise InvalidToken(str(exc)) from exc

    if not isinstance(data, dict) or "userId" not in data:
        raise InvalidToken("Malformed token payload")
    if int(time.time()) > data.get("exp", 0):
        raise InvalidToken("Token expired")
    return data


def _strip_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        return ""
    value = authorization.strip()
    if value[:6].lower() == "bearer":
        value = value[6:]
    return value.strip()


def verify_token(authorization: Optional[str] = Header(default=None)) -> dict:
    token = _strip_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized: Missing token")
    try:
        return decode_token(token)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=401, detail="Unauthorized: Invalid token"
        ) from exc


def require_admin(claims: dict = Depends(verify_token)) -> dict:
    if claims.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Forbidden: Admin access required")
    return claims
