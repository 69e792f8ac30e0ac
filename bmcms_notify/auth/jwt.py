"""JWT bearer token creation and validation."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from bmcms_notify.config import settings


def create_access_token(user_id: str) -> str:
    """Create an access token whose subject is the user id."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    """
    Decode and validate a JWT token.

    Returns the payload if valid, None if invalid or expired.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
        return payload
    except jwt.JWTError:
        return None
