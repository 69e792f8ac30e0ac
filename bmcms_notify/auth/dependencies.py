"""Authentication dependencies for FastAPI endpoints."""

from fastapi import Header, HTTPException, Query, status

from bmcms_notify.auth.jwt import decode_token


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "message": message,
            "error": {
                "code": "UNAUTHORIZED",
                "message": message,
            },
        },
    )


async def get_current_user_id(
    authorization: str | None = Header(default=None),
) -> str:
    """
    Validate the bearer token and return the user id it was issued for.

    Raises:
        HTTPException: 401 if the header is missing, malformed, invalid or expired
    """
    if not authorization:
        raise _unauthorized("Authorization header required")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid Authorization header format")

    payload = decode_token(token.strip())
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Token without subject")

    return str(user_id)


async def get_stream_user_id(
    authorization: str | None = Header(default=None),
    token: str | None = Query(default=None),
) -> str:
    """
    Authenticate an event-stream request.

    Browser EventSource cannot set headers, so ``?token=`` is accepted
    when no Authorization header is present.
    """
    if not authorization and token:
        authorization = f"Bearer {token}"
    return await get_current_user_id(authorization)


def ensure_same_user(current_user_id: str, user_id: str) -> None:
    """
    Reject access to another user's notifications.

    Raises:
        HTTPException: 403 if the ids differ
    """
    if current_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Forbidden",
                "error": {
                    "code": "FORBIDDEN",
                    "message": "Cannot access another user's notifications",
                },
            },
        )
