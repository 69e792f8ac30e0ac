"""Authentication utilities for BMCMS notifications."""

from bmcms_notify.auth.jwt import create_access_token, decode_token
from bmcms_notify.auth.token_store import TokenStore

__all__ = [
    "create_access_token",
    "decode_token",
    "TokenStore",
]
