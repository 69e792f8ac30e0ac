"""HTTP clients for the BMCMS REST API."""

from bmcms_notify.clients.http import ApiError, BearerTokenAuth, create_async_client
from bmcms_notify.clients.notifications import NotificationApi

__all__ = ["ApiError", "BearerTokenAuth", "create_async_client", "NotificationApi"]
