"""Shared async HTTP client for the BMCMS REST API."""

from collections.abc import Generator
from typing import Any

import httpx

from bmcms_notify.auth.token_store import TokenStore
from bmcms_notify.config import Settings, settings as default_settings


class ApiError(Exception):
    """A REST call failed; ``message`` is suitable for display."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BearerTokenAuth(httpx.Auth):
    """Attach the stored token to every request, read fresh each time."""

    def __init__(self, token_store: TokenStore) -> None:
        self.token_store = token_store

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self.token_store.get()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


def build_timeout(config: Settings, *, streaming: bool = False) -> httpx.Timeout:
    """
    Timeout policy for REST calls.

    Streams keep the connect timeout but never time out between events.
    """
    if streaming:
        return httpx.Timeout(config.request_timeout_seconds, read=None)
    return httpx.Timeout(config.request_timeout_seconds)


def create_async_client(
    config: Settings | None = None,
    token_store: TokenStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient bound to the API base URL with bearer auth."""
    config = config or default_settings
    return httpx.AsyncClient(
        base_url=config.normalized_api_base_url,
        auth=BearerTokenAuth(token_store or TokenStore()),
        timeout=build_timeout(config),
        transport=transport,
        headers={"Accept": "application/json"},
    )


def error_message(response: httpx.Response, fallback: str) -> str:
    """Pick the server-provided ``message`` from an error body, else the fallback."""
    try:
        body: Any = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        message = body.get("message")
        if not message and isinstance(body.get("detail"), dict):
            message = body["detail"].get("message")
        if isinstance(message, str) and message:
            return message
    return fallback


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    fallback_message: str,
    **kwargs: Any,
) -> Any:
    """
    Send a request and return the decoded JSON body.

    Raises:
        ApiError: on transport failure, non-2xx status or an undecodable body
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise ApiError(fallback_message) from exc

    if not response.is_success:
        raise ApiError(error_message(response, fallback_message), response.status_code)

    try:
        return response.json()
    except ValueError as exc:
        raise ApiError(fallback_message, response.status_code) from exc
