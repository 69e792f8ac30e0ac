"""
Tests for the REST client:
- bearer token handling
- error message extraction
- stream refusal
"""

import httpx
import pytest

from bmcms_notify.clients.http import ApiError, build_timeout, error_message

USER_ID = "user-1"


def _notification_json(notification_id: str, is_read: bool = False) -> dict:
    return {
        "id": notification_id,
        "title": "Crack report",
        "content": "A new crack was reported",
        "isRead": is_read,
        "createdAt": "2026-01-15T09:00:00Z",
    }


class TestAuthentication:
    """Bearer token comes from the token store on every request."""

    async def test_bearer_token_attached(self, mock_api, token_store):
        """Requests carry the stored token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": []})

        api = mock_api(handler)
        await api.get_notifications(USER_ID)

        assert seen[0].headers["Authorization"] == f"Bearer {token_store.get()}"
        assert seen[0].url.path == f"/notifications/user/{USER_ID}"

    async def test_token_is_read_per_request(self, mock_api, token_store):
        """A token change is picked up without rebuilding the client."""
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={"data": []})

        api = mock_api(handler)
        await api.get_notifications(USER_ID)
        token_store.clear()
        await api.get_notifications(USER_ID)

        assert seen[0] is not None
        assert seen[1] is None

    async def test_unauthenticated_request_rejected_by_server(
        self, notification_api, token_store
    ):
        """Without a token the server's 401 message is surfaced."""
        token_store.clear()

        with pytest.raises(ApiError) as exc_info:
            await notification_api.get_notifications(USER_ID)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Authorization header required"


class TestResponses:
    """Successful responses are parsed from the data envelope."""

    async def test_list_parsed(self, mock_api):
        """The data array becomes Notification models."""
        api = mock_api(
            lambda request: httpx.Response(
                200, json={"data": [_notification_json("a"), _notification_json("b", True)]}
            )
        )

        notifications = await api.get_notifications(USER_ID)

        assert [n.id for n in notifications] == ["a", "b"]
        assert notifications[1].is_read is True

    async def test_mark_as_read_sends_put(self, mock_api):
        """mark_notification_as_read issues PUT /notifications/read/{id}."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": _notification_json("a", True)})

        notification = await mock_api(handler).mark_notification_as_read("a")

        assert notification.is_read is True
        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/notifications/read/a"

    async def test_mark_all_sends_put(self, mock_api):
        """mark_all_as_read issues PUT /notifications/mark-all-read/{userId}."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": []})

        await mock_api(handler).mark_all_as_read(USER_ID)

        assert seen[0].method == "PUT"
        assert seen[0].url.path == f"/notifications/mark-all-read/{USER_ID}"

    async def test_unexpected_shape_raises_fallback(self, mock_api):
        """A 200 body that is not an envelope is reported as a failure."""
        api = mock_api(lambda request: httpx.Response(200, json={"items": []}))

        with pytest.raises(ApiError) as exc_info:
            await api.get_notifications(USER_ID)

        assert exc_info.value.message == "Failed to fetch notifications"


class TestErrors:
    """Failures become ApiError with a displayable message."""

    async def test_server_message_used(self, mock_api):
        """The body's message field is surfaced."""
        api = mock_api(
            lambda request: httpx.Response(
                404,
                json={
                    "message": "Notification 'x' not found",
                    "error": {"code": "NOT_FOUND", "message": "Notification 'x' not found"},
                },
            )
        )

        with pytest.raises(ApiError) as exc_info:
            await api.mark_notification_as_read("x")

        assert exc_info.value.message == "Notification 'x' not found"
        assert exc_info.value.status_code == 404

    async def test_fallback_when_body_is_not_json(self, mock_api):
        """A non-JSON error body falls back to the operation message."""
        api = mock_api(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(ApiError) as exc_info:
            await api.mark_all_as_read(USER_ID)

        assert exc_info.value.message == "Failed to mark all notifications as read"
        assert exc_info.value.status_code == 502

    async def test_transport_error_has_no_status(self, mock_api):
        """Network failures carry the fallback message and no status code."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ApiError) as exc_info:
            await mock_api(handler).get_notifications(USER_ID)

        assert exc_info.value.message == "Failed to fetch notifications"
        assert exc_info.value.status_code is None

    def test_error_message_reads_nested_detail(self):
        """A FastAPI style detail object is also understood."""
        response = httpx.Response(403, json={"detail": {"message": "Forbidden"}})

        assert error_message(response, "fallback") == "Forbidden"

    def test_error_message_ignores_empty_message(self):
        """An empty message falls back."""
        response = httpx.Response(500, json={"message": ""})

        assert error_message(response, "fallback") == "fallback"


class TestStream:
    """open_stream() refuses non-2xx responses."""

    async def test_refused_stream_raises(self, mock_api):
        """A 403 on the stream endpoint raises ApiError."""
        api = mock_api(
            lambda request: httpx.Response(403, json={"message": "Access denied"})
        )

        with pytest.raises(ApiError) as exc_info:
            async with api.open_stream(USER_ID):
                pass

        assert exc_info.value.status_code == 403

    async def test_stream_yields_message_events(self, mock_api):
        """An accepted stream yields parsed SSE events."""
        body = (
            ": connected\n\n"
            "id: a\nevent: message\n"
            'data: {"id": "a", "title": "t", "content": "c", '
            '"isRead": false, "createdAt": "2026-01-15T09:00:00Z"}\n\n'
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/notifications/stream/{USER_ID}"
            assert request.headers["Accept"] == "text/event-stream"
            return httpx.Response(
                200, text=body, headers={"Content-Type": "text/event-stream"}
            )

        async with mock_api(handler).open_stream(USER_ID) as events:
            received = [event async for event in events]

        assert [event.event for event in received] == ["message"]
        assert received[0].id == "a"

    def test_stream_timeout_has_no_read_limit(self, test_settings):
        """Streams keep the connect timeout but wait indefinitely for events."""
        timeout = build_timeout(test_settings, streaming=True)

        assert timeout.connect == test_settings.request_timeout_seconds
        assert timeout.read is None
        assert build_timeout(test_settings).read == test_settings.request_timeout_seconds
