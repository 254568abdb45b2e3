"""Tests for RemoteGateway HTTP calls."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from vault_sync.core.identity import Identity, StaticIdentityProvider
from vault_sync.core.record import MutationEntry, Operation
from vault_sync.storage.memory_store import InMemoryStore
from vault_sync.sync.broadcaster import StatusBroadcaster
from vault_sync.sync.connectivity import ConnectivityMonitor
from vault_sync.sync.errors import (
    RemoteRejected,
    TransportFailure,
    Unauthenticated,
    UnknownEntityType,
)
from vault_sync.sync.gateway import EntityRoute, RemoteGateway
from vault_sync.sync.protocol import SyncStatus
from vault_sync.sync.sync_engine import SyncEngine

BASE_URL = "http://localhost:3000/api"


def _signed_in() -> StaticIdentityProvider:
    return StaticIdentityProvider(Identity(user_id="u-1", email="a@example.com", token="tok"))


def _mock_response(
    status: int = 200, text: str = "", *, body: bytes | None = None, charset: str | None = None
) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.charset = charset
    mock_response.read = AsyncMock(return_value=text.encode() if body is None else body)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=False)
    return mock_response


def _gateway_with(response: AsyncMock, **kwargs) -> tuple[RemoteGateway, AsyncMock]:
    gateway = RemoteGateway(BASE_URL, kwargs.pop("provider", _signed_in()), **kwargs)
    mock_session = AsyncMock()
    mock_session.request = MagicMock(return_value=response)
    gateway._session = mock_session
    return gateway, mock_session


class TestGatewayInit:
    """Tests for construction and routing."""

    def test_strips_trailing_slash(self) -> None:
        gateway = RemoteGateway(BASE_URL + "/", _signed_in())

        assert gateway.base_url == BASE_URL

    def test_default_routes(self) -> None:
        gateway = RemoteGateway(BASE_URL, _signed_in())

        assert gateway.entity_types == frozenset({"users", "passwords"})
        assert gateway.supports("passwords") is True
        assert gateway.supports("widget") is False

    def test_custom_routes_replace_defaults(self) -> None:
        gateway = RemoteGateway(BASE_URL, _signed_in(), routes={"notes": EntityRoute("/notes")})

        assert gateway.entity_types == frozenset({"notes"})

    def test_route_paths(self) -> None:
        route = EntityRoute("/users/", create_path="/auth/signup")

        assert route.for_create() == "/auth/signup"
        assert route.for_item(7) == "/users/7"
        assert EntityRoute("/passwords").for_create() == "/passwords"


class TestGatewaySession:
    """Tests for session lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_creates_session_once(self) -> None:
        gateway = RemoteGateway(BASE_URL, _signed_in())

        with patch("aiohttp.ClientSession") as mock_cls:
            await gateway.connect()
            await gateway.connect()

        mock_cls.assert_called_once()

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self) -> None:
        with patch("aiohttp.ClientSession") as mock_cls:
            mock_session = AsyncMock()
            mock_cls.return_value = mock_session

            async with RemoteGateway(BASE_URL, _signed_in()) as gateway:
                assert gateway._session is mock_session

            mock_session.close.assert_awaited_once()
            assert gateway._session is None

    @pytest.mark.asyncio
    async def test_request_auto_connects(self) -> None:
        response = _mock_response(201, '{"id": 5}')

        with patch("aiohttp.ClientSession") as mock_cls:
            mock_session = AsyncMock()
            mock_session.request = MagicMock(return_value=response)
            mock_cls.return_value = mock_session

            gateway = RemoteGateway(BASE_URL, _signed_in())
            result = await gateway.create_remote("passwords", {"title": "mail"})

        assert result.status_code == 201
        assert result.data == {"id": 5}


class TestGatewayRequests:
    """Tests for the per-operation calls."""

    @pytest.mark.asyncio
    async def test_create_posts_payload_with_bearer(self) -> None:
        gateway, session = _gateway_with(_mock_response(201, '{"id": 9}'))

        await gateway.create_remote("passwords", {"title": "mail"})

        session.request.assert_called_once_with(
            "POST",
            f"{BASE_URL}/passwords",
            json={"title": "mail"},
            headers={"Content-Type": "application/json", "Authorization": "Bearer tok"},
        )

    @pytest.mark.asyncio
    async def test_user_create_uses_signup_path(self) -> None:
        gateway, session = _gateway_with(_mock_response(201))

        await gateway.create_remote("users", {"email": "a@example.com"})

        assert session.request.call_args.args == ("POST", f"{BASE_URL}/auth/signup")

    @pytest.mark.asyncio
    async def test_update_puts_to_item_path(self) -> None:
        gateway, session = _gateway_with(_mock_response(200))

        await gateway.update_remote("passwords", 3, {"title": "new"})

        assert session.request.call_args.args == ("PUT", f"{BASE_URL}/passwords/3")
        assert session.request.call_args.kwargs["json"] == {"title": "new"}

    @pytest.mark.asyncio
    async def test_delete_has_no_body(self) -> None:
        gateway, session = _gateway_with(_mock_response(204))

        result = await gateway.delete_remote("passwords", 3)

        assert session.request.call_args.args == ("DELETE", f"{BASE_URL}/passwords/3")
        assert session.request.call_args.kwargs["json"] is None
        assert result.data is None

    @pytest.mark.asyncio
    async def test_no_token_omits_authorization(self) -> None:
        provider = StaticIdentityProvider(Identity(user_id="u-1"))
        gateway, session = _gateway_with(_mock_response(200), provider=provider)

        await gateway.delete_remote("passwords", 1)

        assert "Authorization" not in session.request.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_non_object_body_is_wrapped(self) -> None:
        gateway, _ = _gateway_with(_mock_response(200, "[1, 2]"))

        result = await gateway.update_remote("passwords", 1, {"title": "x"})

        assert result.data == {"data": [1, 2]}

    @pytest.mark.asyncio
    async def test_non_json_body_is_ignored(self) -> None:
        gateway, _ = _gateway_with(_mock_response(200, "OK"))

        result = await gateway.update_remote("passwords", 1, {"title": "x"})

        assert result.data is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("operation", "method", "path"),
        [
            (Operation.CREATE, "POST", "/passwords"),
            (Operation.UPDATE, "PUT", "/passwords/4"),
            (Operation.DELETE, "DELETE", "/passwords/4"),
        ],
    )
    async def test_dispatch_maps_operation(
        self, operation: Operation, method: str, path: str
    ) -> None:
        gateway, session = _gateway_with(_mock_response(200))
        entry = MutationEntry(
            id=1, entity_type="passwords", record_id=4, operation=operation, payload={"title": "t"}
        )

        await gateway.dispatch(entry)

        assert session.request.call_args.args == (method, f"{BASE_URL}{path}")


class TestGatewayErrors:
    """Every failure surfaces as a typed error."""

    @pytest.mark.asyncio
    async def test_unknown_entity_type(self) -> None:
        gateway, session = _gateway_with(_mock_response(200))

        with pytest.raises(UnknownEntityType, match="widget"):
            await gateway.create_remote("widget", {})

        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_unauthenticated_before_network(self) -> None:
        gateway, session = _gateway_with(_mock_response(200), provider=StaticIdentityProvider())

        with pytest.raises(Unauthenticated):
            await gateway.create_remote("passwords", {"title": "x"})

        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_is_unauthenticated(self) -> None:
        provider = AsyncMock()
        provider.is_authenticated = AsyncMock(side_effect=RuntimeError("keychain locked"))
        gateway, session = _gateway_with(_mock_response(200), provider=provider)

        with pytest.raises(Unauthenticated):
            await gateway.delete_remote("passwords", 1)

        session.request.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "body", "message"),
        [
            (400, '{"message": "Title is required"}', "Title is required"),
            (409, '{"error": "Email already registered"}', "Email already registered"),
            (500, "Internal Server Error", "Internal Server Error"),
            (502, "", "Server returned 502"),
            (404, '{"detail": "nope"}', "Server returned 404"),
        ],
    )
    async def test_error_status_raises_rejected(self, status: int, body: str, message: str) -> None:
        gateway, _ = _gateway_with(_mock_response(status, body))

        with pytest.raises(RemoteRejected) as exc_info:
            await gateway.update_remote("passwords", 1, {"title": "x"})

        assert str(exc_info.value) == message
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_long_text_error_truncated(self) -> None:
        gateway, _ = _gateway_with(_mock_response(500, "x" * 1000))

        with pytest.raises(RemoteRejected) as exc_info:
            await gateway.delete_remote("passwords", 1)

        assert len(str(exc_info.value)) == 200

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self) -> None:
        gateway = RemoteGateway(BASE_URL, _signed_in())
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=aiohttp.ClientError("refused"))
        gateway._session = mock_session

        with pytest.raises(TransportFailure, match="Connection error: refused"):
            await gateway.create_remote("passwords", {"title": "x"})

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self) -> None:
        gateway = RemoteGateway(BASE_URL, _signed_in())
        mock_session = AsyncMock()
        mock_session.request = MagicMock(side_effect=TimeoutError())
        gateway._session = mock_session

        with pytest.raises(TransportFailure, match="Request timed out: DELETE /passwords/2"):
            await gateway.delete_remote("passwords", 2)


class TestUndecodableBodies:
    """Bodies that are not valid UTF-8 never escape as decode errors."""

    @pytest.mark.asyncio
    async def test_error_page_in_latin1(self) -> None:
        response = _mock_response(500, body=b"<h1>Erreur \xe9</h1>")
        gateway, _ = _gateway_with(response)

        with pytest.raises(RemoteRejected) as exc_info:
            await gateway.update_remote("passwords", 1, {"title": "x"})

        assert exc_info.value.status_code == 500
        assert str(exc_info.value).startswith("<h1>Erreur ")

    @pytest.mark.asyncio
    async def test_declared_charset_is_used(self) -> None:
        response = _mock_response(400, body=b"Titre invalide \xe9", charset="latin-1")
        gateway, _ = _gateway_with(response)

        with pytest.raises(RemoteRejected, match="Titre invalide é"):
            await gateway.update_remote("passwords", 1, {"title": "x"})

    @pytest.mark.asyncio
    async def test_unknown_charset_falls_back(self) -> None:
        response = _mock_response(502, body=b"bad gateway", charset="x-no-such-codec")
        gateway, _ = _gateway_with(response)

        with pytest.raises(RemoteRejected, match="bad gateway"):
            await gateway.delete_remote("passwords", 1)

    @pytest.mark.asyncio
    async def test_success_with_undecodable_body_is_still_success(self) -> None:
        gateway, _ = _gateway_with(_mock_response(201, body=b"\xff\xfe created"))

        result = await gateway.create_remote("passwords", {"title": "x"})

        assert result.status_code == 201
        assert result.data is None

    @pytest.mark.asyncio
    async def test_drain_cycle_records_each_failure(self) -> None:
        store = InMemoryStore()
        broadcaster = StatusBroadcaster()
        monitor = ConnectivityMonitor(broadcaster)
        monitor._online = True
        provider = _signed_in()
        gateway, session = _gateway_with(
            _mock_response(500, body=b"<h1>Erreur \xe9</h1>"),
            provider=provider,
            routes={"widget": EntityRoute("/widgets")},
        )
        engine = SyncEngine(store, gateway, monitor, broadcaster, provider)
        await store.write("widget", Operation.CREATE, {"n": 1})
        await store.write("widget", Operation.CREATE, {"n": 2})

        result = await engine.perform_sync()

        assert result.status is SyncStatus.COMPLETED
        assert (result.synced_count, result.failed_count) == (0, 2)
        assert session.request.call_count == 2
        queue = await store.drain_queue_snapshot()
        assert [e.attempts for e in queue] == [1, 1]
        assert all("Erreur" in (e.last_error or "") for e in queue)
