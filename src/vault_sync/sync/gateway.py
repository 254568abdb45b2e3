"""HTTP gateway translating queued mutations into remote API calls."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from vault_sync.core.identity import Identity, IdentityProvider, resolve_identity
from vault_sync.core.record import MutationEntry, Operation
from vault_sync.sync.errors import (
    RemoteRejected,
    TransportFailure,
    Unauthenticated,
    UnknownEntityType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityRoute:
    """Remote endpoints for one entity type.

    ``path`` serves ``PUT/DELETE {path}/{id}`` and, unless ``create_path``
    is set, ``POST {path}``.
    """

    path: str
    create_path: str | None = None

    def for_create(self) -> str:
        return self.create_path or self.path

    def for_item(self, record_id: int) -> str:
        return f"{self.path.rstrip('/')}/{record_id}"


DEFAULT_ROUTES: dict[str, EntityRoute] = {
    "users": EntityRoute("/users", create_path="/auth/signup"),
    "passwords": EntityRoute("/passwords"),
}


@dataclass(frozen=True)
class RemoteResult:
    """Successful remote response."""

    status_code: int
    data: dict[str, Any] | None = None


class RemoteGateway:
    """
    Performs exactly one network request per queued mutation.

    The gateway never retries; retry policy belongs to the sync engine.
    Every failure surfaces as a typed error carrying a readable message.

    Usage:
        async with RemoteGateway("https://api.example.com/api", identity) as gateway:
            await gateway.create_remote("passwords", {"title": "mail"})
    """

    def __init__(
        self,
        base_url: str,
        identity_provider: IdentityProvider,
        *,
        routes: dict[str, EntityRoute] | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            base_url: Base URL of the remote API (e.g., "https://host/api")
            identity_provider: Source of the signed-in identity
            routes: Entity type → endpoint mapping (defaults to users/passwords)
            timeout: Total timeout per request in seconds
        """
        self._base_url = base_url.rstrip("/")
        self._identity_provider = identity_provider
        self._routes = dict(DEFAULT_ROUTES if routes is None else routes)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def entity_types(self) -> frozenset[str]:
        return frozenset(self._routes)

    def supports(self, entity_type: str) -> bool:
        return entity_type in self._routes

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> RemoteGateway:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ========== Per-operation calls ==========

    async def create_remote(self, entity_type: str, payload: dict[str, Any] | None) -> RemoteResult:
        """POST /{entity}."""
        route = self._route(entity_type)
        return await self._request("POST", route.for_create(), json_data=payload or {})

    async def update_remote(
        self, entity_type: str, record_id: int, payload: dict[str, Any] | None
    ) -> RemoteResult:
        """PUT /{entity}/{id}."""
        route = self._route(entity_type)
        return await self._request("PUT", route.for_item(record_id), json_data=payload or {})

    async def delete_remote(self, entity_type: str, record_id: int) -> RemoteResult:
        """DELETE /{entity}/{id}."""
        route = self._route(entity_type)
        return await self._request("DELETE", route.for_item(record_id))

    async def dispatch(self, entry: MutationEntry) -> RemoteResult:
        """Send one queued mutation using the call matching its operation."""
        if entry.operation is Operation.CREATE:
            return await self.create_remote(entry.entity_type, entry.payload)
        if entry.operation is Operation.UPDATE:
            return await self.update_remote(entry.entity_type, entry.record_id, entry.payload)
        return await self.delete_remote(entry.entity_type, entry.record_id)

    # ========== Internals ==========

    def _route(self, entity_type: str) -> EntityRoute:
        route = self._routes.get(entity_type)
        if route is None:
            raise UnknownEntityType(entity_type)
        return route

    def _get_headers(self, identity: Identity) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if identity.token:
            headers["Authorization"] = f"Bearer {identity.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
    ) -> RemoteResult:
        """Make one HTTP request; no retries."""
        identity = await resolve_identity(self._identity_provider)
        if identity is None:
            raise Unauthenticated()

        if self._session is None:
            await self.connect()
        assert self._session is not None

        url = f"{self._base_url}{path}"
        try:
            async with self._session.request(
                method,
                url,
                json=json_data,
                headers=self._get_headers(identity),
            ) as response:
                if response.status >= 400:
                    message = await _error_message(response)
                    raise RemoteRejected(message, status_code=response.status)
                data = await _optional_json(response)
        except aiohttp.ClientError as e:
            raise TransportFailure(f"Connection error: {e}") from e
        except TimeoutError as e:
            raise TransportFailure(f"Request timed out: {method} {path}") from e

        logger.debug("%s %s -> %d", method, path, response.status)
        return RemoteResult(status_code=response.status, data=data)


async def _read_text(response: aiohttp.ClientResponse) -> str:
    """Body as text; undecodable bytes are replaced rather than raised."""
    body = await response.read()
    try:
        return body.decode(response.charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


async def _optional_json(response: aiohttp.ClientResponse) -> dict[str, Any] | None:
    """Decode a JSON object body if there is one."""
    text = await _read_text(response)
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else {"data": data}


async def _error_message(response: aiohttp.ClientResponse) -> str:
    """Pull the server-supplied message out of an error response."""
    fallback = f"Server returned {response.status}"
    try:
        text = await _read_text(response)
    except (aiohttp.ClientError, TimeoutError):
        return fallback
    if not text.strip():
        return fallback
    try:
        data = json.loads(text)
    except ValueError:
        return text.strip()[:200]
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
        if message:
            return str(message)
    return fallback
