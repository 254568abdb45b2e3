"""Authenticated-identity boundary consumed by the remote gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The signed-in user as seen by the sync layer."""

    user_id: str
    email: str | None = None
    token: str | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the currently authenticated identity.

    Implementations may raise; callers treat any failure as
    "not authenticated".
    """

    async def is_authenticated(self) -> bool: ...

    async def current_identity(self) -> Identity | None: ...


class StaticIdentityProvider:
    """Identity provider backed by a fixed identity (config, tests)."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None

    async def is_authenticated(self) -> bool:
        return self._identity is not None

    async def current_identity(self) -> Identity | None:
        return self._identity


async def resolve_identity(provider: IdentityProvider) -> Identity | None:
    """Ask the provider for the current identity; any failure means none."""
    try:
        if not await provider.is_authenticated():
            return None
        return await provider.current_identity()
    except Exception:
        logger.debug("Identity provider failed, treating as signed out", exc_info=True)
        return None
