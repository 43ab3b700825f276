"""
stockline_services.identity -- actor resolution.

Responsibility:
    Turns an opaque session token into an ``Actor(user_id, role)``.  The
    credential exchange (password check, SSO) happens outside the engine;
    once it succeeds the caller registers the actor with ``login()`` and
    hands the returned token to every subsequent request.

Architecture position:
    Services layer.  ``IdentityResolver`` is the port the operation surface
    depends on; ``TokenRegistry`` is the in-process implementation.

Failure modes:
    - UnauthorizedError for an unknown, revoked or expired token.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable
from uuid import UUID

from stockline_kernel.domain.clock import Clock, SystemClock
from stockline_kernel.exceptions import UnauthorizedError
from stockline_kernel.logging_config import get_logger
from stockline_kernel.models.user import UserRole

logger = get_logger("services.identity")


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an engine operation."""

    user_id: UUID
    role: UserRole


@runtime_checkable
class IdentityResolver(Protocol):
    def resolve(self, token: str) -> Actor:
        ...


@dataclass(frozen=True)
class _Session:
    actor: Actor
    expires_at: datetime


class TokenRegistry:
    """Thread-safe token -> Actor map with a fixed TTL per login."""

    def __init__(self, clock: Clock | None = None, ttl_seconds: int = 8 * 60 * 60):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._sessions: dict[str, _Session] = {}
        self._lock = threading.Lock()

    def login(self, actor: Actor) -> str:
        token = secrets.token_urlsafe(32)
        expires_at = self._clock.now() + self._ttl
        with self._lock:
            self._sessions[token] = _Session(actor=actor, expires_at=expires_at)
        logger.info(
            "actor_logged_in",
            extra={
                "actor_id": str(actor.user_id),
                "role": actor.role.value,
                "expires_at": expires_at.isoformat(),
            },
        )
        return token

    def logout(self, token: str) -> None:
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("actor_logged_out", extra={"actor_id": str(session.actor.user_id)})

    def resolve(self, token: str) -> Actor:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                raise UnauthorizedError("Unknown or revoked token")
            if self._clock.now() >= session.expires_at:
                del self._sessions[token]
                logger.info(
                    "token_expired",
                    extra={"actor_id": str(session.actor.user_id)},
                )
                raise UnauthorizedError("Token expired")
            return session.actor

    def purge_expired(self) -> int:
        """Drop expired sessions; returns how many were removed."""
        now = self._clock.now()
        with self._lock:
            expired = [t for t, s in self._sessions.items() if now >= s.expires_at]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
