"""
EngineConfig schema.

Typed, frozen view of a configuration set.  YAML files are parsed into these
types by the loader; everything downstream (engine facade, services, tests)
reads only these dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///stockline.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    sqlite_busy_timeout: float = 30.0


# ---------------------------------------------------------------------------
# Document numbering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberingConfig:
    sales_order_prefix: str = "SO"
    purchase_order_prefix: str = "PO"
    width: int = 6


# ---------------------------------------------------------------------------
# Reporting windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReportingConfig:
    top_selling_window_days: int = 30
    top_selling_limit: int = 5
    movement_window_days: int = 7


# ---------------------------------------------------------------------------
# Change notification
# ---------------------------------------------------------------------------


NOTIFIER_KINDS = ("null", "logging", "memory", "queued")


@dataclass(frozen=True)
class NotifierConfig:
    """
    kind: null | logging | memory | queued.  The queue settings only apply to
    ``queued``.
    """

    kind: str = "logging"
    max_attempts: int = 3
    retry_delay_seconds: float = 0.5
    queue_size: int = 1000


# ---------------------------------------------------------------------------
# Identity / RBAC
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentityConfig:
    token_ttl_seconds: int = 8 * 60 * 60


@dataclass(frozen=True)
class RbacConfig:
    """Role name -> granted permission names."""

    role_permissions: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def permissions_for(self, role: str) -> frozenset[str]:
        return self.role_permissions.get(role, frozenset())


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """The complete, validated configuration for one engine instance."""

    config_id: str
    version: int
    database: DatabaseConfig
    numbering: NumberingConfig
    reporting: ReportingConfig
    notifier: NotifierConfig
    identity: IdentityConfig
    rbac: RbacConfig
    checksum: str = ""
