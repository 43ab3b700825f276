"""
Configuration Loader (``stockline_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``stockline_config.schema``.  The single public entry point for runtime
configuration is ``stockline_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Bad values raise ``ValueError`` naming the offending key; missing
  optional sections fall back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from stockline_config.schema import (
    NOTIFIER_KINDS,
    DatabaseConfig,
    EngineConfig,
    IdentityConfig,
    NotifierConfig,
    NumberingConfig,
    RbacConfig,
    ReportingConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=_positive_int(data, "pool_size", defaults.pool_size),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        sqlite_busy_timeout=float(data.get("sqlite_busy_timeout", defaults.sqlite_busy_timeout)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    defaults = NumberingConfig()
    so_prefix = str(data.get("sales_order_prefix", defaults.sales_order_prefix))
    po_prefix = str(data.get("purchase_order_prefix", defaults.purchase_order_prefix))
    if not so_prefix or not po_prefix:
        raise ValueError("numbering prefixes must be non-empty")
    if so_prefix == po_prefix:
        raise ValueError("sales and purchase order prefixes must differ")
    return NumberingConfig(
        sales_order_prefix=so_prefix,
        purchase_order_prefix=po_prefix,
        width=_positive_int(data, "width", defaults.width),
    )


def parse_reporting(data: dict[str, Any]) -> ReportingConfig:
    defaults = ReportingConfig()
    return ReportingConfig(
        top_selling_window_days=_positive_int(
            data, "top_selling_window_days", defaults.top_selling_window_days
        ),
        top_selling_limit=_positive_int(data, "top_selling_limit", defaults.top_selling_limit),
        movement_window_days=_positive_int(
            data, "movement_window_days", defaults.movement_window_days
        ),
    )


def parse_notifier(data: dict[str, Any]) -> NotifierConfig:
    defaults = NotifierConfig()
    kind = data.get("kind", defaults.kind)
    if kind not in NOTIFIER_KINDS:
        raise ValueError(f"notifier.kind must be one of {NOTIFIER_KINDS}, got {kind!r}")
    retry_delay = float(data.get("retry_delay_seconds", defaults.retry_delay_seconds))
    if retry_delay < 0:
        raise ValueError("notifier.retry_delay_seconds must be >= 0")
    return NotifierConfig(
        kind=kind,
        max_attempts=_positive_int(data, "max_attempts", defaults.max_attempts),
        retry_delay_seconds=retry_delay,
        queue_size=_positive_int(data, "queue_size", defaults.queue_size),
    )


def parse_identity(data: dict[str, Any]) -> IdentityConfig:
    defaults = IdentityConfig()
    return IdentityConfig(
        token_ttl_seconds=_positive_int(data, "token_ttl_seconds", defaults.token_ttl_seconds),
    )


def parse_rbac(data: dict[str, Any]) -> RbacConfig:
    """
    Parse ``rbac.roles``: a mapping of role name to a list of permissions.
    """
    roles = data.get("roles", {})
    if not isinstance(roles, dict):
        raise ValueError("rbac.roles must be a mapping of role -> permissions")
    parsed: dict[str, frozenset[str]] = {}
    for role, permissions in roles.items():
        if not isinstance(permissions, list):
            raise ValueError(f"rbac.roles.{role} must be a list of permissions")
        parsed[str(role)] = frozenset(str(p) for p in permissions)
    return RbacConfig(role_permissions=MappingProxyType(parsed))


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Parse a whole configuration document."""
    return EngineConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        database=parse_database(data.get("database") or {}),
        numbering=parse_numbering(data.get("numbering") or {}),
        reporting=parse_reporting(data.get("reporting") or {}),
        notifier=parse_notifier(data.get("notifier") or {}),
        identity=parse_identity(data.get("identity") or {}),
        rbac=parse_rbac(data.get("rbac") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
