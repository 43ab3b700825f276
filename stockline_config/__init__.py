"""
stockline_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns an ``EngineConfig`` -- a frozen, validated view of
    one YAML configuration set.

Architecture position:
    Configuration.  Sits above ``stockline_kernel`` and beside
    ``stockline_services``.  The kernel MUST NEVER import from
    ``stockline_config``; the engine facade translates config values into
    constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` -- a value failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STOCKLINE_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stockline_config.loader import load_yaml_file, parse_engine_config
from stockline_config.schema import (
    DatabaseConfig,
    EngineConfig,
    IdentityConfig,
    NotifierConfig,
    NumberingConfig,
    RbacConfig,
    ReportingConfig,
)

_logger = logging.getLogger("stockline.config")

# Default configuration set
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ``stockline_config/sets/default.yaml``.

    Returns:
        EngineConfig -- frozen and validated.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_engine_config(load_yaml_file(path))

    _logger.info(
        "STOCKLINE_CONFIG_TRACE",
        extra={
            "trace_type": "STOCKLINE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "notifier_kind": config.notifier.kind,
            "role_count": len(config.rbac.role_permissions),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "EngineConfig",
    "DatabaseConfig",
    "NumberingConfig",
    "ReportingConfig",
    "NotifierConfig",
    "IdentityConfig",
    "RbacConfig",
    "DEFAULT_CONFIG_PATH",
]
