"""
hsse_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``: role-to-capability bindings, the extension
    approval chain, minimum text lengths, closure checklist items and
    notification routing.  No other component reads configuration files.

Architecture position:
    Configuration -- sits above ``hsse_kernel`` and below
    ``hsse_services``.  The kernel MUST NEVER import from ``hsse_config``;
    the orchestrator passes the relevant values into kernel services as
    plain arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not
      exist.
    - ``ConfigError`` (a ``ValueError``) -- schema or structural validation
      failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``HSSE_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying workflow decisions to the configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hsse_config.loader import load_configuration_set
from hsse_config.schema import ConfigError, HsseConfigurationSet

_logger = logging.getLogger("hsse_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_ID = "hsse_default"

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_ID",
    "HsseConfigurationSet",
    "get_active_config",
]


def get_active_config(
    config_id: str = DEFAULT_CONFIG_ID,
    config_dir: Path | None = None,
) -> HsseConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        config_id: Name of the configuration-set directory to load.
        config_dir: Override path to the configuration sets directory.
            Defaults to hsse_config/sets/.

    Raises:
        FileNotFoundError: If the set directory or its root.yaml is missing.
        ConfigError: If the configuration fails validation.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    set_dir = sets_dir / config_id
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config = load_configuration_set(set_dir)

    _logger.info(
        "HSSE_CONFIG_TRACE",
        extra={
            "trace_type": "HSSE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "role_count": len(config.roles),
            "approval_levels": len(config.extension_approval_chain),
            "notification_topic_count": len(config.notifications),
        },
    )
    return config
