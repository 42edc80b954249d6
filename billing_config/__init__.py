"""
billing_config -- single public entrypoint for billing settings.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It reads the YAML settings file, validates it, and returns a frozen
    ``BillingConfig``.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and ``billing_engines``.
    The kernel and engines never import this package; services receive a
    ``BillingConfig`` through their constructor.

Failure modes:
    - ``FileNotFoundError`` -- settings file missing.
    - ``ValueError`` -- validation failure.

Every successful load emits a ``BILLING_CONFIG_TRACE`` log record with the
config checksum.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import compute_checksum, load_yaml_file, parse_config
from billing_config.schema import BillingConfig
from billing_kernel.logging_config import get_logger

__all__ = ["BillingConfig", "get_active_config"]

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> BillingConfig:
    """
    Load and validate the billing settings.

    Args:
        config_path: Override path. Defaults to billing_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info("BILLING_CONFIG_TRACE", extra={
        "trace_type": "BILLING_CONFIG_TRACE",
        "config_path": str(path),
        "checksum": compute_checksum(config),
        "reference_timezone": config.reference_timezone,
        "aggregation_mode": config.aggregation_mode.value,
    })
    return config
