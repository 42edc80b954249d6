"""
Configuration loader (``billing_config.loader``).

Loads the YAML settings file and parses it into a ``BillingConfig``.
Callers go through ``billing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, bad types or values  -> ``ValueError`` with the key name.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig
from billing_kernel.domain.dates import resolve_timezone
from billing_kernel.domain.values import Currency
from billing_engines.billing import AggregationMode


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def _require_type(key: str, value: Any, expected: type) -> Any:
    # bool is an int subclass; keep them apart
    if expected is int and isinstance(value, bool):
        raise ValueError(f"{key}: expected int, got bool")
    if not isinstance(value, expected):
        raise ValueError(f"{key}: expected {expected.__name__}, got {type(value).__name__}")
    return value


def parse_config(data: dict[str, Any]) -> BillingConfig:
    """
    Build a ``BillingConfig`` from a parsed mapping.

    Keys may sit at top level or under a ``billing:`` section.  Missing keys
    take the dataclass defaults.

    Raises:
        ValueError: Unknown key, wrong type, or invalid value.
    """
    if "billing" in data and isinstance(data["billing"], dict):
        data = data["billing"]

    known = {f.name for f in fields(BillingConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown billing config keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    if "reference_timezone" in data:
        name = _require_type("reference_timezone", data["reference_timezone"], str)
        resolve_timezone(name)
        kwargs["reference_timezone"] = name
    if "currency" in data:
        kwargs["currency"] = Currency(_require_type("currency", data["currency"], str)).code
    if "default_net_terms_days" in data:
        terms = _require_type("default_net_terms_days", data["default_net_terms_days"], int)
        if terms < 0:
            raise ValueError(f"default_net_terms_days: must be >= 0, got {terms}")
        kwargs["default_net_terms_days"] = terms
    if "aggregation_mode" in data:
        mode = _require_type("aggregation_mode", data["aggregation_mode"], str)
        try:
            kwargs["aggregation_mode"] = AggregationMode(mode)
        except ValueError as e:
            raise ValueError(f"aggregation_mode: unknown mode {mode!r}") from e
    for flag in ("allow_zero_amount_invoices", "freeze_invoiced_time_entries"):
        if flag in data:
            kwargs[flag] = _require_type(flag, data[flag], bool)
    if "invoice_number_prefix" in data:
        prefix = _require_type("invoice_number_prefix", data["invoice_number_prefix"], str).strip()
        if not prefix:
            raise ValueError("invoice_number_prefix: must not be empty")
        kwargs["invoice_number_prefix"] = prefix

    return BillingConfig(**kwargs)


def compute_checksum(config: BillingConfig) -> str:
    """Deterministic SHA-256 of the canonical JSON form."""
    canonical = json.dumps(asdict(config), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
