"""
YAML loader -- parses a policy set file into a ``LodgerPolicy``.

Internal to ``lodger_config``; callers use ``get_active_config()``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from lodger_config.schema import LodgerPolicy


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a money/percentage value; floats go through str() to avoid binary noise."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field}: cannot parse decimal from {value!r}") from exc


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON rendering of the raw YAML content."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_policy(data: dict[str, Any]) -> LodgerPolicy:
    """
    Build a ``LodgerPolicy`` from a parsed YAML dict.

    Missing sections fall back to ``LodgerPolicy`` defaults.

    Raises:
        ValueError: on malformed or out-of-range values.
    """
    defaults = LodgerPolicy()
    schedule = data.get("schedule") or {}
    notices = data.get("notices") or {}
    reminders = data.get("reminders") or {}
    tax = data.get("tax") or {}

    effective_from = data.get("effective_from")

    return LodgerPolicy(
        config_id=str(data.get("config_id", defaults.config_id)),
        version=int(data.get("version", defaults.version)),
        effective_from=parse_date(effective_from) if effective_from is not None else None,
        currency=str(data.get("currency", defaults.currency)),
        default_cycle_days=int(
            schedule.get("default_cycle_days", defaults.default_cycle_days)
        ),
        advance_periods=int(schedule.get("advance_periods", defaults.advance_periods)),
        initial_schedule_periods=int(
            schedule.get("initial_schedule_periods", defaults.initial_schedule_periods)
        ),
        extension_horizon_periods=int(
            schedule.get("extension_horizon_periods", defaults.extension_horizon_periods)
        ),
        breach_remedy_days=int(
            notices.get("breach_remedy_days", defaults.breach_remedy_days)
        ),
        breach_termination_days=int(
            notices.get("breach_termination_days", defaults.breach_termination_days)
        ),
        max_annual_rent_increase_percent=parse_decimal(
            notices.get(
                "max_annual_rent_increase_percent",
                defaults.max_annual_rent_increase_percent,
            ),
            "max_annual_rent_increase_percent",
        ),
        expiry_reminder_days=int(
            reminders.get("expiry_reminder_days", defaults.expiry_reminder_days)
        ),
        reminder_dedup_window_days=int(
            reminders.get(
                "reminder_dedup_window_days", defaults.reminder_dedup_window_days
            )
        ),
        rent_a_room_allowance=parse_decimal(
            tax.get("rent_a_room_allowance", defaults.rent_a_room_allowance),
            "rent_a_room_allowance",
        ),
        checksum=compute_checksum(data),
    )
