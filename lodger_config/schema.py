"""
Configuration schema -- frozen dataclasses for the lodger policy set.

Every numeric knob the engine reads at runtime lives on ``LodgerPolicy``.
Instances are immutable; a changed policy is a new YAML set, not a mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class LodgerPolicy:
    """Runtime policy for schedule generation, notices and reminders."""

    config_id: str = "UK-LODGER-DEFAULT"
    version: int = 1
    effective_from: date | None = None
    currency: str = "GBP"

    # Schedule
    default_cycle_days: int = 28
    advance_periods: int = 1
    initial_schedule_periods: int = 24
    extension_horizon_periods: int = 12

    # Notices
    breach_remedy_days: int = 7
    breach_termination_days: int = 7
    max_annual_rent_increase_percent: Decimal = Decimal("5")

    # Reminders
    expiry_reminder_days: int = 30
    reminder_dedup_window_days: int = 35

    # Tax
    rent_a_room_allowance: Decimal = Decimal("7500.00")

    checksum: str = ""

    def __post_init__(self) -> None:
        if self.default_cycle_days <= 0:
            raise ValueError("default_cycle_days must be positive")
        if self.advance_periods < 0:
            raise ValueError("advance_periods cannot be negative")
        if self.initial_schedule_periods <= 0:
            raise ValueError("initial_schedule_periods must be positive")
        if self.extension_horizon_periods <= 0:
            raise ValueError("extension_horizon_periods must be positive")
        if self.breach_remedy_days < 0 or self.breach_termination_days < 0:
            raise ValueError("breach deadlines cannot be negative")
        if self.max_annual_rent_increase_percent < 0:
            raise ValueError("max_annual_rent_increase_percent cannot be negative")
        if self.expiry_reminder_days < 0:
            raise ValueError("expiry_reminder_days cannot be negative")
        if self.reminder_dedup_window_days < 0:
            raise ValueError("reminder_dedup_window_days cannot be negative")
        if self.rent_a_room_allowance < 0:
            raise ValueError("rent_a_room_allowance cannot be negative")
        if len(self.currency) != 3:
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")
