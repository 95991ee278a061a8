"""Reminder settings model and YAML loader.

Settings are loaded once per evaluation cycle. A missing file or missing key
falls back to the defaults declared on :class:`ReminderSettings`, which is the
only place defaults live.
"""

from __future__ import annotations

import logging
from datetime import time
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from timeline_engine.errors import ValidationFailed

logger = logging.getLogger(__name__)


class ReminderMode(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# (min, max) interval minutes per mode
MODE_PRESETS: dict[ReminderMode, tuple[int, int]] = {
    ReminderMode.LOW: (30, 60),
    ReminderMode.MEDIUM: (20, 45),
    ReminderMode.HIGH: (15, 30),
}


class ReminderSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = True
    mode: ReminderMode = ReminderMode.MEDIUM
    # off: fixed reminder_interval_minutes, no signal weighting
    smart_reminders_enabled: bool = True
    reminder_interval_minutes: int = Field(default=30, ge=1)
    min_interval_minutes: Optional[int] = Field(default=None, ge=1)
    max_interval_minutes: Optional[int] = Field(default=None, ge=1)
    min_reminder_spacing_minutes: int = Field(default=10, ge=0)
    max_reminders_per_day: int = Field(default=20, ge=0)
    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    timezone: Optional[str] = None
    auto_snooze_after_dismissals: int = Field(default=3, ge=1)
    auto_snooze_duration_minutes: int = Field(default=60, ge=0)
    # 0.0 pulls the target interval to the mode minimum, 1.0 to the maximum
    default_interval_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    idle_interval_weight: float = Field(default=0.0, ge=0.0, le=1.0)
    context_switch_interval_weight: float = Field(default=0.25, ge=0.0, le=1.0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone '{value}'") from exc
        return value

    @model_validator(mode="after")
    def _consistent(self) -> "ReminderSettings":
        low, high = self.interval_bounds
        if low > high:
            raise ValueError(f"min interval ({low}) exceeds max interval ({high})")
        if (self.quiet_hours_start is None) != (self.quiet_hours_end is None):
            raise ValueError("quiet hours need both a start and an end")
        return self

    @property
    def interval_bounds(self) -> tuple[int, int]:
        """Effective ``(min, max)`` interval; explicit values override the mode preset."""

        preset_low, preset_high = MODE_PRESETS[self.mode]
        low = self.min_interval_minutes if self.min_interval_minutes is not None else preset_low
        high = self.max_interval_minutes if self.max_interval_minutes is not None else preset_high
        return low, high

    @property
    def has_quiet_hours(self) -> bool:
        return self.quiet_hours_start is not None and self.quiet_hours_end is not None

    def zone(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None

    @classmethod
    def build(cls, **data: Any) -> "ReminderSettings":
        """Validate ``data`` into settings, raising :class:`ValidationFailed` on bad input."""

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ValidationFailed(f"Invalid reminder settings: {exc}") from exc


def _deep_merge(base: dict, override: dict) -> dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict:
    with open(path, encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValidationFailed(f"{path}: malformed YAML") from exc
    if not isinstance(data, dict):
        raise ValidationFailed(f"{path}: expected a mapping at top level")
    return data


def load_settings(path: Union[str, Path]) -> ReminderSettings:
    """Load settings from ``path``, with a sibling ``local.yaml`` merged on top.

    Values may sit at the top level or under a ``reminders`` key.
    """

    path = Path(path)
    data: dict[str, Any] = {}
    if path.exists():
        data = _read_yaml(path)
    else:
        logger.info(f"No settings file at {path}, using defaults")

    local_path = path.with_name("local.yaml")
    if local_path.exists() and local_path != path:
        data = _deep_merge(data, _read_yaml(local_path))

    section = data.get("reminders", data)
    if not isinstance(section, dict):
        raise ValidationFailed(f"{path}: 'reminders' must be a mapping")
    return ReminderSettings.build(**section)
