"""Core data schema for blocks, tasks and reminders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

BLOCK_MINUTES = 30


class TaskStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskAction(str, Enum):
    START = "start"
    STOP = "stop"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


class DenyReason(str, Enum):
    DISABLED = "disabled"
    SNOOZED = "snoozed"
    QUIET_HOURS = "quiet_hours"
    DAILY_CAP = "daily_cap"
    MIN_SPACING = "min_spacing"
    INTERVAL = "interval"


class SignalKind(str, Enum):
    ACTIVE = "active"
    IDLE = "idle"
    SWITCH = "switch"
    LOG = "log"
    DISMISS = "dismiss"


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ActivityBlock:
    """Half-open 30-minute interval ``[start, end)``."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass
class Task:
    """A unit of tracked work.

    ``end_time`` is only set once the task is completed. Before that,
    ``duration_minutes`` carries the planned duration.
    """

    id: str
    activity: str
    status: TaskStatus
    user_id: Optional[str] = None
    category_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == TaskStatus.IN_PROGRESS

    @property
    def planned_end(self) -> Optional[datetime]:
        if self.start_time is None or self.duration_minutes is None:
            return None
        return self.start_time + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "activity": self.activity,
            "category_id": self.category_id,
            "status": self.status.value,
            "start_time": _format_dt(self.start_time),
            "end_time": _format_dt(self.end_time),
            "duration_minutes": self.duration_minutes,
            "created_at": _format_dt(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            activity=data["activity"],
            category_id=data.get("category_id"),
            status=TaskStatus(data["status"]),
            start_time=_parse_dt(data.get("start_time")),
            end_time=_parse_dt(data.get("end_time")),
            duration_minutes=data.get("duration_minutes"),
            created_at=_parse_dt(data.get("created_at")),
        )


@dataclass(frozen=True)
class ReminderState:
    """Snapshot of user activity signals at one evaluation instant."""

    is_idle: bool = False
    idle_duration_minutes: float = 0.0
    last_log_time: Optional[datetime] = None
    recent_context_switch: bool = False
    logs_today_count: int = 0


@dataclass(frozen=True)
class ReminderHistory:
    """Per-user reminder bookkeeping; ``day`` is the local date ``fired_today`` counts for."""

    last_fired_at: Optional[datetime] = None
    fired_today: int = 0
    consecutive_dismissals: int = 0
    snoozed_until: Optional[datetime] = None
    day: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "last_fired_at": _format_dt(self.last_fired_at),
            "fired_today": self.fired_today,
            "consecutive_dismissals": self.consecutive_dismissals,
            "snoozed_until": _format_dt(self.snoozed_until),
            "day": self.day.isoformat() if self.day else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReminderHistory":
        return cls(
            last_fired_at=_parse_dt(data.get("last_fired_at")),
            fired_today=int(data.get("fired_today") or 0),
            consecutive_dismissals=int(data.get("consecutive_dismissals") or 0),
            snoozed_until=_parse_dt(data.get("snoozed_until")),
            day=date.fromisoformat(data["day"]) if data.get("day") else None,
        )


@dataclass(frozen=True)
class FireDecision:
    """Verdict on whether a reminder may be shown right now."""

    allow: bool
    next_eligible_at: Optional[datetime]
    reason: Optional[DenyReason] = None
    target_interval_minutes: Optional[float] = None


@dataclass(frozen=True)
class ReminderMessage:
    title: str
    body: str


@dataclass(frozen=True)
class Notification:
    """Payload handed to the external notification sink."""

    title: str
    body: str
    tag: str
    auto_close_seconds: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActivitySignal:
    """One row of a replayable activity-signal stream."""

    timestamp: datetime
    kind: SignalKind
    idle_minutes: float = 0.0
    context: Optional[str] = None


@dataclass(frozen=True)
class DetectedContext:
    likely_task: Optional[str]
    category: Optional[str]
    confidence: int
    reason: str


@dataclass(frozen=True)
class Suggestion:
    activity: str
    category: Optional[str]
    confidence: int
    reason: str
    source: str  # context | history | time | pattern
