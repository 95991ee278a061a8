"""Deterministic replay of activity-signal streams."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from timeline_engine.notifier import MemoryNotifier
from timeline_engine.schema import ActivitySignal, Notification, ReminderState, SignalKind
from timeline_engine.service import ReminderService
from timeline_engine.settings import ReminderSettings
from timeline_engine.store import InMemoryHistoryStore, InMemorySettingsStore

SIMULATED_USER = "simulated-user"


@dataclass
class SimulationResult:
    fire_times: list[datetime]
    dismissals: int
    days: int
    notifications: list[Notification] = field(default_factory=list)


class _SteppedClock:
    def __init__(self):
        self.now: Optional[datetime] = None

    def __call__(self) -> datetime:
        return self.now


def _ordered(signals: list[ActivitySignal]) -> list[ActivitySignal]:
    return sorted(signals, key=lambda s: s.timestamp)


def _day_count(signals: list[ActivitySignal]) -> int:
    return len({signal.timestamp.date() for signal in signals})


def simulate_baseline(signals: list[ActivitySignal], interval_minutes: int = 30) -> SimulationResult:
    """Fixed-interval reminders with none of the anti-fatigue rules."""

    interval = timedelta(minutes=interval_minutes)
    fires: list[datetime] = []
    dismissals = 0
    for signal in _ordered(signals):
        if signal.kind == SignalKind.DISMISS:
            dismissals += 1
            continue
        if not fires or signal.timestamp - fires[-1] >= interval:
            fires.append(signal.timestamp)
    return SimulationResult(fire_times=fires, dismissals=dismissals, days=_day_count(signals))


def simulate_adaptive(signals: list[ActivitySignal], settings: Optional[ReminderSettings] = None) -> SimulationResult:
    """Replay ``signals`` through :class:`ReminderService` with a stepped clock."""

    clock = _SteppedClock()
    notifier = MemoryNotifier()
    service = ReminderService(InMemorySettingsStore(settings), InMemoryHistoryStore(), notifier, clock=clock)

    fires: list[datetime] = []
    dismissals = 0
    is_idle = False
    idle_minutes = 0.0
    switched = False
    last_log: Optional[datetime] = None
    logs_today = 0
    current_day = None

    for signal in _ordered(signals):
        clock.now = signal.timestamp
        if signal.timestamp.date() != current_day:
            current_day = signal.timestamp.date()
            logs_today = 0

        if signal.kind == SignalKind.LOG:
            last_log = signal.timestamp
            logs_today += 1
            switched = False
            service.log_recorded(SIMULATED_USER)
            continue
        if signal.kind == SignalKind.DISMISS:
            dismissals += 1
            service.dismiss(SIMULATED_USER)
            continue

        if signal.kind == SignalKind.IDLE:
            is_idle, idle_minutes = True, signal.idle_minutes
        elif signal.kind == SignalKind.SWITCH:
            is_idle, idle_minutes, switched = False, 0.0, True
        else:
            is_idle, idle_minutes, switched = False, 0.0, False

        state = ReminderState(
            is_idle=is_idle,
            idle_duration_minutes=idle_minutes,
            last_log_time=last_log,
            recent_context_switch=switched,
            logs_today_count=logs_today,
        )
        if service.remind(SIMULATED_USER, state).allow:
            fires.append(signal.timestamp)

    return SimulationResult(
        fire_times=fires, dismissals=dismissals, days=_day_count(signals), notifications=list(notifier.delivered)
    )
