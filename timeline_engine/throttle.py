"""Reminder throttle engine.

Decides whether a reminder may fire right now. The vetoes are checked in a
fixed order and the first one that applies wins:

1. notifications disabled
2. auto-snoozed after repeated dismissals
3. inside quiet hours
4. daily cap reached
5. too soon after the previous reminder (hard floor, independent of mode)
6. adaptive interval not yet elapsed

Everything here is pure: callers load history and settings, call
:func:`should_fire`, and persist what :func:`record_fire`,
:func:`record_dismissal` or :func:`record_log` return.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

import numpy as np

from timeline_engine.schema import DenyReason, FireDecision, ReminderHistory, ReminderState
from timeline_engine.settings import ReminderSettings

logger = logging.getLogger(__name__)


def _localize(moment: datetime, settings: ReminderSettings) -> datetime:
    zone = settings.zone()
    if zone is not None and moment.tzinfo is not None:
        return moment.astimezone(zone)
    return moment


def _midnight(local: datetime) -> datetime:
    return datetime.combine(local.date(), time(0, 0), tzinfo=local.tzinfo)


def is_in_quiet_hours(moment: Union[datetime, time], start: Optional[time], end: Optional[time]) -> bool:
    """Check ``moment`` against the local window ``[start, end)``; windows may wrap past midnight."""

    if start is None or end is None or start == end:
        return False
    current = moment.time() if isinstance(moment, datetime) else moment
    current = current.replace(tzinfo=None)
    if start < end:
        return start <= current < end
    return current >= start or current < end


def quiet_hours_exit(local: datetime, end: time) -> datetime:
    """First wall-clock occurrence of ``end`` strictly after ``local``."""

    candidate = local.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
    if candidate <= local:
        candidate += timedelta(days=1)
    return candidate


def _push_past_quiet_hours(moment: datetime, settings: ReminderSettings) -> datetime:
    if not settings.has_quiet_hours:
        return moment
    local = _localize(moment, settings)
    if is_in_quiet_hours(local, settings.quiet_hours_start, settings.quiet_hours_end):
        return quiet_hours_exit(local, settings.quiet_hours_end)
    return moment


def _history_day(history: ReminderHistory, settings: ReminderSettings) -> Optional[date]:
    if history.day is not None:
        return history.day
    if history.last_fired_at is not None:
        return _localize(history.last_fired_at, settings).date()
    return None


def fired_today(history: ReminderHistory, settings: ReminderSettings, now: datetime) -> int:
    """``history.fired_today`` if it belongs to the local day of ``now``, else 0."""

    day = _history_day(history, settings)
    if day is not None and day != _localize(now, settings).date():
        return 0
    return history.fired_today


def roll_day(history: ReminderHistory, settings: ReminderSettings, now: datetime) -> ReminderHistory:
    """Reset the daily counter when ``now`` is on a later local day."""

    today = _localize(now, settings).date()
    if _history_day(history, settings) == today:
        return replace(history, day=today)
    return replace(history, fired_today=0, day=today)


def target_interval_minutes(settings: ReminderSettings, state: ReminderState) -> float:
    """Interval to wait since the last reminder, within the mode's ``[min, max]``.

    Idle and context-switch signals can only pull the weight down (fire
    sooner). With smart reminders off the fixed ``reminder_interval_minutes``
    is used instead. The result never drops below the minimum spacing.
    """

    spacing = float(settings.min_reminder_spacing_minutes)
    if not settings.smart_reminders_enabled:
        return max(float(settings.reminder_interval_minutes), spacing)

    low, high = settings.interval_bounds
    weights = [settings.default_interval_weight]
    if state.is_idle:
        weights.append(settings.idle_interval_weight)
    if state.recent_context_switch:
        weights.append(settings.context_switch_interval_weight)

    target = float(np.interp(min(weights), [0.0, 1.0], [float(low), float(high)]))
    return max(target, spacing)


def _deny(reason: DenyReason, next_at: Optional[datetime], settings: ReminderSettings, target=None) -> FireDecision:
    if next_at is not None:
        next_at = _push_past_quiet_hours(next_at, settings)
    logger.debug(f"Reminder denied ({reason.value}), next eligible at {next_at}")
    return FireDecision(allow=False, next_eligible_at=next_at, reason=reason, target_interval_minutes=target)


def should_fire(
    history: ReminderHistory,
    settings: ReminderSettings,
    state: ReminderState,
    now: datetime,
) -> FireDecision:
    """Decide whether a reminder may fire at ``now``."""

    if not settings.enabled:
        return _deny(DenyReason.DISABLED, None, settings)

    if history.snoozed_until is not None and now < history.snoozed_until:
        return _deny(DenyReason.SNOOZED, history.snoozed_until, settings)

    local_now = _localize(now, settings)
    if settings.has_quiet_hours and is_in_quiet_hours(
        local_now, settings.quiet_hours_start, settings.quiet_hours_end
    ):
        return _deny(DenyReason.QUIET_HOURS, quiet_hours_exit(local_now, settings.quiet_hours_end), settings)

    if fired_today(history, settings, now) >= settings.max_reminders_per_day:
        tomorrow = datetime.combine(local_now.date() + timedelta(days=1), time(0, 0), tzinfo=local_now.tzinfo)
        return _deny(DenyReason.DAILY_CAP, tomorrow, settings)

    spacing = timedelta(minutes=settings.min_reminder_spacing_minutes)
    if history.last_fired_at is not None and now - history.last_fired_at < spacing:
        return _deny(DenyReason.MIN_SPACING, history.last_fired_at + spacing, settings)

    target = target_interval_minutes(settings, state)
    reference = history.last_fired_at if history.last_fired_at is not None else _midnight(local_now)
    due = reference + timedelta(minutes=target)
    if now < due:
        return _deny(DenyReason.INTERVAL, due, settings, target)

    logger.debug(f"Reminder allowed at {now.isoformat()} (target interval {target:.1f} min)")
    return FireDecision(allow=True, next_eligible_at=now, reason=None, target_interval_minutes=target)


def record_fire(history: ReminderHistory, settings: ReminderSettings, now: datetime) -> ReminderHistory:
    """Account for one delivered reminder. Call exactly once per real firing."""

    rolled = roll_day(history, settings, now)
    return replace(rolled, last_fired_at=now, fired_today=rolled.fired_today + 1)


def record_dismissal(history: ReminderHistory, settings: ReminderSettings, now: datetime) -> ReminderHistory:
    """Count a dismissal; enough of them in a row engages the auto-snooze."""

    dismissals = history.consecutive_dismissals + 1
    if dismissals >= settings.auto_snooze_after_dismissals:
        until = now + timedelta(minutes=settings.auto_snooze_duration_minutes)
        logger.info(f"Auto-snoozing reminders until {until.isoformat()} after {dismissals} dismissals")
        return replace(history, consecutive_dismissals=0, snoozed_until=until)
    return replace(history, consecutive_dismissals=dismissals)


def record_log(history: ReminderHistory) -> ReminderHistory:
    """A user-initiated log means reminders are working; clear the dismissal streak."""

    return replace(history, consecutive_dismissals=0)
