"""Context-aware reminder message builder."""

from __future__ import annotations

from datetime import datetime

from timeline_engine.schema import ReminderMessage, ReminderState

LONG_IDLE_MINUTES = 10
STALE_LOG_MINUTES = 120

BACK_AT_IT = ReminderMessage("Back at it?", "Log what you're about to do to track your progress.")
NEW_TASK = ReminderMessage("New task?", "Log your current activity to keep your timeline accurate.")
TIME_TO_LOG = ReminderMessage(
    "Time to log?", "You haven't logged anything in a while. Want to track what you're doing?"
)
START_TRACKING = ReminderMessage("Start tracking", "Log your first activity to begin tracking your day.")
TAKING_A_BREAK = ReminderMessage("Taking a break?", "Log this break time to complete your activity timeline.")
WHAT_NOW = ReminderMessage(
    "What are you doing right now?", "Log your current activity to keep your timeline updated."
)


def compose_reminder_message(state: ReminderState, now: datetime) -> ReminderMessage:
    """Pick the message for ``state``; rules are a priority list, first match wins."""

    if state.is_idle and state.idle_duration_minutes > LONG_IDLE_MINUTES:
        return BACK_AT_IT

    if state.recent_context_switch:
        return NEW_TASK

    if state.last_log_time is not None:
        minutes_since_log = (now - state.last_log_time).total_seconds() // 60
        if minutes_since_log > STALE_LOG_MINUTES:
            return TIME_TO_LOG

    if state.logs_today_count == 0:
        return START_TRACKING

    if state.is_idle:
        return TAKING_A_BREAK

    return WHAT_NOW
