"""Decide/apply services over the pure engine, plus the public entry points.

The pure modules decide; the services here load state from the injected
stores, call the decision functions, and write back the result. Clocks are
injected so every path can be driven deterministically in tests.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from timeline_engine import lifecycle
from timeline_engine.blocks import quantize_to_block
from timeline_engine.context import try_log_context
from timeline_engine.errors import InvalidTransition, ValidationFailed
from timeline_engine.lifecycle import create_task, transition_task
from timeline_engine.messages import compose_reminder_message
from timeline_engine.notifier import Notifier
from timeline_engine.schema import (
    FireDecision,
    Notification,
    ReminderHistory,
    ReminderState,
    Task,
    TaskAction,
    TaskStatus,
)
from timeline_engine.settings import ReminderSettings
from timeline_engine.store import InMemoryHistoryStore, InMemorySettingsStore, InMemoryTaskStore
from timeline_engine.throttle import record_dismissal, record_fire, record_log, should_fire

__all__ = [
    "ReminderService",
    "TaskService",
    "compose_reminder_message",
    "create_task",
    "evaluate_reminder",
    "quantize_to_block",
    "transition_task",
    "try_log_context",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

REMINDER_TAG = "timeline-reminder"
AUTO_CLOSE_SECONDS = 10


def evaluate_reminder(
    history: ReminderHistory, settings: ReminderSettings, state: ReminderState, now: datetime
) -> FireDecision:
    return should_fire(history, settings, state, now)


def _coerce_status(value) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        raise ValidationFailed(f"Unknown task status '{value}'") from exc


class TaskService:
    """Runs task transitions against a store with status-conditional writes."""

    def __init__(self, store: InMemoryTaskStore, clock: Clock = datetime.now):
        self.store = store
        self.clock = clock

    def create(self, activity: str, **kwargs) -> Task:
        return self.store.add(create_task(activity, self.clock(), **kwargs))

    def log_block(self, activity: str, **kwargs) -> Task:
        return self.store.add(lifecycle.create_block_log(activity, self.clock(), **kwargs))

    def transition(self, task_id: str, action, expected_status=None, **params) -> Task:
        """Apply ``action`` to the stored task.

        ``expected_status`` is the status the caller last saw; if the row has
        moved on since, the call fails with :class:`InvalidTransition` and
        nothing is written.
        """

        current = self.store.get(task_id)
        if expected_status is not None and _coerce_status(expected_status) != current.status:
            raise InvalidTransition(current.status, action)

        now = self.clock()
        updated = transition_task(current, action, now, **params)
        saved = self.store.compare_and_set(updated, current.status, action)

        if TaskAction(action) == TaskAction.START:
            self._complete_other_active(saved, now)
        return saved

    def _complete_other_active(self, started: Task, now: datetime) -> None:
        # one running timer per user
        for other in self.store.list_for_user(started.user_id, TaskStatus.IN_PROGRESS):
            if other.id == started.id:
                continue
            try:
                stopped = lifecycle.stop_task(other, now)
                self.store.compare_and_set(stopped, TaskStatus.IN_PROGRESS, TaskAction.STOP)
            except InvalidTransition:
                logger.info(f"Task {other.id} changed concurrently, leaving it as is")
                continue
            except ValidationFailed as exc:
                logger.warning(f"Could not complete task {other.id} while starting {started.id}: {exc}")
                continue
            logger.info(f"Completed task {other.id} because task {started.id} started")

    def start(self, task_id: str) -> Task:
        return self.transition(task_id, TaskAction.START)

    def stop(self, task_id: str, end_time: Optional[datetime] = None) -> Task:
        return self.transition(task_id, TaskAction.STOP, end_time=end_time)

    def cancel(self, task_id: str) -> Task:
        return self.transition(task_id, TaskAction.CANCEL)

    def reschedule(self, task_id: str, new_start: datetime, new_end: datetime) -> Task:
        return self.transition(task_id, TaskAction.RESCHEDULE, new_start=new_start, new_end=new_end)


class ReminderService:
    """Evaluate, compose, deliver and account for reminders per user."""

    def __init__(
        self,
        settings_store: InMemorySettingsStore,
        history_store: InMemoryHistoryStore,
        notifier: Notifier,
        clock: Clock = datetime.now,
        tag: str = REMINDER_TAG,
        auto_close_seconds: int = AUTO_CLOSE_SECONDS,
    ):
        self.settings_store = settings_store
        self.history_store = history_store
        self.notifier = notifier
        self.clock = clock
        self.tag = tag
        self.auto_close_seconds = auto_close_seconds

    def evaluate(self, user_id: str, state: ReminderState) -> FireDecision:
        settings = self.settings_store.get(user_id)
        history = self.history_store.get(user_id)
        return should_fire(history, settings, state, self.clock())

    def remind(self, user_id: str, state: ReminderState) -> FireDecision:
        """Fire a reminder if allowed.

        The fire is recorded only after the notifier accepted the message, so a
        failed delivery leaves the counters untouched.
        """

        now = self.clock()
        settings = self.settings_store.get(user_id)
        history = self.history_store.get(user_id)
        decision = should_fire(history, settings, state, now)
        if not decision.allow:
            return decision

        message = compose_reminder_message(state, now)
        self.notifier.deliver(
            Notification(
                title=message.title,
                body=message.body,
                tag=self.tag,
                auto_close_seconds=self.auto_close_seconds,
                data={"type": "reminder", "user_id": user_id, "fired_at": now.isoformat()},
            )
        )
        self.history_store.put(user_id, record_fire(history, settings, now))
        logger.info(f"Reminder fired for {user_id}: {message.title}")
        return decision

    def dismiss(self, user_id: str) -> ReminderHistory:
        settings = self.settings_store.get(user_id)
        history = record_dismissal(self.history_store.get(user_id), settings, self.clock())
        self.history_store.put(user_id, history)
        return history

    def log_recorded(self, user_id: str) -> ReminderHistory:
        history = record_log(self.history_store.get(user_id))
        self.history_store.put(user_id, history)
        return history
