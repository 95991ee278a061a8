"""In-memory stores standing in for the durable storage collaborators.

Task writes are conditional on the status the caller read, mirroring a
``UPDATE ... WHERE status = :expected`` row update, so two concurrent
transitions on one task cannot both succeed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional

from timeline_engine.errors import DuplicateEntry, InvalidTransition, NotFound
from timeline_engine.schema import ReminderHistory, Task, TaskStatus
from timeline_engine.settings import ReminderSettings

logger = logging.getLogger(__name__)


class InMemoryTaskStore:
    def __init__(self):
        self._rows: dict[str, Task] = {}
        self._lock = threading.Lock()

    def add(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._rows:
                raise DuplicateEntry(f"Task '{task.id}' already exists")
            self._rows[task.id] = replace(task)
        return replace(task)

    def get(self, task_id: str) -> Task:
        with self._lock:
            row = self._rows.get(task_id)
            if row is None:
                raise NotFound("Task", task_id)
            return replace(row)

    def compare_and_set(self, task: Task, expected_status: TaskStatus, action=None) -> Task:
        """Replace the row only if its stored status still equals ``expected_status``."""

        with self._lock:
            current = self._rows.get(task.id)
            if current is None:
                raise NotFound("Task", task.id)
            if current.status != expected_status:
                logger.warning(
                    f"Conditional write on task {task.id} lost: expected {expected_status.value}, "
                    f"found {current.status.value}"
                )
                raise InvalidTransition(current.status, action or "update")
            self._rows[task.id] = replace(task)
        return replace(task)

    def delete(self, task_id: str) -> None:
        with self._lock:
            if self._rows.pop(task_id, None) is None:
                raise NotFound("Task", task_id)

    def list_for_user(self, user_id: Optional[str], status: Optional[TaskStatus] = None) -> list[Task]:
        with self._lock:
            rows = [replace(row) for row in self._rows.values() if row.user_id == user_id]
        if status is not None:
            rows = [row for row in rows if row.status == status]
        return rows


class InMemoryHistoryStore:
    def __init__(self):
        self._rows: dict[str, ReminderHistory] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> ReminderHistory:
        with self._lock:
            return self._rows.get(user_id, ReminderHistory())

    def put(self, user_id: str, history: ReminderHistory) -> None:
        with self._lock:
            self._rows[user_id] = history


class InMemorySettingsStore:
    """Per-user settings; users without a row get the defaults."""

    def __init__(self, defaults: Optional[ReminderSettings] = None):
        self.defaults = defaults or ReminderSettings()
        self._rows: dict[str, ReminderSettings] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> ReminderSettings:
        with self._lock:
            return self._rows.get(user_id, self.defaults)

    def put(self, user_id: str, settings: ReminderSettings) -> None:
        with self._lock:
            self._rows[user_id] = settings


class InMemoryContextLog:
    """Context signal rows, unique per user and minute."""

    def __init__(self):
        self.rows: list[dict] = []
        self._keys: set[tuple[str, datetime]] = set()
        self._lock = threading.Lock()

    def insert(self, user_id: str, context: str, confidence: Optional[float], detected_at: datetime) -> None:
        key = (user_id, detected_at.replace(second=0, microsecond=0))
        with self._lock:
            if key in self._keys:
                raise DuplicateEntry(f"Context already logged for {user_id} at {key[1].isoformat()}")
            self._keys.add(key)
            self.rows.append(
                {"user_id": user_id, "context": context, "confidence": confidence, "detected_at": detected_at}
            )

    def rows_for(self, user_id: str) -> list[dict]:
        with self._lock:
            return [row for row in self.rows if row["user_id"] == user_id]
