"""Task lifecycle state machine.

Statuses move ``pending|scheduled -> in_progress -> completed``. A running
timer can be cancelled back to ``scheduled``, which throws the run away.
Completed tasks can be re-timed, which is how calendar drags edit history.

Every function returns a new :class:`Task` and never mutates its input, so
a rejected call leaves the caller's copy exactly as it was.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional

from timeline_engine.blocks import quantize_to_block
from timeline_engine.errors import Forbidden, InvalidTransition, ValidationFailed
from timeline_engine.schema import Task, TaskAction, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 30

_STARTABLE = {TaskStatus.PENDING, TaskStatus.SCHEDULED}


def _minutes_between(start: datetime, end: datetime) -> int:
    return int(round((end - start).total_seconds() / 60.0))


def _new_id() -> str:
    return uuid.uuid4().hex


def _require_comparable(first: datetime, second: datetime, what: str) -> None:
    if (first.tzinfo is None) != (second.tzinfo is None):
        raise ValidationFailed(f"{what} mixes timezone-aware and naive datetimes")


def _require_activity(activity: str) -> str:
    cleaned = (activity or "").strip()
    if not cleaned:
        raise ValidationFailed("activity cannot be empty")
    return cleaned


def create_task(
    activity: str,
    now: datetime,
    *,
    user_id: Optional[str] = None,
    category_id: Optional[str] = None,
    start_time: Optional[datetime] = None,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    start_now: bool = False,
    task_id: Optional[str] = None,
) -> Task:
    """Create a task and pick its initial status.

    A future ``start_time`` always yields ``scheduled``; otherwise
    ``start_now`` decides between ``in_progress`` and ``pending``.
    ``end_time`` stays empty until the task is completed.
    """

    activity = _require_activity(activity)
    if duration_minutes is None or duration_minutes < 0:
        raise ValidationFailed(f"duration_minutes must be non-negative, got {duration_minutes}")

    start = start_time if start_time is not None else now
    _require_comparable(start, now, "start_time")
    if start > now:
        status = TaskStatus.SCHEDULED
    elif start_now:
        status = TaskStatus.IN_PROGRESS
    else:
        status = TaskStatus.PENDING

    task = Task(
        id=task_id or _new_id(),
        user_id=user_id,
        activity=activity,
        category_id=category_id,
        status=status,
        start_time=start,
        end_time=None,
        duration_minutes=int(duration_minutes),
        created_at=now,
    )
    logger.info(f"Created task {task.id} ({status.value}): {activity}")
    return task


def create_block_log(
    activity: str,
    now: datetime,
    *,
    user_id: Optional[str] = None,
    category_id: Optional[str] = None,
    task_id: Optional[str] = None,
) -> Task:
    """Log "what am I doing right now" as the whole current block, already completed."""

    activity = _require_activity(activity)
    block = quantize_to_block(now)
    task = Task(
        id=task_id or _new_id(),
        user_id=user_id,
        activity=activity,
        category_id=category_id,
        status=TaskStatus.COMPLETED,
        start_time=block.start,
        end_time=block.end,
        duration_minutes=block.duration_minutes,
        created_at=now,
    )
    logger.info(f"Logged block {block.start.isoformat()} for task {task.id}: {activity}")
    return task


def start_task(task: Task, now: datetime) -> Task:
    if task.status not in _STARTABLE:
        raise InvalidTransition(task.status, TaskAction.START)
    return replace(task, status=TaskStatus.IN_PROGRESS, start_time=now, end_time=None)


def stop_task(task: Task, now: datetime, end_time: Optional[datetime] = None) -> Task:
    """Complete a running task; the duration is always the recorded span."""

    if task.status != TaskStatus.IN_PROGRESS:
        raise InvalidTransition(task.status, TaskAction.STOP)

    end = end_time if end_time is not None else now
    start = task.start_time if task.start_time is not None else end
    _require_comparable(start, end, "end_time")
    if end < start:
        raise ValidationFailed("end_time cannot precede start_time")
    return replace(
        task,
        status=TaskStatus.COMPLETED,
        start_time=start,
        end_time=end,
        duration_minutes=_minutes_between(start, end),
    )


def cancel_task(task: Task) -> Task:
    """Abandon a running timer; the run is discarded, not recorded as partial time."""

    if task.status != TaskStatus.IN_PROGRESS:
        raise InvalidTransition(task.status, TaskAction.CANCEL)
    return replace(task, status=TaskStatus.SCHEDULED, start_time=None, end_time=None, duration_minutes=None)


def reschedule_task(task: Task, new_start: Optional[datetime], new_end: Optional[datetime]) -> Task:
    if task.status != TaskStatus.COMPLETED:
        raise Forbidden(f"Only completed tasks can be rescheduled (task {task.id} is {task.status.value})")
    if new_start is None or new_end is None:
        raise ValidationFailed("reschedule requires new_start and new_end")
    _require_comparable(new_start, new_end, "reschedule")
    if new_end < new_start:
        raise ValidationFailed("new_end cannot precede new_start")
    return replace(
        task,
        start_time=new_start,
        end_time=new_end,
        duration_minutes=_minutes_between(new_start, new_end),
    )


def transition_task(task: Task, action, now: datetime, **params) -> Task:
    """Apply ``action`` to ``task`` and return the resulting task."""

    try:
        action = TaskAction(action)
    except ValueError as exc:
        raise ValidationFailed(f"Unknown task action '{action}'") from exc

    try:
        if action == TaskAction.START:
            result = start_task(task, now)
        elif action == TaskAction.STOP:
            result = stop_task(task, now, params.get("end_time"))
        elif action == TaskAction.CANCEL:
            result = cancel_task(task)
        else:
            result = reschedule_task(task, params.get("new_start"), params.get("new_end"))
    except (InvalidTransition, Forbidden, ValidationFailed) as exc:
        logger.warning(f"Rejected {action.value} on task {task.id}: {exc}")
        raise

    logger.info(f"Task {task.id}: {task.status.value} -> {result.status.value} via {action.value}")
    return result
