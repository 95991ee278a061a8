from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from timeline_engine import service
from timeline_engine.errors import InvalidTransition, NotFound
from timeline_engine.notifier import MemoryNotifier
from timeline_engine.schema import DenyReason, ReminderHistory, ReminderState, TaskStatus
from timeline_engine.service import ReminderService, TaskService, evaluate_reminder
from timeline_engine.settings import ReminderSettings
from timeline_engine.store import InMemoryHistoryStore, InMemorySettingsStore, InMemoryTaskStore
from timeline_engine.throttle import should_fire

START = datetime(2025, 1, 6, 9, 0)
ACTIVE = ReminderState(logs_today_count=2, last_log_time=START - timedelta(minutes=30))


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class BrokenNotifier:
    def deliver(self, notification):
        raise RuntimeError("push service unavailable")


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def tasks(clock):
    return TaskService(InMemoryTaskStore(), clock)


def reminders(clock, notifier=None, settings_store=None):
    return ReminderService(
        settings_store or InMemorySettingsStore(), InMemoryHistoryStore(), notifier or MemoryNotifier(), clock
    )


def test_public_entry_points_are_exported():
    for name in service.__all__:
        assert hasattr(service, name)


def test_task_round_trip_through_store(tasks, clock):
    task = tasks.create("Write report", user_id="u1")
    assert tasks.store.get(task.id).status == TaskStatus.PENDING

    tasks.start(task.id)
    clock.advance(minutes=40)
    done = tasks.stop(task.id)
    assert done.duration_minutes == 40
    assert tasks.store.get(task.id) == done


def test_stale_expected_status_is_rejected_without_write(tasks):
    task = tasks.create("Write report")
    tasks.start(task.id)
    before = tasks.store.get(task.id)
    with pytest.raises(InvalidTransition):
        tasks.transition(task.id, "stop", expected_status="pending")
    assert tasks.store.get(task.id) == before


def test_conditional_write_loses_to_concurrent_change(tasks, clock):
    task = tasks.create("Write report")
    seen = tasks.store.get(task.id)
    tasks.start(task.id)
    stale_start = replace(seen, status=TaskStatus.IN_PROGRESS, start_time=clock() + timedelta(minutes=1))
    with pytest.raises(InvalidTransition):
        tasks.store.compare_and_set(stale_start, TaskStatus.PENDING, "start")
    assert tasks.store.get(task.id).start_time == START


def test_unknown_task_is_not_found(tasks):
    with pytest.raises(NotFound):
        tasks.start("missing")
    with pytest.raises(NotFound):
        tasks.store.delete("missing")


def test_starting_a_task_completes_the_running_one(tasks, clock):
    first = tasks.create("Email", user_id="u1", start_now=True)
    other_user = tasks.create("Gym", user_id="u2", start_now=True)
    second = tasks.create("Coding", user_id="u1")
    clock.advance(minutes=25)

    tasks.start(second.id)
    stopped = tasks.store.get(first.id)
    assert stopped.status == TaskStatus.COMPLETED
    assert stopped.end_time == clock()
    assert stopped.duration_minutes == 25
    assert tasks.store.get(other_user.id).is_active
    assert [t.id for t in tasks.store.list_for_user("u1", TaskStatus.IN_PROGRESS)] == [second.id]


def test_start_survives_other_task_that_cannot_be_stopped(tasks, clock):
    first = tasks.create("Email", user_id="u1", start_now=True)
    second = tasks.create("Coding", user_id="u1", start_time=START - timedelta(hours=1))
    clock.now = START - timedelta(minutes=10)

    started = tasks.start(second.id)
    assert started.status == TaskStatus.IN_PROGRESS
    assert tasks.store.get(second.id).is_active
    assert tasks.store.get(first.id).is_active


def test_cancel_and_reschedule(tasks, clock):
    task = tasks.create("Reading", start_now=True)
    cancelled = tasks.cancel(task.id)
    assert cancelled.status == TaskStatus.SCHEDULED
    assert cancelled.start_time is None

    tasks.start(task.id)
    clock.advance(minutes=10)
    assert tasks.stop(task.id).duration_minutes == 10
    moved = tasks.reschedule(task.id, START, START + timedelta(minutes=30))
    assert moved.duration_minutes == 30
    assert tasks.store.get(task.id).start_time == START


def test_log_block_stores_completed_block(tasks, clock):
    clock.now = datetime(2025, 1, 6, 14, 44)
    task = tasks.log_block("Meeting", user_id="u1")
    stored = tasks.store.get(task.id)
    assert stored.status == TaskStatus.COMPLETED
    assert (stored.start_time, stored.end_time) == (datetime(2025, 1, 6, 14, 30), datetime(2025, 1, 6, 15, 0))


def test_remind_delivers_and_records(clock):
    notifier = MemoryNotifier()
    reminder = reminders(clock, notifier)

    decision = reminder.remind("u1", ACTIVE)
    assert decision.allow
    [notification] = notifier.delivered
    assert notification.title == "What are you doing right now?"
    assert notification.tag == "timeline-reminder"
    assert notification.auto_close_seconds == 10
    assert notification.data == {"type": "reminder", "user_id": "u1", "fired_at": START.isoformat()}

    history = reminder.history_store.get("u1")
    assert history.fired_today == 1
    assert history.last_fired_at == START


def test_remind_respects_spacing(clock):
    notifier = MemoryNotifier()
    reminder = reminders(clock, notifier)
    reminder.remind("u1", ACTIVE)
    clock.advance(minutes=5)
    decision = reminder.remind("u1", ReminderState(is_idle=True, idle_duration_minutes=20))
    assert not decision.allow
    assert decision.reason == DenyReason.MIN_SPACING
    assert len(notifier.delivered) == 1


def test_failed_delivery_leaves_history_untouched(clock):
    reminder = reminders(clock, BrokenNotifier())
    with pytest.raises(RuntimeError):
        reminder.remind("u1", ACTIVE)
    assert reminder.history_store.get("u1") == ReminderHistory()


def test_dismissals_snooze_reminders(clock):
    notifier = MemoryNotifier()
    reminder = reminders(clock, notifier)
    for _ in range(3):
        reminder.dismiss("u1")
    assert reminder.history_store.get("u1").snoozed_until == START + timedelta(minutes=60)

    decision = reminder.remind("u1", ACTIVE)
    assert decision.reason == DenyReason.SNOOZED
    assert notifier.delivered == []


def test_logging_resets_dismissal_streak(clock):
    reminder = reminders(clock)
    reminder.dismiss("u1")
    reminder.dismiss("u1")
    assert reminder.log_recorded("u1").consecutive_dismissals == 0
    assert reminder.dismiss("u1").snoozed_until is None


def test_per_user_settings(clock):
    settings_store = InMemorySettingsStore()
    settings_store.put("quiet", ReminderSettings(enabled=False))
    reminder = reminders(clock, settings_store=settings_store)
    assert reminder.evaluate("quiet", ACTIVE).reason == DenyReason.DISABLED
    assert reminder.evaluate("loud", ACTIVE).allow


def test_evaluate_reminder_matches_throttle():
    history = ReminderHistory(last_fired_at=START, fired_today=1, day=START.date())
    settings = ReminderSettings()
    now = START + timedelta(minutes=15)
    assert evaluate_reminder(history, settings, ACTIVE, now) == should_fire(history, settings, ACTIVE, now)
