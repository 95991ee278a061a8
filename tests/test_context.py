from datetime import datetime, timedelta

import pytest

from timeline_engine.context import (
    ContextRecorder,
    ContextThrottle,
    detect_category,
    detect_context,
    detect_likely_task,
    try_log_context,
)
from timeline_engine.errors import ValidationFailed
from timeline_engine.store import InMemoryContextLog

NOW = datetime(2025, 1, 6, 10, 0)


def test_throttle_window_per_user():
    throttle = ContextThrottle()
    assert try_log_context(throttle, "u1", NOW)
    assert not try_log_context(throttle, "u1", NOW + timedelta(minutes=4, seconds=59))
    assert try_log_context(throttle, "u2", NOW + timedelta(minutes=1))
    assert try_log_context(throttle, "u1", NOW + timedelta(minutes=5))


def test_denied_call_does_not_extend_window():
    throttle = ContextThrottle()
    throttle.try_log("u1", NOW)
    throttle.try_log("u1", NOW + timedelta(minutes=3))
    assert throttle.try_log("u1", NOW + timedelta(minutes=5))


def test_expired_entries_are_evicted():
    throttle = ContextThrottle()
    throttle.try_log("u1", NOW)
    throttle.try_log("u2", NOW + timedelta(minutes=1))
    throttle.try_log("u3", NOW + timedelta(minutes=5, seconds=30))
    assert "u1" not in throttle
    assert "u2" in throttle
    assert len(throttle) == 2


def test_out_of_order_timestamps_still_expire():
    throttle = ContextThrottle()
    throttle.try_log("late", NOW + timedelta(minutes=2))
    throttle.try_log("early", NOW)
    throttle.try_log("new", NOW + timedelta(minutes=6, seconds=30))
    assert "early" not in throttle
    assert "late" in throttle
    assert len(throttle) == 2


def test_size_bound_evicts_oldest():
    throttle = ContextThrottle(max_entries=2)
    for index, user in enumerate(["a", "b", "c"]):
        throttle.try_log(user, NOW + timedelta(seconds=index))
    assert "a" not in throttle
    assert len(throttle) == 2
    assert throttle.try_log("a", NOW + timedelta(seconds=5))


def test_forget_allows_immediate_relog():
    throttle = ContextThrottle()
    throttle.try_log("u1", NOW)
    throttle.forget("u1")
    assert throttle.try_log("u1", NOW)


def test_recorder_writes_and_throttles():
    log = InMemoryContextLog()
    recorder = ContextRecorder(ContextThrottle(), log)
    assert recorder.record("u1", "  GitHub - issues ", 75, NOW)
    assert not recorder.record("u1", "GitHub - issues", 75, NOW + timedelta(minutes=1))
    assert log.rows_for("u1") == [
        {"user_id": "u1", "context": "GitHub - issues", "confidence": 75, "detected_at": NOW}
    ]


def test_recorder_treats_store_conflict_as_throttled():
    log = InMemoryContextLog()
    log.insert("u1", "earlier", None, NOW)
    recorder = ContextRecorder(ContextThrottle(), log)
    assert not recorder.record("u1", "Slack", None, NOW + timedelta(seconds=20))
    assert len(log.rows_for("u1")) == 1


@pytest.mark.parametrize("context,confidence", [("", None), ("   ", 10), (None, 10), ("Zoom", 101), ("Zoom", -1)])
def test_recorder_validates_input(context, confidence):
    recorder = ContextRecorder(ContextThrottle(), InMemoryContextLog())
    with pytest.raises(ValidationFailed):
        recorder.record("u1", context, confidence, NOW)


def test_detect_likely_task():
    assert detect_likely_task("Pull request #12 · GitHub", False).likely_task == "Coding"
    assert detect_likely_task("Inbox - Gmail", False).confidence == 70
    assert detect_likely_task("YouTube", False).confidence == 80
    assert detect_likely_task("Notion - roadmap", False).likely_task == "Writing / Documentation"
    assert detect_likely_task("Obsidian vault", False).likely_task == "Planning / Notes"
    assert detect_likely_task("Some random page", False).likely_task is None


def test_idle_user_has_no_context():
    detected = detect_likely_task("GitHub", True)
    assert detected.likely_task is None
    assert detected.reason == "User is idle"


def test_detect_category_and_context():
    assert detect_category("Coding") == "deep_work"
    assert detect_category("Email Work") == "admin"
    assert detect_category("Watching Videos") == "personal"
    assert detect_category(None) is None
    detected = detect_context("Figma - mockups", False)
    assert detected.likely_task == "Design Work"
    assert detected.category == "revenue"
