"""Context detection: keyword classifier and write throttle.

The throttle only limits how often raw context signals are persisted. It is
held in memory and may be lost on restart. The store's unique constraint
(surfaced as :class:`DuplicateEntry`) is the durable backstop when two
concurrent requests both pass the in-memory check.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional, Protocol

from timeline_engine.errors import DuplicateEntry, ValidationFailed
from timeline_engine.schema import DetectedContext

logger = logging.getLogger(__name__)

CONTEXT_LOG_WINDOW = timedelta(minutes=5)
SUGGESTION_MIN_CONFIDENCE = 60

# keywords, likely task, confidence, reason; checked in order
_TASK_RULES = (
    (
        ("github", "gitlab", "stack overflow", "codepen", "codesandbox", "vscode", "visual studio code", "code editor"),
        "Coding",
        75,
        "Detected coding environment",
    ),
    (("gmail", "outlook", "mail", "email", "yahoo mail"), "Email Work", 70, "Detected email client"),
    (
        ("docs.google", "google docs", "notion", "confluence", "word", "document", "writing"),
        "Writing / Documentation",
        70,
        "Detected document/writing tool",
    ),
    (("sheets.google", "excel", "spreadsheet", "admin"), "Admin Work", 65, "Detected admin/spreadsheet tool"),
    (
        ("obsidian", "evernote", "onenote", "notes", "planning"),
        "Planning / Notes",
        65,
        "Detected note-taking/planning tool",
    ),
    (("youtube", "vimeo", "netflix", "twitch", "streaming"), "Watching Videos", 80, "Detected video platform"),
    (
        ("facebook", "twitter", "x.com", "instagram", "linkedin", "reddit", "tiktok"),
        "Social Media",
        75,
        "Detected social media platform",
    ),
    (("zoom", "meet", "teams", "webex", "call", "meeting"), "Meeting / Call", 70, "Detected meeting/call platform"),
    (("figma", "adobe", "canva", "sketch", "design"), "Design Work", 70, "Detected design tool"),
)

_CATEGORY_RULES = (
    (("coding", "development", "programming"), "deep_work"),
    (("design", "writing", "documentation"), "revenue"),
    (("admin", "email", "meeting", "call"), "admin"),
    (("social media", "watching videos", "entertainment"), "personal"),
    (("learning", "study", "reading"), "learning"),
)


def detect_likely_task(active_tab: str, is_idle: bool) -> DetectedContext:
    """Guess the current activity from the active window/tab title."""

    if is_idle:
        return DetectedContext(None, None, 0, "User is idle")

    tab = (active_tab or "").lower()
    for keywords, task, confidence, reason in _TASK_RULES:
        if any(keyword in tab for keyword in keywords):
            return DetectedContext(task, None, confidence, reason)
    return DetectedContext(None, None, 0, "No pattern match found")


def detect_category(task: Optional[str]) -> Optional[str]:
    if not task:
        return None
    lowered = task.lower()
    for keywords, category in _CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def detect_context(active_tab: str, is_idle: bool) -> DetectedContext:
    detected = detect_likely_task(active_tab, is_idle)
    if detected.likely_task is None:
        return detected
    return DetectedContext(
        likely_task=detected.likely_task,
        category=detect_category(detected.likely_task),
        confidence=detected.confidence,
        reason=detected.reason,
    )


class ContextThrottle:
    """Per-user "last logged at" cache with TTL and size-bounded eviction."""

    def __init__(self, window: timedelta = CONTEXT_LOG_WINDOW, max_entries: int = 10_000):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.window = window
        self.max_entries = max_entries
        self._entries: OrderedDict[str, datetime] = OrderedDict()
        self._lock = threading.Lock()

    def try_log(self, user_id: str, now: datetime) -> bool:
        """Return True and remember ``now`` unless ``user_id`` logged within the window."""

        with self._lock:
            last = self._entries.get(user_id)
            if last is not None and now - last < self.window:
                logger.debug(f"Context log throttled for {user_id}")
                return False
            self._entries[user_id] = now
            self._entries.move_to_end(user_id)
            self._evict(now)
            return True

    def _evict(self, now: datetime) -> None:
        # callers may pass out-of-order timestamps, so insertion order says nothing about age
        expired = [user_id for user_id, logged_at in self._entries.items() if now - logged_at >= self.window]
        for user_id in expired:
            del self._entries[user_id]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def forget(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._entries


def try_log_context(throttle: ContextThrottle, user_id: str, now: datetime) -> bool:
    return throttle.try_log(user_id, now)


class ContextSink(Protocol):
    def insert(self, user_id: str, context: str, confidence: Optional[float], detected_at: datetime) -> None: ...


class ContextRecorder:
    """Validate, throttle and persist raw context signals."""

    def __init__(self, throttle: ContextThrottle, sink: ContextSink):
        self.throttle = throttle
        self.sink = sink

    def record(self, user_id: str, context: str, confidence: Optional[float], now: datetime) -> bool:
        """Return True when the signal was stored, False when throttled."""

        if not isinstance(context, str) or not context.strip():
            raise ValidationFailed("context is required and must be a non-empty string")
        if confidence is not None and (not isinstance(confidence, (int, float)) or not 0 <= confidence <= 100):
            raise ValidationFailed("confidence must be a number between 0 and 100")

        if not self.throttle.try_log(user_id, now):
            return False

        try:
            self.sink.insert(user_id, context.strip(), confidence, now)
        except DuplicateEntry:
            logger.debug(f"Context log for {user_id} rejected by store, treating as throttled")
            return False
        return True
