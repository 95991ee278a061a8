"""Activity suggestions from context, time-of-day habits and recent history."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Optional

from timeline_engine.context import SUGGESTION_MIN_CONFIDENCE, detect_context
from timeline_engine.schema import Suggestion, Task

RECENT_WINDOW = 10
MIN_OCCURRENCES = 2


def _time_of_day_suggestions(current_hour: int, history: list[Task]) -> list[Suggestion]:
    by_hour: dict[int, Counter] = defaultdict(Counter)
    for task in history:
        if task.start_time is None:
            continue
        by_hour[task.start_time.hour][task.activity] += 1

    suggestions = []
    for offset in (-1, 0, 1):
        hour = (current_hour + offset) % 24
        for activity, count in by_hour[hour].most_common(2):
            if count < MIN_OCCURRENCES:
                continue
            confidence = min(60 + count * 5, 85) - abs(offset) * 10
            suggestions.append(
                Suggestion(activity, None, confidence, f"You usually {activity} around {hour}:00", "time")
            )
    return suggestions


def _pattern_suggestions(history: list[Task]) -> list[Suggestion]:
    dated = [task for task in history if task.start_time is not None]
    recent = sorted(dated, key=lambda task: task.start_time, reverse=True)[:RECENT_WINDOW]
    counts = Counter(task.activity for task in recent)

    suggestions = []
    for activity, count in counts.most_common(3):
        if count >= MIN_OCCURRENCES:
            suggestions.append(
                Suggestion(
                    activity, None, min(50 + count * 5, 75), f"You've done this {count} times recently", "pattern"
                )
            )
    return suggestions


def _deduplicate(suggestions: list[Suggestion]) -> list[Suggestion]:
    best: dict[str, Suggestion] = {}
    for suggestion in suggestions:
        key = suggestion.activity.lower()
        if key not in best or suggestion.confidence > best[key].confidence:
            best[key] = suggestion
    return list(best.values())


def smart_suggestions(
    active_tab: str,
    is_idle: bool,
    history: list[Task],
    current_hour: int,
    previous_activity: Optional[str] = None,
    limit: int = 5,
) -> list[Suggestion]:
    """Rank what the user is likely doing now, highest confidence first."""

    suggestions: list[Suggestion] = []

    detected = detect_context(active_tab, is_idle)
    if detected.likely_task and detected.confidence >= SUGGESTION_MIN_CONFIDENCE:
        suggestions.append(
            Suggestion(detected.likely_task, detected.category, detected.confidence, detected.reason, "context")
        )

    suggestions.extend(_time_of_day_suggestions(current_hour, history))
    suggestions.extend(_pattern_suggestions(history))

    if previous_activity:
        suggestions.append(Suggestion(previous_activity, None, 70, "Resuming previous task", "history"))

    ranked = sorted(_deduplicate(suggestions), key=lambda s: s.confidence, reverse=True)
    return ranked[:limit]
