"""JSON adapter for activity signals."""

from __future__ import annotations

import json
from datetime import datetime

from timeline_engine.errors import ValidationFailed
from timeline_engine.schema import ActivitySignal, SignalKind

_REQUIRED_FIELDS = {"timestamp", "kind"}


def _parse_item(item: dict, index: int) -> ActivitySignal:
    if not isinstance(item, dict):
        raise ValidationFailed(f"Item {index}: expected an object")

    missing = sorted(field for field in _REQUIRED_FIELDS if not item.get(field))
    if missing:
        raise ValidationFailed(f"Item {index}: missing required fields {missing}")

    try:
        timestamp = datetime.fromisoformat(str(item["timestamp"]))
    except ValueError as exc:
        raise ValidationFailed(f"Item {index}: malformed timestamp") from exc

    try:
        kind = SignalKind(str(item["kind"]).strip())
    except ValueError as exc:
        raise ValidationFailed(f"Item {index}: invalid kind '{item['kind']}'") from exc

    idle_raw = item.get("idle_minutes")
    idle_minutes = 0.0
    if idle_raw is not None:
        try:
            idle_minutes = float(idle_raw)
        except (TypeError, ValueError) as exc:
            raise ValidationFailed(f"Item {index}: invalid idle_minutes") from exc
        if idle_minutes < 0:
            raise ValidationFailed(f"Item {index}: idle_minutes cannot be negative")

    context_raw = item.get("context")
    context = str(context_raw).strip() if context_raw else None

    return ActivitySignal(timestamp=timestamp, kind=kind, idle_minutes=idle_minutes, context=context)


def parse(file_path: str) -> list[ActivitySignal]:
    """Parse a JSON file (a list of objects) into activity signals."""

    with open(file_path, encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValidationFailed(f"{file_path}: malformed JSON") from exc

    if not isinstance(payload, list):
        raise ValidationFailed("JSON payload must be a list of objects")

    return [_parse_item(item, i) for i, item in enumerate(payload, start=1)]
