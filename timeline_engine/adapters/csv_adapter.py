"""CSV adapter for activity signals."""

from __future__ import annotations

import csv
from datetime import datetime

from timeline_engine.errors import ValidationFailed
from timeline_engine.schema import ActivitySignal, SignalKind

_REQUIRED_FIELDS = {"timestamp", "kind"}


def _parse_row(row: dict, row_number: int) -> ActivitySignal:
    missing = sorted(field for field in _REQUIRED_FIELDS if not row.get(field))
    if missing:
        raise ValidationFailed(f"Row {row_number}: missing required fields {missing}")

    try:
        timestamp = datetime.fromisoformat(row["timestamp"].strip())
    except ValueError as exc:
        raise ValidationFailed(f"Row {row_number}: malformed timestamp") from exc

    kind_raw = row["kind"].strip()
    try:
        kind = SignalKind(kind_raw)
    except ValueError as exc:
        raise ValidationFailed(f"Row {row_number}: invalid kind '{kind_raw}'") from exc

    idle_raw = row.get("idle_minutes")
    idle_minutes = 0.0
    if idle_raw not in (None, ""):
        try:
            idle_minutes = float(idle_raw)
        except ValueError as exc:
            raise ValidationFailed(f"Row {row_number}: invalid idle_minutes") from exc
        if idle_minutes < 0:
            raise ValidationFailed(f"Row {row_number}: idle_minutes cannot be negative")

    context_raw = row.get("context")
    context = context_raw.strip() if context_raw else None

    return ActivitySignal(timestamp=timestamp, kind=kind, idle_minutes=idle_minutes, context=context)


def parse(file_path: str) -> list[ActivitySignal]:
    """Parse a CSV file into activity signals, in file order."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        signals: list[ActivitySignal] = []
        for row_number, row in enumerate(reader, start=2):
            signals.append(_parse_row(row, row_number))
        return signals
