"""Error taxonomy shared by all engine modules."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for engine failures."""


class ValidationFailed(EngineError, ValueError):
    """Malformed input, rejected before any state change."""


class InvalidTransition(EngineError):
    """Action is not legal from the task's current status."""

    def __init__(self, current, action):
        self.current = current
        self.action = action
        current_value = getattr(current, "value", current)
        action_value = getattr(action, "value", action)
        super().__init__(f"Cannot {action_value} a task in status '{current_value}'")


class Forbidden(EngineError):
    """Legal action type, disallowed by a business rule."""


class NotFound(EngineError):
    """Referenced record is absent from its store."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} '{key}' not found")


class DuplicateEntry(EngineError):
    """Storage-level unique constraint rejected a write."""
