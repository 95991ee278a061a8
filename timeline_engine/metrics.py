"""Reminder fatigue metrics."""

from __future__ import annotations

import numpy as np

from timeline_engine.simulation import SimulationResult


def compute_metrics(result: SimulationResult) -> dict:
    """Compute volume, spacing and dismissal metrics for one simulated run."""

    total = len(result.fire_times)
    if not total:
        return {
            "total_reminders": 0,
            "reminders_per_day": 0.0,
            "mean_spacing_minutes": 0.0,
            "min_spacing_minutes": 0.0,
            "median_spacing_minutes": 0.0,
            "dismissal_rate": 0.0,
        }

    ordered = sorted(result.fire_times)
    offsets = np.array([(moment - ordered[0]).total_seconds() / 60.0 for moment in ordered])
    spacing = np.diff(offsets)

    return {
        "total_reminders": total,
        "reminders_per_day": total / max(result.days, 1),
        "mean_spacing_minutes": float(spacing.mean()) if spacing.size else 0.0,
        "min_spacing_minutes": float(spacing.min()) if spacing.size else 0.0,
        "median_spacing_minutes": float(np.median(spacing)) if spacing.size else 0.0,
        "dismissal_rate": result.dismissals / total,
    }
