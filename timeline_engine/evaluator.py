"""Baseline vs throttled reminder evaluator."""

from __future__ import annotations


def compare(baseline_metrics: dict, adaptive_metrics: dict) -> dict:
    """Compare baseline and throttled metric outcomes with percentage deltas."""

    def pct_change(old: float, new: float) -> float:
        if old == 0:
            return 0.0
        return ((new - old) / old) * 100.0

    return {
        "reminder_reduction_pct": -pct_change(
            baseline_metrics.get("total_reminders", 0), adaptive_metrics.get("total_reminders", 0)
        ),
        "spacing_increase_pct": pct_change(
            baseline_metrics.get("mean_spacing_minutes", 0.0), adaptive_metrics.get("mean_spacing_minutes", 0.0)
        ),
        "dismissal_reduction_pct": -pct_change(
            baseline_metrics.get("dismissal_rate", 0.0), adaptive_metrics.get("dismissal_rate", 0.0)
        ),
    }
