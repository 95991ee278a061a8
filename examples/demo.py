"""Demo script for timeline-engine."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from timeline_engine.adapters.csv_adapter import parse
from timeline_engine.evaluator import compare
from timeline_engine.metrics import compute_metrics
from timeline_engine.settings import load_settings
from timeline_engine.simulation import simulate_adaptive, simulate_baseline


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    signals = parse("examples/sample_signals.csv")
    settings = load_settings("examples/settings.yaml")
    baseline = compute_metrics(simulate_baseline(signals))
    adaptive_run = simulate_adaptive(signals, settings)
    adaptive = compute_metrics(adaptive_run)
    for notification in adaptive_run.notifications:
        print(f"{notification.data['fired_at']}  {notification.title}")
    print("Baseline:", baseline)
    print("Adaptive:", adaptive)
    print("Comparison:", compare(baseline, adaptive))


if __name__ == "__main__":
    main()
