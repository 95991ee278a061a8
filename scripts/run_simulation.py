"""Replay an activity-signal file through the reminder engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from timeline_engine.adapters import csv_adapter, json_adapter
from timeline_engine.evaluator import compare
from timeline_engine.metrics import compute_metrics
from timeline_engine.settings import load_settings
from timeline_engine.simulation import simulate_adaptive, simulate_baseline


def _load_signals(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter.parse(str(path))
    if suffix == ".json":
        return json_adapter.parse(str(path))
    raise ValueError("Unsupported input format, expected .csv or .json")


def main() -> None:
    parser = argparse.ArgumentParser(description="Compare fixed-interval and throttled reminders on a signal file")
    parser.add_argument("--data", required=True, help="Path to CSV/JSON activity-signal file")
    parser.add_argument("--settings", default="config/settings.yaml", help="Reminder settings YAML")
    parser.add_argument("--baseline-interval", type=int, default=30, help="Fixed baseline interval in minutes")
    parser.add_argument("--output", default="outputs/simulation_report.json", help="Where to save the report")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every reminder decision")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    signals = _load_signals(Path(args.data))
    settings = load_settings(args.settings)

    baseline = compute_metrics(simulate_baseline(signals, args.baseline_interval))
    adaptive = compute_metrics(simulate_adaptive(signals, settings))
    report = {
        "n_signals": len(signals),
        "baseline": baseline,
        "adaptive": adaptive,
        "comparison": compare(baseline, adaptive),
    }

    print(json.dumps(report, indent=2))

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(f"Saved simulation report to {out_path}")


if __name__ == "__main__":
    main()
