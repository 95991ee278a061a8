from datetime import time

import pytest

from timeline_engine.errors import ValidationFailed
from timeline_engine.settings import MODE_PRESETS, ReminderMode, ReminderSettings, load_settings


def test_defaults():
    settings = ReminderSettings()
    assert settings.enabled
    assert settings.mode == ReminderMode.MEDIUM
    assert settings.smart_reminders_enabled
    assert settings.reminder_interval_minutes == 30
    assert settings.interval_bounds == (20, 45)
    assert settings.min_reminder_spacing_minutes == 10
    assert settings.max_reminders_per_day == 20
    assert settings.auto_snooze_after_dismissals == 3
    assert settings.auto_snooze_duration_minutes == 60
    assert not settings.has_quiet_hours


def test_mode_presets():
    assert MODE_PRESETS[ReminderMode.LOW] == (30, 60)
    assert ReminderSettings(mode="high").interval_bounds == (15, 30)


def test_explicit_bounds_override_mode():
    settings = ReminderSettings(mode="low", min_interval_minutes=25)
    assert settings.interval_bounds == (25, 60)


def test_quiet_hours_parse_from_strings():
    settings = ReminderSettings.build(quiet_hours_start="22:00", quiet_hours_end="07:30")
    assert settings.quiet_hours_start == time(22, 0)
    assert settings.quiet_hours_end == time(7, 30)
    assert settings.has_quiet_hours


@pytest.mark.parametrize(
    "data",
    [
        {"min_interval_minutes": 50, "max_interval_minutes": 40},
        {"min_reminder_spacing_minutes": -1},
        {"quiet_hours_start": "22:00"},
        {"idle_interval_weight": 1.5},
        {"mode": "extreme"},
        {"timezone": "Mars/Olympus_Mons"},
    ],
)
def test_build_rejects_invalid(data):
    with pytest.raises(ValidationFailed):
        ReminderSettings.build(**data)


def test_load_settings_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "settings.yaml") == ReminderSettings()


def test_load_settings_merges_local_override(tmp_path):
    (tmp_path / "settings.yaml").write_text(
        "reminders:\n  mode: low\n  max_reminders_per_day: 8\n  quiet_hours_start: '21:00'\n"
        "  quiet_hours_end: '06:00'\n",
        encoding="utf-8",
    )
    (tmp_path / "local.yaml").write_text("reminders:\n  max_reminders_per_day: 5\n", encoding="utf-8")
    settings = load_settings(tmp_path / "settings.yaml")
    assert settings.mode == ReminderMode.LOW
    assert settings.max_reminders_per_day == 5
    assert settings.quiet_hours_start == time(21, 0)


def test_load_settings_accepts_top_level_keys(tmp_path):
    path = tmp_path / "reminders.yaml"
    path.write_text("min_reminder_spacing_minutes: 15\n", encoding="utf-8")
    assert load_settings(path).min_reminder_spacing_minutes == 15


def test_load_settings_rejects_bad_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValidationFailed):
        load_settings(path)
