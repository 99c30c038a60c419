import importlib.util
import plistlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import summarizer
from summarizer import resolve_window

REPO_ROOT = Path(__file__).resolve().parents[1]


def load_schedule_entry():
    spec = importlib.util.spec_from_file_location("schedule_entry", REPO_ROOT / "scripts" / "schedule_entry.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_trailing_window():
    now = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    assert resolve_window(now, minutes=30) == (now - timedelta(minutes=30), now)


def test_whole_day_window():
    now = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    start, end = resolve_window(now, date="2025-03-08")

    assert start == datetime(2025, 3, 8, tzinfo=timezone.utc)
    assert end == datetime(2025, 3, 9, tzinfo=timezone.utc)


def test_cron_line_runs_observer():
    schedule_entry = load_schedule_entry()

    line = schedule_entry.cron_line("*/15 * * * *", python="/usr/bin/python3")

    assert line.startswith("*/15 * * * * cd ")
    assert "/usr/bin/python3" in line
    assert "observer.py" in line
    assert line.endswith("cron.log 2>&1")


def test_cron_line_rejects_bad_expression():
    with pytest.raises(ValueError):
        load_schedule_entry().cron_line("every hour")


def test_launchd_plist():
    payload = plistlib.loads(load_schedule_entry().launchd_plist(600, python="/usr/bin/python3"))

    assert payload["StartInterval"] == 600
    assert payload["ProgramArguments"][0] == "/usr/bin/python3"
    assert payload["ProgramArguments"][1].endswith("observer.py")


def test_summarizer_reports_invalid_configuration(monkeypatch, capsys):
    def broken_settings():
        raise RuntimeError("SUMMARY_INTERVAL_MINUTES must be a positive integer")

    monkeypatch.setattr(summarizer, "get_settings", broken_settings)
    monkeypatch.setattr("sys.argv", ["summarizer.py", "--minutes", "30"])

    assert summarizer.main() == 1
    assert "Invalid configuration: SUMMARY_INTERVAL_MINUTES" in capsys.readouterr().err
