from types import SimpleNamespace

from screenlog import apps as apps_module
from screenlog.apps import ApplicationEnumerator, parse_open_apps
from screenlog.models import AppInfo


def test_parse_marks_single_frontmost_app():
    output = "Safari\nFinder\t\nSafari\tGitHub\nMail\tInbox\n"

    assert parse_open_apps(output) == [
        AppInfo("Finder", None, False),
        AppInfo("Safari", "GitHub", True),
        AppInfo("Mail", "Inbox", False),
    ]


def test_parse_drops_duplicate_names():
    result = parse_open_apps("Code\nCode\twindow 1\nCode\twindow 2\n")

    assert result == [AppInfo("Code", "window 1", True)]


def test_parse_empty_output():
    assert parse_open_apps("") == []


def test_parse_ignores_fragments_without_separator():
    output = "Terminal\nTerminal\tbuild log\nerror: step 3\nMail\tInbox\n"

    assert parse_open_apps(output) == [AppInfo("Terminal", "build log", True), AppInfo("Mail", "Inbox", False)]


def test_script_flattens_names_and_titles():
    script = apps_module.OPEN_APPS_SCRIPT

    assert "text item delimiters to {tab, linefeed, return}" in script
    assert "set procName to my flatten(name of proc)" in script
    assert "set winTitle to my flatten(name of window 1 of proc)" in script


def test_osascript_failure_returns_no_apps(monkeypatch, logger):
    monkeypatch.setattr(apps_module, "is_macos", lambda: True)
    monkeypatch.setattr(
        apps_module.subprocess,
        "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=1, stdout="", stderr="not allowed"),
    )

    assert ApplicationEnumerator(logger).list_open_apps() == []


def test_osascript_output_is_parsed(monkeypatch, logger):
    monkeypatch.setattr(apps_module, "is_macos", lambda: True)
    monkeypatch.setattr(
        apps_module.subprocess,
        "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=0, stdout="Mail\nMail\tInbox\n", stderr=""),
    )

    assert ApplicationEnumerator(logger).list_open_apps() == [AppInfo("Mail", "Inbox", True)]
