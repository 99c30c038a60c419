from datetime import timezone
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

from screenlog import notes as notes_module
from screenlog.notes import ObsidianNotes, build_daily_append_uri


def test_uri_appends_timed_section_to_daily_note():
    uri = build_daily_append_uri("My Vault", "コードを書いています & テスト", "14:05")

    parsed = urlparse(uri)
    query = parse_qs(parsed.query)
    assert uri.startswith("obsidian://advanced-uri?")
    assert query["vault"] == ["My Vault"]
    assert query["daily"] == ["true"]
    assert query["mode"] == ["append"]
    assert query["data"] == ["## 14:05\r\nコードを書いています & テスト"]


def test_unconfigured_vault_is_silently_skipped(logger, monkeypatch):
    calls = []
    monkeypatch.setattr(notes_module.subprocess, "run", lambda *args, **kwargs: calls.append(args))

    assert ObsidianNotes(None, timezone.utc, logger).append("text") is False
    assert calls == []


def test_launcher_failure_returns_false(logger, monkeypatch):
    monkeypatch.setattr(notes_module.os, "name", "posix")
    monkeypatch.setattr(notes_module.subprocess, "run", lambda *args, **kwargs: SimpleNamespace(returncode=3))

    assert ObsidianNotes("vault", timezone.utc, logger).append("text") is False


def test_missing_launcher_returns_false(logger, monkeypatch):
    def missing(*args, **kwargs):
        raise FileNotFoundError("xdg-open")

    monkeypatch.setattr(notes_module.os, "name", "posix")
    monkeypatch.setattr(notes_module.subprocess, "run", missing)

    assert ObsidianNotes("vault", timezone.utc, logger).append("text") is False


def test_successful_append(logger, monkeypatch):
    commands = []

    def fake_run(command, **kwargs):
        commands.append(command)
        return SimpleNamespace(returncode=0)

    monkeypatch.setattr(notes_module.os, "name", "posix")
    monkeypatch.setattr(notes_module.subprocess, "run", fake_run)

    assert ObsidianNotes("vault", timezone.utc, logger).append("text") is True
    assert commands[0][-1].startswith("obsidian://advanced-uri?vault=vault")
