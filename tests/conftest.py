from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from screenlog.analysis import AIServiceError
from screenlog.models import ActivityRecord, AppInfo
from screenlog.storage import ActivityStore

UTC = timezone.utc


class FakeAIClient:
    def __init__(self):
        self.describe_calls = []
        self.synthesize_calls = []
        self.description = "エディタでコードを編集しています。"
        self.synthesis = "この1時間は主にコードの編集をしていました。"
        self.describe_error: AIServiceError | None = None
        self.synthesize_error: AIServiceError | None = None

    def describe(self, image_path, apps, continuity=None):
        self.describe_calls.append((image_path, list(apps), continuity))
        if self.describe_error:
            raise self.describe_error
        return self.description

    def synthesize(self, prompt):
        self.synthesize_calls.append(prompt)
        if self.synthesize_error:
            raise self.synthesize_error
        return self.synthesis


class FakeNotes:
    def __init__(self, result: bool = True):
        self.result = result
        self.sent = []

    def append(self, text):
        self.sent.append(text)
        return self.result


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def logger():
    return logging.getLogger("screenlog.tests")


@pytest.fixture
def store(tmp_path, logger):
    return ActivityStore(tmp_path / "logs", UTC, logger)


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 10, 9, 0, tzinfo=UTC))


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def notes():
    return FakeNotes()


@pytest.fixture
def make_record():
    def _make(timestamp: datetime, apps=(), analysis: str = "作業中", **kwargs) -> ActivityRecord:
        app_infos = tuple(app if isinstance(app, AppInfo) else AppInfo(name=app[0], is_frontmost=app[1]) for app in apps)
        return ActivityRecord(
            timestamp=timestamp,
            screenshot_path=kwargs.pop("screenshot_path", "screenshots/shot.png"),
            open_applications=app_infos,
            screen_analysis=analysis,
            **kwargs,
        )

    return _make
