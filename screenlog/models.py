from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class AppInfo:
    name: str
    title: Optional[str] = None
    is_frontmost: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.title:
            data["title"] = self.title
        data["isFrontmost"] = self.is_frontmost
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AppInfo":
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise ValueError(f"Invalid application entry: {data!r}")
        title = data.get("title")
        return cls(name=data["name"], title=str(title) if title else None, is_frontmost=bool(data.get("isFrontmost", False)))

    def label(self) -> str:
        text = f"{self.name} ({self.title})" if self.title else self.name
        return f"{text} (frontmost)" if self.is_frontmost else text


@dataclass(frozen=True)
class ActivityRecord:
    timestamp: datetime
    screenshot_path: str
    open_applications: Tuple[AppInfo, ...]
    screen_analysis: str
    optimized_screenshot_path: Optional[str] = None
    continuing: Optional[bool] = None

    def frontmost_app(self) -> Optional[str]:
        return frontmost_name(self.open_applications)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "screenshot": self.screenshot_path,
        }
        if self.optimized_screenshot_path:
            data["optimizedScreenshot"] = self.optimized_screenshot_path
        data["openApplications"] = [app.to_dict() for app in self.open_applications]
        data["screenAnalysis"] = self.screen_analysis
        if self.continuing is not None:
            data["continuing"] = self.continuing
        return data

    @classmethod
    def from_dict(cls, data: Any, default_tz: tzinfo) -> "ActivityRecord":
        """Build a record from its serialized form, raising ValueError on any schema violation."""
        if not isinstance(data, dict):
            raise ValueError(f"Activity entry must be an object, got {type(data).__name__}")
        raw_ts = data.get("timestamp")
        if not isinstance(raw_ts, str):
            raise ValueError("Activity entry is missing 'timestamp'")
        apps = data.get("openApplications", [])
        if not isinstance(apps, list):
            raise ValueError("'openApplications' must be a list")
        continuing = data.get("continuing")
        return cls(
            timestamp=parse_timestamp(raw_ts, default_tz),
            screenshot_path=str(data.get("screenshot") or ""),
            optimized_screenshot_path=data.get("optimizedScreenshot") or None,
            open_applications=tuple(AppInfo.from_dict(item) for item in apps),
            screen_analysis=str(data.get("screenAnalysis") or ""),
            continuing=continuing if isinstance(continuing, bool) else None,
        )


@dataclass(frozen=True)
class ContinuityResult:
    is_continuing: bool
    common_apps: Tuple[str, ...]
    frontmost_changed: bool
    time_since_last_activity: str
    elapsed: Optional[timedelta] = None
    app_continuity_ratio: float = 0.0
    previous_frontmost: Optional[str] = None
    current_frontmost: Optional[str] = None

    def prompt_hint(self) -> str:
        if self.elapsed is None:
            return "直前の記録はありません。新しい作業を開始したものとして扱ってください。"
        if self.is_continuing:
            hint = f"前回の記録（{self.time_since_last_activity}前）からの作業の継続と思われます。"
        else:
            hint = f"前回の記録（{self.time_since_last_activity}前）とは異なる新しい作業を開始したと思われます。"
        if self.frontmost_changed:
            before = self.previous_frontmost or "なし"
            after = self.current_frontmost or "なし"
            hint += f" 最前面のアプリが {before} から {after} に変わりました。"
        return hint


@dataclass
class ActivitySummary:
    start: datetime
    end: datetime
    records: List[ActivityRecord] = field(default_factory=list)
    text: str = ""

    def render_markdown(self) -> str:
        period = f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"
        lines = [f"## まとめ {period}", "", self.text.strip(), "", f"- 記録数: {len(self.records)}", ""]
        return "\n".join(lines)


def frontmost_name(apps) -> Optional[str]:
    for app in apps:
        if app.is_frontmost:
            return app.name
    return None


def parse_timestamp(raw: str, default_tz: tzinfo) -> datetime:
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=default_tz)
    return value
