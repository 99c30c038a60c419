from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

from .models import ActivityRecord, AppInfo, ContinuityResult, frontmost_name

CONTINUITY_RATIO_THRESHOLD = 0.70
CONTINUITY_WINDOW = timedelta(minutes=120)


def format_elapsed(elapsed: timedelta) -> str:
    total_minutes = max(0, int(elapsed.total_seconds() // 60))
    if total_minutes < 60:
        return f"{total_minutes}分"
    hours, minutes = divmod(total_minutes, 60)
    if minutes == 0:
        return f"{hours}時間"
    return f"{hours}時間{minutes}分"


def analyze(previous: Optional[ActivityRecord], current: Sequence[AppInfo], now: datetime) -> ContinuityResult:
    """Decide whether the current app snapshot continues the previously logged activity.

    A snapshot continues the previous one when at least 70% of the previously
    open applications are still open and less than two hours have passed.
    Names are compared exactly. An empty previous snapshot never continues.
    """
    current_frontmost = frontmost_name(current)
    if previous is None:
        return ContinuityResult(
            is_continuing=False,
            common_apps=(),
            frontmost_changed=True,
            time_since_last_activity="",
            current_frontmost=current_frontmost,
        )

    previous_frontmost = previous.frontmost_app()
    current_names = {app.name for app in current}

    common: list[str] = []
    for app in previous.open_applications:
        if app.name in current_names and app.name not in common:
            common.append(app.name)

    previous_count = len(previous.open_applications)
    ratio = len(common) / previous_count if previous_count else 0.0

    elapsed = now - previous.timestamp
    is_continuing = ratio >= CONTINUITY_RATIO_THRESHOLD and elapsed < CONTINUITY_WINDOW

    return ContinuityResult(
        is_continuing=is_continuing,
        common_apps=tuple(common),
        frontmost_changed=previous_frontmost != current_frontmost,
        time_since_last_activity=format_elapsed(elapsed),
        elapsed=elapsed,
        app_continuity_ratio=ratio,
        previous_frontmost=previous_frontmost,
        current_frontmost=current_frontmost,
    )
