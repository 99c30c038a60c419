from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from .analysis import AIServiceError
from .models import ActivityRecord, ActivitySummary
from .utils import ensure_directory

NO_ACTIVITY_MESSAGE = "この期間に記録されたアクティビティはありません。"
ENTRY_SEPARATOR = "\n---\n"

SYNTHESIS_PROMPT = """
以下は一定時間ごとに記録された、ユーザーの画面上のアクティビティの分析結果です（古い順、区切り線 --- で区切られています）。
この期間にユーザーが何をしていたかを、日本語の自然な文章で3〜5文程度に簡潔にまとめてください。
主な作業内容、作業の切り替わり、継続していた作業がわかるようにしてください。箇条書きは使わないでください。

{entries}
""".strip()


class SummarizationFailed(RuntimeError):
    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        super().__init__(f"Summarization failed ({status if status is not None else 'n/a'}): {message}")


class SummaryAggregator:
    def __init__(self, client, log, timezone=None):
        self._client = client
        self._logger = log
        self._timezone = timezone

    def build_prompt(self, records: Sequence[ActivityRecord]) -> str:
        entries = []
        for record in records:
            ts = record.timestamp.astimezone(self._timezone) if self._timezone else record.timestamp
            entries.append(f"[{ts.strftime('%H:%M')}] {record.screen_analysis.strip()}")
        return SYNTHESIS_PROMPT.format(entries=ENTRY_SEPARATOR.join(entries))

    def summarize(self, records: Sequence[ActivityRecord]) -> str:
        if not records:
            return NO_ACTIVITY_MESSAGE

        prompt = self.build_prompt(records)
        try:
            text = self._client.synthesize(prompt)
        except AIServiceError as exc:
            raise SummarizationFailed(exc.status, exc.body) from exc
        self._logger.info("Summarized %s activity records", len(records))
        return text

    def summarize_window(self, store, start: datetime, end: datetime) -> ActivitySummary:
        # Records stamped exactly at `end` belong to the next window.
        records = [record for record in store.read_range(start, end) if record.timestamp < end]
        return ActivitySummary(start=start, end=end, records=records, text=self.summarize(records))


def write_summary_file(summary_dir: Path, summary: ActivitySummary, timezone) -> Path:
    """Append the rendered summary to the day's markdown file."""
    ensure_directory(summary_dir)
    day = summary.end.astimezone(timezone).date()
    path = summary_dir / f"summary_{day.isoformat()}.md"
    localized = ActivitySummary(
        start=summary.start.astimezone(timezone),
        end=summary.end.astimezone(timezone),
        records=summary.records,
        text=summary.text,
    )
    with path.open("a", encoding="utf-8") as handle:
        handle.write(localized.render_markdown() + "\n")
    return path
