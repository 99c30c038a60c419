from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

ANALYZER_BACKENDS = {"gemini", "local"}


@dataclass(frozen=True)
class CaptureSettings:
    idle_threshold_minutes: int
    screenshots_dir: Path
    image_max_width: int = 1200
    image_quality: int = 80


@dataclass(frozen=True)
class StorageSettings:
    activity_dir: Path
    checkpoint_path: Path
    summary_dir: Path


@dataclass(frozen=True)
class SummarySettings:
    interval_minutes: int


@dataclass(frozen=True)
class AnalyzerSettings:
    backend: str


@dataclass(frozen=True)
class GeminiSettings:
    api_key: str
    model: str
    max_tokens: int
    temperature: float
    max_retries: int = 0
    retry_buffer_seconds: float = 0.5


@dataclass(frozen=True)
class LocalLLMSettings:
    base_url: str
    model: str
    api_key: str | None
    max_tokens: int
    temperature: float
    timeout_seconds: float


@dataclass(frozen=True)
class NotesSettings:
    vault_name: str | None

    @property
    def enabled(self) -> bool:
        return bool(self.vault_name)


@dataclass(frozen=True)
class LoggingSettings:
    directory: Path
    level: str = "INFO"


@dataclass(frozen=True)
class AppSettings:
    timezone: ZoneInfo
    capture: CaptureSettings
    storage: StorageSettings
    summary: SummarySettings
    analyzer: AnalyzerSettings
    gemini: GeminiSettings
    local_llm: LocalLLMSettings
    notes: NotesSettings
    logging: LoggingSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    dotenv_path = Path(__file__).resolve().parents[1] / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False, encoding="utf-8-sig")

    tz_name = os.getenv("TIMEZONE", "Asia/Tokyo")
    timezone = ZoneInfo(tz_name)

    backend = os.getenv("ANALYZER_BACKEND", "gemini").strip().lower()
    if backend not in ANALYZER_BACKENDS:
        raise RuntimeError(f"ANALYZER_BACKEND must be one of {sorted(ANALYZER_BACKENDS)}, got '{backend}'")

    capture = CaptureSettings(
        idle_threshold_minutes=_as_int("IDLE_THRESHOLD_MINUTES", 5),
        screenshots_dir=Path(os.getenv("SCREENSHOTS_DIR", "screenshots")).resolve(),
        image_max_width=_as_int("IMAGE_MAX_WIDTH", 1200),
        image_quality=_as_int("IMAGE_QUALITY", 80),
    )

    activity_dir = Path(os.getenv("ACTIVITY_LOG_DIR", "logs")).resolve()
    storage = StorageSettings(
        activity_dir=activity_dir,
        checkpoint_path=Path(os.getenv("SUMMARY_CHECKPOINT_PATH", str(activity_dir / "last_summary.txt"))).resolve(),
        summary_dir=Path(os.getenv("SUMMARY_OUTPUT_DIR", "output")).resolve(),
    )

    summary = SummarySettings(interval_minutes=_as_int("SUMMARY_INTERVAL_MINUTES", 60))

    gemini = GeminiSettings(
        api_key=_require("GEMINI_API_KEY") if backend == "gemini" else os.getenv("GEMINI_API_KEY", ""),
        model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
        max_tokens=_as_int("GEMINI_MAX_TOKENS", 1024),
        temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.4")),
        max_retries=_as_int("GEMINI_MAX_RETRIES", 0),
        retry_buffer_seconds=float(os.getenv("GEMINI_RETRY_BUFFER_SECONDS", "0.5")),
    )

    local_llm = LocalLLMSettings(
        base_url=os.getenv("LOCAL_LLM_BASE_URL", "http://localhost:1234/v1").rstrip("/"),
        model=os.getenv("LOCAL_LLM_MODEL", "auto"),
        api_key=os.getenv("LOCAL_LLM_API_KEY") or None,
        max_tokens=_as_int("LOCAL_LLM_MAX_TOKENS", 1024),
        temperature=float(os.getenv("LOCAL_LLM_TEMPERATURE", "0.4")),
        timeout_seconds=float(os.getenv("LOCAL_LLM_TIMEOUT_SECONDS", "120")),
    )

    notes = NotesSettings(vault_name=(os.getenv("OBSIDIAN_VAULT_NAME") or "").strip() or None)

    logging_settings = LoggingSettings(
        directory=Path(os.getenv("LOG_DIR", "logs/app")).resolve(),
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    return AppSettings(
        timezone=timezone,
        capture=capture,
        storage=storage,
        summary=summary,
        analyzer=AnalyzerSettings(backend=backend),
        gemini=gemini,
        local_llm=local_llm,
        notes=notes,
        logging=logging_settings,
    )


def _require(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise RuntimeError(f"Environment variable '{key}' is required but missing")
    return value


def _as_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{key}' must be an integer, got '{raw}'") from exc
    if value <= 0:
        raise RuntimeError(f"Environment variable '{key}' must be positive, got {value}")
    return value
