from __future__ import annotations

import subprocess
from datetime import datetime
from pathlib import Path

from PIL import Image

from .utils import ensure_directory, is_macos, timestamp_slug


class CaptureFailed(RuntimeError):
    def __init__(self, exit_code: int | None, message: str | None = None):
        self.exit_code = exit_code
        super().__init__(message or f"Failed to take screenshot, exit code: {exit_code}")


class ScreenshotProvider:
    def __init__(self, screenshots_root: Path, timezone, log):
        self._screenshots_root = ensure_directory(screenshots_root)
        self._timezone = timezone
        self._logger = log

    def capture(self) -> Path:
        timestamp = datetime.now(tz=self._timezone)
        folder = ensure_directory(self._screenshots_root / timestamp.strftime("%Y-%m-%d"))
        path = folder / f"screenshot-{timestamp_slug(timestamp)}.png"

        if is_macos():
            self._capture_with_screencapture(path)
        else:
            self._capture_with_pyautogui(path)

        self._logger.info("Screenshot saved to %s", path)
        return path

    def _capture_with_screencapture(self, path: Path) -> None:
        try:
            # -x keeps the capture silent.
            result = subprocess.run(["screencapture", "-x", str(path)], capture_output=True, timeout=30)
        except (OSError, subprocess.SubprocessError) as exc:
            raise CaptureFailed(None, f"screencapture could not run: {exc}") from exc
        if result.returncode != 0 or not path.exists():
            raise CaptureFailed(result.returncode)

    def _capture_with_pyautogui(self, path: Path) -> None:
        try:
            import pyautogui

            pyautogui.FAILSAFE = False
            screenshot = pyautogui.screenshot()
            screenshot.save(path)
        except Exception as exc:
            raise CaptureFailed(None, f"pyautogui screenshot failed: {exc}") from exc


class ImageOptimizer:
    """Shrinks screenshots before they are sent to the vision model."""

    def __init__(self, log, max_width: int = 1200, quality: int = 80):
        self._logger = log
        self._max_width = max_width
        self._quality = quality

    def optimize(self, path: Path) -> Path:
        target = path.with_name(f"{path.stem}_optimized{path.suffix}")
        try:
            with Image.open(path) as image:
                if image.width > self._max_width:
                    height = max(1, round(image.height * self._max_width / image.width))
                    image = image.resize((self._max_width, height), Image.Resampling.LANCZOS)
                if target.suffix.lower() in {".jpg", ".jpeg"}:
                    image.convert("RGB").save(target, quality=self._quality, optimize=True)
                else:
                    image.save(target, optimize=True)
        except Exception as exc:
            self._logger.warning("Failed to optimize image, using original %s: %s", path, exc)
            return path

        self._logger.debug("Image optimized and saved to %s", target)
        return target
