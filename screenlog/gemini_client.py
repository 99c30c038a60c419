from __future__ import annotations

import random
import re
import time
from pathlib import Path
from typing import Any, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from PIL import Image

from .analysis import AIServiceError, build_describe_prompt
from .config import GeminiSettings
from .models import AppInfo, ContinuityResult


class GeminiClient:
    def __init__(self, settings: GeminiSettings, log):
        self._settings = settings
        self._logger = log
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(settings.model)

    def describe(self, image_path: Path, apps: Sequence[AppInfo], continuity: Optional[ContinuityResult] = None) -> str:
        if not image_path.exists():
            raise FileNotFoundError(image_path)

        prompt = build_describe_prompt(apps, continuity)
        with Image.open(image_path) as image:
            image.load()
            response = self._generate_with_retry([prompt, image])
        return self._response_text(response)

    def synthesize(self, prompt: str) -> str:
        response = self._generate_with_retry([prompt])
        return self._response_text(response)

    def _generation_config(self) -> dict[str, Any]:
        return {
            "max_output_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
        }

    def _generate_with_retry(self, contents: list[Any]):
        max_retries = self._settings.max_retries
        for attempt in range(max_retries + 1):
            try:
                return self._model.generate_content(contents, generation_config=self._generation_config())
            except google_exceptions.GoogleAPICallError as exc:
                if not self._is_rate_limited(exc) or attempt >= max_retries:
                    raise AIServiceError(exc.code, exc.message or str(exc)) from exc

                wait_seconds = self._compute_retry_wait_seconds(exc, attempt)
                wait_seconds = max(0.0, wait_seconds + max(0.0, self._settings.retry_buffer_seconds))
                self._logger.warning(
                    "Gemini rate limit hit (attempt %s/%s). Waiting %.1fs then retrying...",
                    attempt + 1,
                    max_retries + 1,
                    wait_seconds,
                )
                time.sleep(wait_seconds)
        raise AIServiceError(None, "Gemini generate_content failed unexpectedly")

    def _response_text(self, response) -> str:
        try:
            text = response.text
        except ValueError as exc:
            # Raised by the SDK when the candidate was blocked or carries no text part.
            raise AIServiceError(200, f"Malformed Gemini response: {exc}") from exc
        if not text or not text.strip():
            raise AIServiceError(200, "Gemini returned an empty response")
        return text.strip()

    def _is_rate_limited(self, exc: Exception) -> bool:
        if isinstance(exc, google_exceptions.ResourceExhausted):
            return True
        message = str(exc)
        return "429" in message or "Quota exceeded" in message or "rate limit" in message.lower()

    def _compute_retry_wait_seconds(self, exc: Exception, attempt: int) -> float:
        # Prefer server-suggested delay if present.
        match = re.search(r"Please retry in\s+([0-9]+(?:\.[0-9]+)?)s", str(exc))
        if match:
            return float(match.group(1))

        base = min(60.0, (2.0 ** attempt))
        return base + random.uniform(0.0, 1.0)
