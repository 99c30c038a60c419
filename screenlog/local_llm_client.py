from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any, Optional, Sequence

import requests

from .analysis import AIServiceError, build_describe_prompt
from .config import LocalLLMSettings
from .models import AppInfo, ContinuityResult


class LocalLLMClient:
    """Client for an OpenAI-compatible HTTP API (e.g., LM Studio).

    Expected base URL: http://localhost:1234/v1
    Endpoint used:     POST {base_url}/chat/completions
    """

    def __init__(self, settings: LocalLLMSettings, log):
        self._settings = settings
        self._logger = log
        self._model = self._resolve_model(settings)

    def describe(self, image_path: Path, apps: Sequence[AppInfo], continuity: Optional[ContinuityResult] = None) -> str:
        if not image_path.exists():
            raise FileNotFoundError(image_path)

        content = [
            {"type": "text", "text": build_describe_prompt(apps, continuity)},
            {"type": "image_url", "image_url": {"url": self._image_as_data_url(image_path)}},
        ]
        return self._chat([{"role": "user", "content": content}])

    def synthesize(self, prompt: str) -> str:
        return self._chat([{"role": "user", "content": prompt}])

    def _chat(self, messages: list[dict[str, Any]]) -> str:
        url = f"{self._settings.base_url}/chat/completions"
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"

        payload: dict[str, Any] = {
            "model": self._model,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "stream": False,
            "messages": messages,
        }

        try:
            res = requests.post(url, headers=headers, json=payload, timeout=self._settings.timeout_seconds)
        except requests.RequestException as exc:
            raise AIServiceError(None, f"Local LLM request failed: {exc}") from exc

        if res.status_code >= 400:
            raise AIServiceError(res.status_code, res.text)

        try:
            data = res.json()
        except ValueError as exc:
            raise AIServiceError(res.status_code, f"Malformed response: {res.text[:200]}") from exc

        text = self._extract_text(data)
        if not text:
            raise AIServiceError(res.status_code, "Malformed response: no message content")
        return text

    def _extract_text(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return ""
        text = message.get("content")

        if isinstance(text, list):
            # Some servers return structured content; join the text chunks.
            parts = [str(item.get("text") or "") for item in text if isinstance(item, dict) and item.get("type") == "text"]
            text = "\n".join(p for p in parts if p)

        return text.strip() if isinstance(text, str) else ""

    def _resolve_model(self, settings: LocalLLMSettings) -> str:
        configured = (settings.model or "").strip()
        if configured and configured.lower() not in {"local-model", "auto"}:
            return configured

        # Auto-detect via OpenAI-compatible models endpoint.
        try:
            res = requests.get(f"{settings.base_url}/models", timeout=min(10.0, settings.timeout_seconds))
            if res.status_code >= 400:
                self._logger.warning("Local LLM models discovery failed (HTTP %s)", res.status_code)
                return "local-model"

            models = res.json().get("data")
            if isinstance(models, list) and models:
                first = models[0]
                if isinstance(first, dict) and first.get("id"):
                    model_id = str(first["id"])
                    self._logger.info("Auto-selected LOCAL_LLM_MODEL=%s", model_id)
                    return model_id
        except (requests.RequestException, ValueError, AttributeError) as exc:
            self._logger.warning("Local LLM models discovery failed: %s", exc)

        return "local-model"

    def _image_as_data_url(self, image_path: Path) -> str:
        mime = mimetypes.guess_type(image_path.name)[0] or "image/png"
        encoded = base64.b64encode(image_path.read_bytes()).decode("ascii")
        return f"data:{mime};base64,{encoded}"
