from __future__ import annotations

from typing import Optional, Sequence

from .models import AppInfo, ContinuityResult

DESCRIBE_PROMPT = """
スクリーンショットと現在開いているアプリケーションのリスト ({apps})、特に表示されているコンテンツについて触れながら、ユーザーが何をしているか日本語で簡潔に分析してください。表示されていないコンテンツや、不適切なコンテンツは除外してください。
""".strip()


class AIServiceError(RuntimeError):
    def __init__(self, status: Optional[int], body: str):
        self.status = status
        self.body = body
        super().__init__(f"AI service error: {status if status is not None else 'n/a'} {body}".strip())


def format_app_list(apps: Sequence[AppInfo]) -> str:
    return ", ".join(app.label() for app in apps) or "なし"


def build_describe_prompt(apps: Sequence[AppInfo], continuity: Optional[ContinuityResult] = None) -> str:
    prompt = DESCRIBE_PROMPT.format(apps=format_app_list(apps))
    if continuity is not None:
        prompt += "\n" + continuity.prompt_hint()
    return prompt


def build_analyzer(settings, log):
    """Return the AI client for the configured backend."""
    if settings.analyzer.backend == "local":
        from .local_llm_client import LocalLLMClient

        log.info("Analyzer backend: local (%s)", settings.local_llm.base_url)
        return LocalLLMClient(settings.local_llm, log)

    from .gemini_client import GeminiClient

    log.info("Analyzer backend: gemini (%s)", settings.gemini.model)
    return GeminiClient(settings.gemini, log)
