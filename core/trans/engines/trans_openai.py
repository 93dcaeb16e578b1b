from __future__ import annotations

from typing import ClassVar

from core.trans.engines.base import ChatCompletionsEngine

__all__: list[str] = ["OpenAITranslation"]


class OpenAITranslation(ChatCompletionsEngine):
    BASE_URL: ClassVar[str] = "https://api.openai.com/v1"
    DEFAULT_MODEL: ClassVar[str] = "gpt-4o-mini"

    @staticmethod
    def fetch_engine_name() -> str:
        return "openai"
