from __future__ import annotations

from typing import ClassVar

from core.trans.engines.base import ChatCompletionsEngine

__all__: list[str] = ["DeepSeekTranslation"]


class DeepSeekTranslation(ChatCompletionsEngine):
    """DeepSeek chat API. Reasoning models prefix answers with <think> blocks, which are stripped."""

    BASE_URL: ClassVar[str] = "https://api.deepseek.com/v1"
    DEFAULT_MODEL: ClassVar[str] = "deepseek-chat"

    @staticmethod
    def fetch_engine_name() -> str:
        return "deepseek"
