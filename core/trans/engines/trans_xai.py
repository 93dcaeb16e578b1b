from __future__ import annotations

from typing import ClassVar

from core.trans.engines.base import ChatCompletionsEngine

__all__: list[str] = ["XAITranslation"]


class XAITranslation(ChatCompletionsEngine):
    BASE_URL: ClassVar[str] = "https://api.x.ai/v1"
    DEFAULT_MODEL: ClassVar[str] = "grok-2-1212"

    @staticmethod
    def fetch_engine_name() -> str:
        return "xai"
