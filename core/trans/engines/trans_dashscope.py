from __future__ import annotations

from typing import ClassVar

from core.trans.engines.base import ChatCompletionsEngine

__all__: list[str] = ["DashScopeTranslation"]


class DashScopeTranslation(ChatCompletionsEngine):
    """Alibaba Cloud DashScope (Qwen models) through its OpenAI-compatible mode."""

    BASE_URL: ClassVar[str] = "https://dashscope-intl.aliyuncs.com/compatible-mode/v1"
    DEFAULT_MODEL: ClassVar[str] = "qwen-plus"

    @staticmethod
    def fetch_engine_name() -> str:
        return "dashscope"
