from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from core.trans.engines.base import HttpEngine
from core.trans.interface import ProviderApiError
from models.provider_payload_models import GeminiRequest, GeminiResponse
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["GeminiTranslation"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class GeminiTranslation(HttpEngine):
    """Google Gemini generateContent API.

    Gemini takes a single prompt, so the instructions are sent in front of the text. The API key travels
    as the ``key`` query parameter.
    """

    BASE_URL: ClassVar[str] = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL: ClassVar[str] = "gemini-1.5-flash"

    @staticmethod
    def fetch_engine_name() -> str:
        return "gemini"

    def endpoint(self, model: str) -> str:
        return f"{self.BASE_URL}/models/{model}:generateContent"

    async def _complete(self, system_prompt: str, user_text: str, *, temperature: float, max_tokens: int) -> str:
        api_key: str = self._require_api_key()
        request: GeminiRequest = GeminiRequest.from_prompt(
            f"{system_prompt}\n\nText:\n{user_text}",
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        raw: Any = await self._post(
            self.endpoint(self.model),
            request.to_dict(),
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
        )
        if not isinstance(raw, dict):
            msg: str = "Invalid response format from Gemini API"
            raise ProviderApiError(msg)
        text: str | None = GeminiResponse.from_dict(raw).text
        if not text:
            logger.debug("Gemini response without candidates: %s", raw)
            msg = "Failed to get a translation candidate from Gemini API"
            raise ProviderApiError(msg)
        return text
