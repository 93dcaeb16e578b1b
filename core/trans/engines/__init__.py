"""Translation provider implementations.

This package contains concrete implementations of the TransInterface for AI translation services.
Importing the package registers every provider in ``TransInterface.registered``.

Modules:
- base: HTTP plumbing, retries, error mapping, prompt building and output sanitisation.
- DashScopeTranslation, DeepSeekTranslation, OpenAITranslation, XAITranslation: OpenAI-compatible chat APIs.
- GeminiTranslation: Google Gemini generateContent API.
"""

from core.trans.engines.base import ChatCompletionsEngine, HttpEngine, build_system_prompt, sanitize_translation
from core.trans.engines.trans_dashscope import DashScopeTranslation
from core.trans.engines.trans_deepseek import DeepSeekTranslation
from core.trans.engines.trans_gemini import GeminiTranslation
from core.trans.engines.trans_openai import OpenAITranslation
from core.trans.engines.trans_xai import XAITranslation

__all__: list[str] = [
    "ChatCompletionsEngine",
    "DashScopeTranslation",
    "DeepSeekTranslation",
    "GeminiTranslation",
    "HttpEngine",
    "OpenAITranslation",
    "XAITranslation",
    "build_system_prompt",
    "sanitize_translation",
]
