"""Request and response payloads of the provider HTTP APIs.

OpenAI-compatible chat completion payloads are shared by openai, deepseek, dashscope and xai; Gemini uses
its own generateContent format with camelCase field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, LetterCase, Undefined, dataclass_json

__all__: list[str] = [
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "GeminiRequest",
    "GeminiResponse",
]


@dataclass_json
@dataclass
class ChatMessage(DataClassJsonMixin):
    """One message of a chat completion conversation.

    Attributes:
        role (str): "system", "user" or "assistant".
        content (str): Message text.
    """

    role: str
    content: str


@dataclass_json
@dataclass
class ChatCompletionRequest(DataClassJsonMixin):
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.3
    max_tokens: int = 2000


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class _ChatChoice(DataClassJsonMixin):
    message: ChatMessage | None = None
    finish_reason: str | None = None


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class ChatCompletionResponse(DataClassJsonMixin):
    """Chat completion response; fields other than the choices are ignored."""

    choices: list[_ChatChoice] = field(default_factory=list)

    @property
    def text(self) -> str | None:
        """Content of the first choice, or None if the response carries no message."""
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


@dataclass_json
@dataclass
class _GeminiPart(DataClassJsonMixin):
    text: str = ""


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class _GeminiContent(DataClassJsonMixin):
    parts: list[_GeminiPart] = field(default_factory=list)
    role: str | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class _GenerationConfig(DataClassJsonMixin):
    temperature: float = 0.3
    max_output_tokens: int = 2048


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class GeminiRequest(DataClassJsonMixin):
    """generateContent request body.

    Attributes:
        contents (list[_GeminiContent]): Conversation turns; a single user turn for translations.
        generation_config (_GenerationConfig): Sampling options.
    """

    contents: list[_GeminiContent]
    generation_config: _GenerationConfig = field(default_factory=_GenerationConfig)

    @classmethod
    def from_prompt(cls, prompt: str, *, temperature: float, max_output_tokens: int) -> GeminiRequest:
        return cls(
            contents=[_GeminiContent(parts=[_GeminiPart(text=prompt)], role="user")],
            generation_config=_GenerationConfig(temperature=temperature, max_output_tokens=max_output_tokens),
        )


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class _GeminiCandidate(DataClassJsonMixin):
    content: _GeminiContent | None = None


@dataclass_json(letter_case=LetterCase.CAMEL, undefined=Undefined.EXCLUDE)
@dataclass
class GeminiResponse(DataClassJsonMixin):
    candidates: list[_GeminiCandidate] = field(default_factory=list)

    @property
    def text(self) -> str | None:
        """Text of the first part of the first candidate, or None if there is none."""
        if not self.candidates or self.candidates[0].content is None or not self.candidates[0].content.parts:
            return None
        return self.candidates[0].content.parts[0].text
