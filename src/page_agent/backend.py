# backend.py
# Model backend: an OpenAI-compatible chat-completions client.
#
# The backend performs inference only. It never executes tools; tool-call
# requests are yielded as stream units and the dispatcher decides what runs.

import json
import uuid
from typing import Any, AsyncIterator, Protocol, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel

from page_agent.config import Settings
from page_agent.errors import TransportError
from page_agent.models import (
    ErrorUnit,
    FinishUnit,
    ImagePart,
    Message,
    StreamUnit,
    TextDeltaUnit,
    ToolCall,
    ToolCallUnit,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Challenge queries want near-deterministic answers.
QUERY_TEMPERATURE = 0.1


class ModelBackend(Protocol):
    def stream_chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        step_limit_hint: int | None = None,
    ) -> AsyncIterator[StreamUnit]: ...

    async def structured_query(self, messages: list[Message], output_model: type[ModelT]) -> ModelT: ...

    async def text_query(self, messages: list[Message]) -> str: ...


# ---------------------------------------------------------------------------
# Wire conversion
# ---------------------------------------------------------------------------


def to_openai_message(message: Message) -> dict[str, Any]:
    """Convert a Message into the chat-completions wire format."""
    if isinstance(message.content, str):
        content: Any = message.content
    else:
        content = []
        for part in message.content:
            if isinstance(part, ImagePart):
                content.append({"type": "image_url", "image_url": {"url": part.image}})
            else:
                content.append({"type": "text", "text": part.text})

    wire: dict[str, Any] = {"role": message.role, "content": content}

    if message.role == "assistant" and message.tool_calls:
        wire["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.tool_name, "arguments": json.dumps(call.arguments)},
            }
            for call in message.tool_calls
        ]
        if not content:
            wire["content"] = None

    if message.role == "tool":
        wire["tool_call_id"] = message.tool_call_id or ""

    return wire


def parse_arguments(raw: str) -> dict[str, Any]:
    """Decode streamed tool-call arguments. Malformed JSON yields {}."""
    if not raw or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw, strict=False)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


# ---------------------------------------------------------------------------
# OpenAI backend
# ---------------------------------------------------------------------------


class OpenAIBackend:
    """
    Streams chat completions from OpenAI or any compatible endpoint
    (OpenRouter by default when that provider is selected).

    Retries are the SDK's own (max_retries from Settings); anything that
    still fails surfaces as an error unit or a TransportError.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            max_retries=settings.max_retries,
        )

    @property
    def model(self) -> str:
        return self._settings.model

    async def stream_chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        step_limit_hint: int | None = None,
    ) -> AsyncIterator[StreamUnit]:
        """
        One model round. Text deltas are yielded as they arrive; tool calls
        are accumulated by index and yielded once the stream has ended,
        followed by a single finish unit.

        step_limit_hint is advisory: this backend makes exactly one
        completion per call and the step loop is enforced by the caller.
        """
        request: dict[str, Any] = {
            "model": self._settings.model,
            "messages": [to_openai_message(m) for m in messages],
            "temperature": self._settings.temperature,
            "stream": True,
        }
        if tools:
            request["tools"] = tools

        pending: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None

        try:
            stream = await self._client.chat.completions.create(**request)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta is not None and delta.content:
                    yield TextDeltaUnit(text=delta.content)

                if delta is not None and delta.tool_calls:
                    for tc_delta in delta.tool_calls:
                        slot = pending.setdefault(tc_delta.index, {"id": "", "name": "", "arguments": ""})
                        if tc_delta.id:
                            slot["id"] = tc_delta.id
                        if tc_delta.function:
                            if tc_delta.function.name:
                                slot["name"] = tc_delta.function.name
                            if tc_delta.function.arguments:
                                slot["arguments"] += tc_delta.function.arguments

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except Exception as exc:
            yield ErrorUnit(message=f"{type(exc).__name__}: {exc}")
            return

        for index in sorted(pending):
            slot = pending[index]
            if not slot["name"]:
                continue
            yield ToolCallUnit(
                call=ToolCall(
                    id=slot["id"] or f"call_{uuid.uuid4().hex[:12]}",
                    tool_name=slot["name"],
                    arguments=parse_arguments(slot["arguments"]),
                )
            )

        yield FinishUnit(reason=finish_reason)

    async def text_query(self, messages: list[Message]) -> str:
        """Single non-streaming completion, returned as plain text."""
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.model,
                messages=[to_openai_message(m) for m in messages],
                temperature=QUERY_TEMPERATURE,
            )
        except Exception as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        return (response.choices[0].message.content or "").strip()

    async def structured_query(self, messages: list[Message], output_model: type[ModelT]) -> ModelT:
        """
        Ask for a JSON object matching output_model and validate it.

        The schema goes into an extra system message; JSON mode keeps the
        reply parseable.
        """
        schema = json.dumps(output_model.model_json_schema())
        instruction = Message(
            role="system",
            content=(
                "Respond with a single JSON object and nothing else. "
                f"It must validate against this JSON schema:\n{schema}"
            ),
        )
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.model,
                messages=[to_openai_message(m) for m in [instruction, *messages]],
                temperature=QUERY_TEMPERATURE,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        raw = response.choices[0].message.content or ""
        return output_model.model_validate_json(_strip_fences(raw))


def create_backend(settings: Settings) -> OpenAIBackend | None:
    """Return a backend, or None when no credential is configured."""
    if not settings.has_credentials:
        return None
    return OpenAIBackend(settings)
