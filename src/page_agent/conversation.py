# conversation.py
# Ordered message history for one agent session.
#
# Append-only, except for the single in-flight assistant entry that the
# dispatcher amends while a model response streams in.

from page_agent.errors import ConversationError
from page_agent.models import ContentPart, Message, ToolCall


class ConversationStore:
    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._in_flight = False

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def append(self, message: Message, streaming: bool = False) -> None:
        """
        Append a message.

        With streaming=True the message becomes the in-flight assistant
        entry; it must be sealed before anything else is appended.
        """
        if message.role == "system":
            raise ConversationError("System messages are supplied per invocation, not stored.")
        if self._in_flight:
            raise ConversationError("An assistant message is still streaming; seal it first.")
        if streaming and message.role != "assistant":
            raise ConversationError("Only assistant messages can stream.")

        self._messages.append(message.model_copy(deep=True))
        self._in_flight = streaming

    def replace_last(
        self,
        content: str | list[ContentPart],
        tool_calls: list[ToolCall] | None = None,
    ) -> None:
        if not self._in_flight:
            raise ConversationError("No assistant message is streaming.")
        last = self._messages[-1]
        last.content = content
        if tool_calls is not None:
            last.tool_calls = [call.model_copy(deep=True) for call in tool_calls] or None

    def seal(self) -> None:
        self._in_flight = False

    def snapshot(self) -> list[Message]:
        return [message.model_copy(deep=True) for message in self._messages]

    def clear(self) -> None:
        self._messages.clear()
        self._in_flight = False
