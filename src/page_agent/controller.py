# controller.py
# Step Controller: the bounded multi-step loop for one user turn.
#
#   AwaitingModel → (ToolCallsPending → ExecutingTools → AwaitingModel)* → Done
#
# Each step re-sends [system] + the full history, so tool results appended
# by the dispatcher in step N are visible to the model in step N+1.

from page_agent import display
from page_agent.activity import EventListener
from page_agent.conversation import ConversationStore
from page_agent.dispatcher import StreamingDispatcher
from page_agent.models import (
    DoneEvent,
    ErrorEvent,
    Message,
    StepState,
    TextDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
    TurnResult,
)
from page_agent.registry import ToolRegistry


class StepController:
    def __init__(
        self,
        dispatcher: StreamingDispatcher,
        registry: ToolRegistry,
        store: ConversationStore,
        listener: EventListener,
        max_steps: int = 10,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._dispatcher = dispatcher
        self._registry = registry
        self._store = store
        self._listener = listener
        self.max_steps = max_steps

    async def converse(self, system_prompt: str) -> TurnResult:
        """
        Run model rounds until one produces no tool calls, a backend error
        occurs, or the step ceiling is reached.

        The ceiling is not an error: whatever text accumulated across all
        steps is returned. On a backend error the classified message is
        returned only when the turn produced nothing else.
        """
        state = StepState(max_steps=self.max_steps)
        system = Message(role="system", content=system_prompt)
        tools = self._registry.as_openai_tools()

        step_texts: list[str] = []
        tool_call_count = 0
        tool_output_seen = False
        error_message: str | None = None

        while not state.exhausted:
            state.step_index += 1
            display.step_start(state.step_index, state.max_steps)

            step_calls = 0
            messages = [system, *self._store.snapshot()]

            async for event in self._dispatcher.run(messages, tools, step_limit_hint=state.max_steps):
                if isinstance(event, TextDeltaEvent):
                    self._listener.on_text_delta(event.text)
                elif isinstance(event, ToolCallEvent):
                    step_calls += 1
                    self._listener.on_tool_call(event.call)
                elif isinstance(event, ToolResultEvent):
                    tool_output_seen = True
                    self._listener.on_tool_result(event.result)
                elif isinstance(event, ErrorEvent):
                    error_message = event.message
                    self._listener.on_error(event.category, event.message, event.detail)
                elif isinstance(event, DoneEvent) and event.text:
                    step_texts.append(event.text)

            tool_call_count += step_calls

            if error_message is not None or step_calls == 0:
                break
        else:
            display.step_ceiling_reached(state.max_steps)

        text = "\n\n".join(step_texts)
        ceiling_reached = state.exhausted and error_message is None and step_calls > 0

        if error_message is not None and not text and not tool_output_seen:
            text = error_message

        return TurnResult(
            text=text,
            steps=state.step_index,
            tool_calls=tool_call_count,
            ceiling_reached=ceiling_reached,
            error=error_message,
        )
