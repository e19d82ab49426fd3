# models.py
# Data contracts for the page agent.
# No business logic lives here, only schema and validation.

from typing import Annotated, Any, Awaitable, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system", "tool"]
ToolExecutor = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """An image attached to a message, carried as a data URL."""

    type: Literal["image"] = "image"
    image: str


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ToolCall(BaseModel):
    """A single model-requested tool invocation."""

    id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of executing a ToolCall against the registry."""

    tool_call_id: str = ""
    tool_name: str
    success: bool
    payload: dict[str, Any] | None = None
    error: str | None = None


class Message(BaseModel):
    role: Role
    content: str | list[ContentPart] = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def text(self) -> str:
        """Plain text of the message, ignoring image parts."""
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text for part in self.content if isinstance(part, TextPart))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolArgs(BaseModel):
    """Base for tool argument models. Model-facing names are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolDescriptor(BaseModel):
    """Static definition of a tool: name, schema and executor. Never mutated."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    executor: ToolExecutor


# ---------------------------------------------------------------------------
# Step loop
# ---------------------------------------------------------------------------


class StepState(BaseModel):
    step_index: int = Field(default=0, ge=0)
    max_steps: int = Field(default=10, ge=1)

    @property
    def exhausted(self) -> bool:
        return self.step_index >= self.max_steps


class TurnResult(BaseModel):
    """What one user turn produced once the step loop has stopped."""

    text: str
    steps: int
    tool_calls: int = 0
    ceiling_reached: bool = False
    error: str | None = None


# ---------------------------------------------------------------------------
# Backend stream units (backend → dispatcher)
# ---------------------------------------------------------------------------


class TextDeltaUnit(BaseModel):
    kind: Literal["text_delta"] = "text_delta"
    text: str


class ToolCallUnit(BaseModel):
    kind: Literal["tool_call"] = "tool_call"
    call: ToolCall


class ToolResultUnit(BaseModel):
    kind: Literal["tool_result"] = "tool_result"
    result: ToolResult


class FinishUnit(BaseModel):
    kind: Literal["finish"] = "finish"
    reason: str | None = None


class ErrorUnit(BaseModel):
    kind: Literal["error"] = "error"
    message: str


StreamUnit = Annotated[
    Union[TextDeltaUnit, ToolCallUnit, ToolResultUnit, FinishUnit, ErrorUnit],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Dispatcher events (dispatcher → controller → listeners)
# ---------------------------------------------------------------------------


class TextDeltaEvent(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class ToolCallEvent(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    call: ToolCall


class ToolResultEvent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    result: ToolResult


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    category: str
    message: str
    detail: str = ""


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    text: str


StreamEvent = Annotated[
    Union[TextDeltaEvent, ToolCallEvent, ToolResultEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


class ActivityEntry(BaseModel):
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: Literal["calling", "complete", "error"] = "calling"
    result: Any = None


# ---------------------------------------------------------------------------
# Challenge solving
# ---------------------------------------------------------------------------

ChallengeType = Literal["text", "image", "checkbox-grid", "unknown"]


class ChallengeDetection(BaseModel):
    found: bool
    type: ChallengeType = "unknown"
    provider: str | None = Field(default=None, description="recaptcha / hcaptcha for grid challenges.")
    selector: str | None = None
    image_url: str | None = None
    question: str | None = None


class ChallengeSession(BaseModel):
    """Mutable state of one solving attempt. Never leaves the solver."""

    type: ChallengeType
    selector: str | None = None
    iteration: int = Field(default=0, ge=0)
    max_iterations: int = Field(default=20, ge=1)


class GridJudgment(BaseModel):
    """Structured model answer for one interactive-grid round."""

    prompt: str = Field(..., description="The text of the challenge prompt/question.")
    grid_size: int = Field(9, description="Number of images in the grid (usually 9 or 16).")
    selected_images: list[int] = Field(
        default_factory=list,
        description="1-based image numbers, left-to-right, top-to-bottom, that match the prompt.",
    )


class ChallengeOutcome(BaseModel):
    status: Literal["not_detected", "resolved", "exhausted", "unsolvable", "failed"]
    success: bool
    message: str
    answer: str | None = None
    iterations: int = 0


# ---------------------------------------------------------------------------
# Keyboard shortcuts
# ---------------------------------------------------------------------------


class ShortcutAction(BaseModel):
    type: Literal["prompt", "code", "both"]
    prompt: str | None = None
    code: str | None = None


class Shortcut(BaseModel):
    id: str
    accelerator: str = Field(..., description="Accelerator such as 'CmdOrCtrl+Shift+1'.")
    name: str
    description: str = ""
    action: ShortcutAction
    created_at: float
