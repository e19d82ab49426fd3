# registry.py
# Tool registry: one flat namespace of ToolDescriptors built from ordered
# origins, plus the helpers every tool module uses to build descriptors.
#
# The dispatcher imports ToolRegistry and never calls executors directly.

import json
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, ValidationError

from page_agent import display
from page_agent.models import ToolCall, ToolDescriptor, ToolResult
from page_agent.page import PageAutomationSurface, PageGetter

NO_ACTIVE_PAGE = "No active tab available"

# Merge order. Later origins overwrite earlier ones on a name collision.
ORIGIN_ORDER = ("automation", "shortcuts", "challenge", "remote")

ToolOrigin = tuple[str, Iterable[ToolDescriptor]]


# ---------------------------------------------------------------------------
# Descriptor plumbing
# ---------------------------------------------------------------------------


async def guarded(fn: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    """Run a tool body, turning any exception into a failure payload."""
    try:
        return await fn()
    except Exception as exc:
        return {"success": False, "error": str(exc) or type(exc).__name__}


async def with_active_page(
    get_page: PageGetter,
    fn: Callable[[PageAutomationSurface], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    page = get_page()
    if page is None:
        return {"success": False, "error": NO_ACTIVE_PAGE}
    return await guarded(lambda: fn(page))


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        problems.append(f"{location}: {err.get('msg', 'invalid')}")
    return "Invalid arguments: " + "; ".join(problems)


def tool(
    name: str,
    description: str,
    args_model: type[BaseModel],
    handler: Callable[[Any], Awaitable[dict[str, Any]]],
) -> ToolDescriptor:
    """
    Build a descriptor whose executor validates raw model arguments
    against args_model before calling handler with the parsed model.
    """

    async def executor(raw_args: dict[str, Any]) -> dict[str, Any]:
        try:
            parsed = args_model.model_validate(raw_args or {})
        except ValidationError as exc:
            return {"success": False, "error": _format_validation_error(exc)}
        return await handler(parsed)

    return ToolDescriptor(
        name=name,
        description=description,
        input_schema=args_model.model_json_schema(by_alias=True),
        executor=executor,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    def __init__(self, origins: list[ToolOrigin] | None = None) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._origin_of: dict[str, str] = {}
        if origins:
            self.build(origins)

    def build(self, origins: list[ToolOrigin]) -> dict[str, ToolDescriptor]:
        """
        Replace the namespace with the merge of origins, in the given order.

        A name defined by more than one origin resolves to the last one.
        No error is raised for collisions.
        """
        tools: dict[str, ToolDescriptor] = {}
        origin_of: dict[str, str] = {}
        counts: dict[str, int] = {}

        for origin_name, descriptors in origins:
            counts[origin_name] = 0
            for descriptor in descriptors:
                tools[descriptor.name] = descriptor
                origin_of[descriptor.name] = origin_name
                counts[origin_name] += 1

        self._tools = tools
        self._origin_of = origin_of
        display.registry_built(counts, len(tools))
        return dict(tools)

    def resolve(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def origin_of(self, name: str) -> str | None:
        return self._origin_of.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def as_openai_tools(self) -> list[dict[str, Any]]:
        """Render descriptors as chat-completions function specs."""
        return [
            {
                "type": "function",
                "function": {
                    "name": descriptor.name,
                    "description": descriptor.description,
                    "parameters": descriptor.input_schema,
                },
            }
            for descriptor in self._tools.values()
        ]

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Run one tool call. Never raises: an unknown tool, an executor
        exception or a failure payload all come back as success=False.
        """
        descriptor = self.resolve(call.tool_name)
        if descriptor is None:
            return ToolResult(
                tool_call_id=call.id,
                tool_name=call.tool_name,
                success=False,
                error=f"Tool '{call.tool_name}' not found",
            )

        try:
            payload = await descriptor.executor(dict(call.arguments))
        except Exception as exc:
            return ToolResult(
                tool_call_id=call.id,
                tool_name=call.tool_name,
                success=False,
                error=str(exc) or type(exc).__name__,
            )

        if not isinstance(payload, dict):
            payload = {"success": True, "result": payload}

        success = bool(payload.get("success", True))
        error = None
        if not success:
            error = str(payload.get("error") or payload.get("message") or "Tool reported failure")

        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.tool_name,
            success=success,
            payload=payload,
            error=error,
        )


def result_to_content(result: ToolResult) -> str:
    """Serialise a ToolResult for the tool message fed back to the model."""
    body = result.payload if result.payload is not None else {"success": False, "error": result.error}
    return json.dumps(body, default=str)
