import asyncio

from pydantic import Field

from page_agent.models import ToolArgs, ToolCall, ToolDescriptor
from page_agent.registry import NO_ACTIVE_PAGE, ToolRegistry, guarded, tool, with_active_page


def _descriptor(name: str, marker: str) -> ToolDescriptor:
    async def executor(args):
        return {"success": True, "origin": marker}

    return ToolDescriptor(name=name, description=f"{name} from {marker}", executor=executor)

# ---------------------------------------------------------------------------
# Build / resolve
# ---------------------------------------------------------------------------

def test_later_origin_wins_on_collision():
    registry = ToolRegistry()
    registry.build(
        [
            ("automation", [_descriptor("clickElement", "automation"), _descriptor("screenshot", "automation")]),
            ("shortcuts", []),
            ("challenge", []),
            ("remote", [_descriptor("clickElement", "remote")]),
        ]
    )

    assert registry.resolve("clickElement").description == "clickElement from remote"
    assert registry.origin_of("clickElement") == "remote"
    assert registry.origin_of("screenshot") == "automation"
    assert len(registry) == 2

def test_resolve_unknown_returns_none():
    registry = ToolRegistry([("automation", [_descriptor("a", "x")])])
    assert registry.resolve("missing") is None
    assert "a" in registry

def test_rebuild_replaces_namespace():
    registry = ToolRegistry([("automation", [_descriptor("old", "x")])])
    registry.build([("remote", [_descriptor("new", "y")])])
    assert registry.names() == ["new"]

def test_as_openai_tools_shape():
    registry = ToolRegistry([("automation", [_descriptor("a", "x")])])
    spec = registry.as_openai_tools()[0]
    assert spec["type"] == "function"
    assert spec["function"]["name"] == "a"
    assert spec["function"]["parameters"]["type"] == "object"

# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def test_execute_unknown_tool():
    registry = ToolRegistry()
    result = asyncio.run(registry.execute(ToolCall(id="1", tool_name="ghost")))
    assert result.success is False
    assert result.error == "Tool 'ghost' not found"
    assert result.tool_call_id == "1"

def test_execute_exception_becomes_failed_result():
    async def explode(args):
        raise RuntimeError("boom")

    registry = ToolRegistry([("automation", [ToolDescriptor(name="x", description="", executor=explode)])])
    result = asyncio.run(registry.execute(ToolCall(id="1", tool_name="x")))

    assert result.success is False
    assert result.error == "boom"

def test_execute_failure_payload_uses_error_then_message():
    async def fails_with_message(args):
        return {"success": False, "message": "not found"}

    registry = ToolRegistry([("a", [ToolDescriptor(name="x", description="", executor=fails_with_message)])])
    result = asyncio.run(registry.execute(ToolCall(id="1", tool_name="x")))

    assert result.success is False
    assert result.error == "not found"
    assert result.payload == {"success": False, "message": "not found"}

# ---------------------------------------------------------------------------
# Descriptor plumbing
# ---------------------------------------------------------------------------

class _EchoArgs(ToolArgs):
    message: str
    shout_loud: bool = Field(False)

def test_tool_validates_camel_case_arguments():
    async def handler(args: _EchoArgs):
        return {"success": True, "message": args.message.upper() if args.shout_loud else args.message}

    descriptor = tool("echo", "Echo a message", _EchoArgs, handler)

    assert set(descriptor.input_schema["properties"]) == {"message", "shoutLoud"}
    assert asyncio.run(descriptor.executor({"message": "hi", "shoutLoud": True})) == {"success": True, "message": "HI"}

def test_tool_rejects_invalid_arguments():
    async def handler(args):
        raise AssertionError("handler must not run")

    descriptor = tool("echo", "Echo", _EchoArgs, handler)
    payload = asyncio.run(descriptor.executor({}))

    assert payload["success"] is False
    assert "message" in payload["error"]

def test_with_active_page_without_page():
    async def body(page):
        raise AssertionError("body must not run")

    payload = asyncio.run(with_active_page(lambda: None, body))
    assert payload == {"success": False, "error": NO_ACTIVE_PAGE}

def test_guarded_converts_exceptions():
    async def body():
        raise ValueError("bad selector")

    assert asyncio.run(guarded(body)) == {"success": False, "error": "bad selector"}
