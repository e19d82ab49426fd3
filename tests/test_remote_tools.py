import asyncio
import json

import httpx
from unittest.mock import patch

from page_agent.remote_tools import HttpToolCatalog, load_remote_tools, to_payload

TOOLS_BODY = {
    "tools": [
        {
            "name": "calendar.freebusy",
            "description": "Check availability",
            "input_schema": {"type": "object", "properties": {"day": {"type": "string"}}},
        },
        {"name": "weather", "description": "Current weather", "inputSchema": {"type": "object", "properties": {}}},
    ]
}


def _catalog(handler, name="server") -> HttpToolCatalog:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpToolCatalog("http://tools.test/", client=client, name=name)


def _serving(body):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/mcp/tools":
            return httpx.Response(200, json=body)
        if request.url.path == "/mcp/tools/call":
            sent = json.loads(request.content)
            return httpx.Response(200, json={"echo": sent})
        return httpx.Response(404)

    return handler

# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def test_lists_tools_with_either_schema_key():
    descriptors = asyncio.run(load_remote_tools([_catalog(_serving(TOOLS_BODY))]))

    by_name = {d.name: d for d in descriptors}
    assert set(by_name) == {"calendar.freebusy", "weather"}
    assert "day" in by_name["calendar.freebusy"].input_schema["properties"]

def test_invoke_posts_name_and_arguments():
    descriptors = asyncio.run(load_remote_tools([_catalog(_serving(TOOLS_BODY))]))
    weather = next(d for d in descriptors if d.name == "weather")

    payload = asyncio.run(weather.executor({"city": "Oslo"}))

    assert payload["success"] is True
    assert payload["echo"] == {"name": "weather", "arguments": {"city": "Oslo"}}

@patch("page_agent.remote_tools.display")
def test_failing_provider_is_skipped(mock_display):
    broken = _catalog(lambda request: httpx.Response(500), name="broken")
    working = _catalog(_serving(TOOLS_BODY), name="working")

    descriptors = asyncio.run(load_remote_tools([broken, working]))

    assert len(descriptors) == 2
    mock_display.remote_catalog_failed.assert_called_once()
    assert mock_display.remote_catalog_failed.call_args.args[0] == "broken"

def test_later_provider_wins_on_duplicate_name():
    first = _catalog(_serving({"tools": [{"name": "dup", "description": "first"}]}))
    second = _catalog(_serving({"tools": [{"name": "dup", "description": "second"}]}))

    descriptors = asyncio.run(load_remote_tools([first, second]))

    assert [d.description for d in descriptors] == ["second"]

def test_invoke_http_error_raises_runtime_error():
    def handler(request):
        if request.url.path == "/mcp/tools":
            return httpx.Response(200, json={"tools": [{"name": "flaky"}]})
        return httpx.Response(503)

    async def scenario():
        catalog = _catalog(handler)
        [descriptor] = await load_remote_tools([catalog])
        try:
            await descriptor.executor({})
        except RuntimeError as exc:
            return str(exc)
        return None

    assert "Tool server request failed" in asyncio.run(scenario())

# ---------------------------------------------------------------------------
# Payload normalisation
# ---------------------------------------------------------------------------

def test_to_payload():
    assert to_payload({"success": False, "error": "x"}) == {"success": False, "error": "x"}
    assert to_payload({"isError": True, "content": [{"type": "text", "text": "denied"}]}) == {
        "success": False,
        "error": "denied",
    }
    assert to_payload(["a", "b"]) == {"success": True, "result": ["a", "b"]}
