# remote_tools.py
# Dynamically discovered tools from external tool servers.
#
# A provider lists tool definitions and invokes them by name. The HTTP
# provider speaks the simple JSON catalog protocol:
#   GET  {base}/mcp/tools        -> {"tools": [{name, description, input_schema}]}
#   POST {base}/mcp/tools/call   <- {"name": ..., "arguments": {...}}
# Connecting to, launching or configuring servers is the host's job.

import uuid
from typing import Any, Protocol

import httpx

from page_agent import display
from page_agent.models import ToolDescriptor

_TIMEOUT = 30.0

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class ToolCatalogProvider(Protocol):
    name: str

    async def list_tools(self) -> list[dict[str, Any]]: ...

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> Any: ...


class HttpToolCatalog:
    """Tool catalog served over HTTP by a single tool server."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        name: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.name = name or self.base_url
        self._client = client or httpx.AsyncClient(
            timeout=_TIMEOUT,
            headers={"Accept": "application/json", **(headers or {})},
        )

    async def list_tools(self) -> list[dict[str, Any]]:
        response = await self._client.get(f"{self.base_url}/mcp/tools")
        response.raise_for_status()
        body = response.json()
        tools = body.get("tools", []) if isinstance(body, dict) else body
        return [t for t in tools if isinstance(t, dict) and t.get("name")]

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """
        Call a tool on the server.

        Raises RuntimeError on HTTP/network errors; the registry turns that
        into a failed ToolResult.
        """
        url = f"{self.base_url}/mcp/tools/call"
        try:
            response = await self._client.post(
                url,
                json={"name": tool_name, "arguments": arguments or {}},
                headers={"X-Request-ID": str(uuid.uuid4())},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Tool server request failed ({url}): {exc}") from exc
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


def _content_text(content: Any) -> str:
    if isinstance(content, list):
        return "\n".join(str(item.get("text", "")) for item in content if isinstance(item, dict)).strip()
    return str(content or "")


def to_payload(result: Any) -> dict[str, Any]:
    """Normalise whatever a tool server returned into a tool payload."""
    if isinstance(result, dict):
        if "success" in result:
            return result
        if result.get("isError"):
            return {"success": False, "error": _content_text(result.get("content")) or "Remote tool failed"}
        return {"success": True, **result}
    return {"success": True, "result": result}


def _descriptor(provider: ToolCatalogProvider, definition: dict[str, Any]) -> ToolDescriptor:
    tool_name = definition["name"]

    async def executor(arguments: dict[str, Any]) -> dict[str, Any]:
        return to_payload(await provider.invoke(tool_name, arguments))

    schema = definition.get("input_schema") or definition.get("inputSchema") or EMPTY_SCHEMA
    return ToolDescriptor(
        name=tool_name,
        description=definition.get("description") or f"Remote tool {tool_name}",
        input_schema=schema,
        executor=executor,
    )


async def load_remote_tools(providers: list[ToolCatalogProvider]) -> list[ToolDescriptor]:
    """
    Collect descriptors from every provider, in order.

    A provider that fails to list is reported and skipped. Duplicate names
    across providers resolve to the later provider.
    """
    merged: dict[str, ToolDescriptor] = {}
    for provider in providers:
        try:
            definitions = await provider.list_tools()
        except Exception as exc:
            display.remote_catalog_failed(getattr(provider, "name", repr(provider)), exc)
            continue
        for definition in definitions:
            descriptor = _descriptor(provider, definition)
            merged[descriptor.name] = descriptor
    return list(merged.values())
