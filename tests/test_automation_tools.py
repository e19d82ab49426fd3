import asyncio
import json

from conftest import FakePage

from page_agent.automation_tools import create_automation_tools, normalize_url
from page_agent.registry import NO_ACTIVE_PAGE


def _tools(page):
    return {d.name: d for d in create_automation_tools(lambda: page)}


def _call(page, name, args):
    return asyncio.run(_tools(page)[name].executor(args))

# ---------------------------------------------------------------------------
# Tool set
# ---------------------------------------------------------------------------

def test_tool_names():
    assert set(_tools(None)) == {
        "executeJavaScript",
        "navigateToUrl",
        "clickElement",
        "typeText",
        "getPageInfo",
        "getInteractiveElements",
        "extractData",
        "waitForElement",
        "screenshot",
    }

def test_every_tool_reports_missing_page():
    for name, descriptor in _tools(None).items():
        args = {"code": "1", "url": "x", "selector": "#a", "text": "t", "selectors": {"a": "h1"}}
        payload = asyncio.run(descriptor.executor(args))
        assert payload == {"success": False, "error": NO_ACTIVE_PAGE}, name

def test_schemas_use_camel_case():
    schema = _tools(None)["typeText"].input_schema
    assert "pressEnter" in schema["properties"]
    assert set(schema["required"]) == {"selector", "text"}

# ---------------------------------------------------------------------------
# Behaviour
# ---------------------------------------------------------------------------

def test_navigate_adds_scheme():
    page = FakePage()
    payload = _call(page, "navigateToUrl", {"url": "example.org/docs"})

    assert payload == {"success": True, "message": "Navigated to https://example.org/docs"}
    assert page.navigations == ["https://example.org/docs"]
    assert normalize_url("http://plain.test") == "http://plain.test"

def test_click_element_found():
    page = FakePage(handler=lambda code: {"found": True, "tagName": "BUTTON", "text": "Log in"})
    payload = _call(page, "clickElement", {"selector": "#login"})

    assert payload["success"] is True
    assert payload["message"] == "Clicked BUTTON element"
    assert json.dumps("#login") in page.scripts[0]

def test_click_element_missing():
    page = FakePage(handler=lambda code: {"found": False})
    payload = _call(page, "clickElement", {"selector": "#nope"})
    assert payload == {"success": False, "error": "Element not found: #nope"}

def test_type_text_with_enter():
    page = FakePage(handler=lambda code: {"found": True, "tagName": "INPUT"})
    payload = _call(page, "typeText", {"selector": "#q", "text": "it's \"quoted\"", "pressEnter": True})

    assert payload["message"] == "Typed text into INPUT element and pressed Enter"
    assert json.dumps("it's \"quoted\"") in page.scripts[0]
    assert "KeyboardEvent" in page.scripts[0]

def test_execute_javascript_serialises_result():
    page = FakePage(handler=lambda code: {"count": 3})
    assert _call(page, "executeJavaScript", {"code": "x"})["result"] == json.dumps({"count": 3}, indent=2)

    page = FakePage(handler=lambda code: None)
    assert _call(page, "executeJavaScript", {"code": "void 0"})["result"] == "undefined"

def test_script_errors_become_failures():
    def handler(code):
        raise RuntimeError("SyntaxError: Unexpected token")

    payload = _call(FakePage(handler=handler), "executeJavaScript", {"code": "{{"})
    assert payload == {"success": False, "error": "SyntaxError: Unexpected token"}

def test_page_info_without_text():
    page = FakePage(url="https://a.test/", title="A")
    payload = _call(page, "getPageInfo", {"includeTextContent": False})
    assert payload == {"success": True, "url": "https://a.test/", "title": "A"}
    assert page.scripts == []

def test_wait_for_element_timeout():
    page = FakePage(handler=lambda code: {"found": False, "waited": 100})
    payload = _call(page, "waitForElement", {"selector": ".late", "timeout": 100})
    assert payload == {"success": False, "error": "Element not found within 100ms: .late"}

def test_screenshot_returns_data_url():
    payload = _call(FakePage(), "screenshot", {})
    assert payload["imageDataUrl"].startswith("data:image/png")
