# automation_tools.py
# Built-in page automation tools.
# Each tool body drives the active page through run_script / navigate /
# screenshot and reports back as a {"success": ..., ...} payload.

import json
from typing import Any, Literal

from pydantic import Field

from page_agent.models import ToolArgs, ToolDescriptor
from page_agent.page import PageAutomationSurface, PageGetter
from page_agent.registry import tool, with_active_page

ElementType = Literal["links", "buttons", "inputs", "forms"]
ALL_ELEMENT_TYPES: list[str] = ["links", "buttons", "inputs", "forms"]


def normalize_url(url: str) -> str:
    url = url.strip()
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"https://{url}"


# ---------------------------------------------------------------------------
# Page scripts
# ---------------------------------------------------------------------------


def _click_script(selector: str) -> str:
    return f"""
(function() {{
  const element = document.querySelector({json.dumps(selector)});
  if (!element) {{
    return {{ found: false }};
  }}
  element.click();
  return {{ found: true, tagName: element.tagName, text: (element.textContent || '').slice(0, 100) }};
}})()
"""


_ENTER_SNIPPET = """
  for (const type of ['keydown', 'keypress', 'keyup']) {
    element.dispatchEvent(new KeyboardEvent(type, { key: 'Enter', code: 'Enter', keyCode: 13, bubbles: true }));
  }
  if (element.form) element.form.submit();
"""


def _type_script(selector: str, text: str, press_enter: bool) -> str:
    return f"""
(function() {{
  const element = document.querySelector({json.dumps(selector)});
  if (!element) {{
    return {{ found: false }};
  }}
  element.focus();
  element.value = {json.dumps(text)};
  element.dispatchEvent(new Event('input', {{ bubbles: true }}));
  element.dispatchEvent(new Event('change', {{ bubbles: true }}));
  {_ENTER_SNIPPET if press_enter else ""}
  return {{ found: true, tagName: element.tagName }};
}})()
"""


TEXT_CONTENT_SCRIPT = """
(function() {
  const grab = (selector, type, limit) =>
    Array.from(document.querySelectorAll(selector)).slice(0, limit).map(el => ({
      type,
      text: (el.textContent || '').trim().slice(0, 200),
    })).filter(item => item.text);

  return {
    headings: [...grab('h1', 'h1', 5), ...grab('h2', 'h2', 10), ...grab('h3', 'h3', 10)],
    paragraphs: grab('p', 'paragraph', 15),
    lists: grab('ul > li, ol > li', 'list-item', 20),
  };
})()
"""


def _interactive_script(types: list[str], limit: int) -> str:
    return f"""
(function() {{
  const types = {json.dumps(types)};
  const limit = {int(limit)};
  const result = {{}};

  const collect = (selector, type) =>
    Array.from(document.querySelectorAll(selector)).slice(0, limit).map(el => ({{
      type,
      text: (el.textContent || el.value || el.placeholder || '').slice(0, 100).trim(),
      selector: el.id ? '#' + el.id : (el.className ? '.' + String(el.className).split(' ')[0] : el.tagName.toLowerCase()),
      href: el.href || undefined,
      name: el.name || undefined,
      id: el.id || undefined,
    }})).filter(item => item.text || item.href);

  if (types.includes('links')) result.links = collect('a[href]', 'link');
  if (types.includes('buttons')) result.buttons = collect('button, input[type="submit"], input[type="button"]', 'button');
  if (types.includes('inputs')) {{
    result.inputs = collect('input:not([type="hidden"]):not([type="submit"]):not([type="button"]), textarea, select', 'input');
  }}
  if (types.includes('forms')) {{
    result.forms = Array.from(document.querySelectorAll('form')).slice(0, limit).map(form => ({{
      type: 'form',
      id: form.id || undefined,
      name: form.name || undefined,
      action: form.action || undefined,
      method: form.method || undefined,
      inputCount: form.querySelectorAll('input, textarea, select').length,
    }}));
  }}
  return result;
}})()
"""


def _extract_script(selectors: dict[str, str], multiple: bool) -> str:
    return f"""
(function() {{
  const selectors = {json.dumps(selectors)};
  const multiple = {json.dumps(multiple)};
  const data = {{}};
  for (const [key, selector] of Object.entries(selectors)) {{
    if (multiple) {{
      data[key] = Array.from(document.querySelectorAll(selector))
        .map(el => (el.textContent || '').trim() || el.value || '')
        .filter(Boolean);
    }} else {{
      const el = document.querySelector(selector);
      data[key] = el ? ((el.textContent || '').trim() || el.value || '') : null;
    }}
  }}
  return data;
}})()
"""


def _wait_script(selector: str, timeout_ms: int) -> str:
    return f"""
new Promise((resolve) => {{
  const selector = {json.dumps(selector)};
  const timeout = {int(timeout_ms)};
  if (document.querySelector(selector)) {{
    resolve({{ found: true, waited: 0 }});
    return;
  }}
  const started = Date.now();
  const observer = new MutationObserver(() => {{
    if (document.querySelector(selector)) {{
      observer.disconnect();
      resolve({{ found: true, waited: Date.now() - started }});
    }}
  }});
  observer.observe(document.body, {{ childList: true, subtree: true }});
  setTimeout(() => {{
    observer.disconnect();
    resolve({{ found: false, waited: timeout }});
  }}, timeout);
}})
"""


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------


class ExecuteJavaScriptArgs(ToolArgs):
    code: str = Field(..., description="JavaScript to run on the page. The value of the last expression is returned.")


class NavigateArgs(ToolArgs):
    url: str = Field(..., description="URL to open, e.g. 'https://example.com'. A missing scheme gets https://.")


class ClickArgs(ToolArgs):
    selector: str = Field(..., description="CSS selector of the element to click, e.g. '#login-btn'.")


class TypeTextArgs(ToolArgs):
    selector: str = Field(..., description="CSS selector of the input or textarea.")
    text: str = Field(..., description="Text to put into the element.")
    press_enter: bool = Field(False, description="Simulate pressing Enter after typing.")


class PageInfoArgs(ToolArgs):
    include_text_content: bool = Field(True, description="Include headings, paragraphs and list items.")


class InteractiveElementsArgs(ToolArgs):
    element_types: list[ElementType] | None = Field(None, description="Element kinds to return. Defaults to all.")
    limit: int = Field(20, ge=1, description="Maximum elements per kind.")


class ExtractDataArgs(ToolArgs):
    selectors: dict[str, str] = Field(..., description="Field name to CSS selector, e.g. {'title': 'h1'}.")
    multiple: bool = Field(False, description="Return every match as a list instead of the first match.")


class WaitForElementArgs(ToolArgs):
    selector: str = Field(..., description="CSS selector to wait for.")
    timeout: int = Field(5000, ge=0, description="Maximum wait in milliseconds.")


class NoArgs(ToolArgs):
    pass


# ---------------------------------------------------------------------------
# Tool set
# ---------------------------------------------------------------------------


def create_automation_tools(get_page: PageGetter) -> list[ToolDescriptor]:
    """Build the built-in automation tool set bound to the active page getter."""

    async def execute_javascript(args: ExecuteJavaScriptArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            result = await page.run_script(args.code)
            rendered = "undefined" if result is None else json.dumps(result, indent=2, default=str)
            return {"success": True, "result": rendered}

        return await with_active_page(get_page, body)

    async def navigate_to_url(args: NavigateArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            full_url = normalize_url(args.url)
            await page.navigate(full_url)
            return {"success": True, "message": f"Navigated to {full_url}"}

        return await with_active_page(get_page, body)

    async def click_element(args: ClickArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            result = await page.run_script(_click_script(args.selector)) or {}
            if not result.get("found"):
                return {"success": False, "error": f"Element not found: {args.selector}"}
            return {
                "success": True,
                "message": f"Clicked {result.get('tagName')} element",
                "elementText": result.get("text"),
            }

        return await with_active_page(get_page, body)

    async def type_text(args: TypeTextArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            result = await page.run_script(_type_script(args.selector, args.text, args.press_enter)) or {}
            if not result.get("found"):
                return {"success": False, "error": f"Element not found: {args.selector}"}
            suffix = " and pressed Enter" if args.press_enter else ""
            return {"success": True, "message": f"Typed text into {result.get('tagName')} element{suffix}"}

        return await with_active_page(get_page, body)

    async def get_page_info(args: PageInfoArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            info: dict[str, Any] = {"success": True, "url": page.current_url, "title": page.current_title}
            if args.include_text_content:
                info["textContent"] = await page.run_script(TEXT_CONTENT_SCRIPT)
            return info

        return await with_active_page(get_page, body)

    async def get_interactive_elements(args: InteractiveElementsArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            types = list(args.element_types or ALL_ELEMENT_TYPES)
            elements = await page.run_script(_interactive_script(types, args.limit))
            return {"success": True, "url": page.current_url, "elements": elements}

        return await with_active_page(get_page, body)

    async def extract_data(args: ExtractDataArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            data = await page.run_script(_extract_script(args.selectors, args.multiple))
            return {"success": True, "data": data}

        return await with_active_page(get_page, body)

    async def wait_for_element(args: WaitForElementArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            result = await page.run_script(_wait_script(args.selector, args.timeout)) or {}
            if result.get("found"):
                return {"success": True, "message": f"Element found after {result.get('waited', 0)}ms"}
            return {"success": False, "error": f"Element not found within {args.timeout}ms: {args.selector}"}

        return await with_active_page(get_page, body)

    async def screenshot(args: NoArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            image = await page.screenshot()
            return {
                "success": True,
                "message": "Screenshot captured successfully",
                "imageDataUrl": image.to_data_url(),
            }

        return await with_active_page(get_page, body)

    return [
        tool(
            "executeJavaScript",
            "Execute JavaScript code on the current web page. The code runs in the page context and can "
            "read or change the DOM. Returns the result of the last expression.",
            ExecuteJavaScriptArgs,
            execute_javascript,
        ),
        tool(
            "navigateToUrl",
            "Navigate the current tab to a URL.",
            NavigateArgs,
            navigate_to_url,
        ),
        tool(
            "clickElement",
            "Click an element on the current page using a CSS selector.",
            ClickArgs,
            click_element,
        ),
        tool(
            "typeText",
            "Type text into an input field or textarea. Focuses the element, then sets its value.",
            TypeTextArgs,
            type_text,
        ),
        tool(
            "getPageInfo",
            "Get the current page URL and title, optionally with headings, paragraphs and list items.",
            PageInfoArgs,
            get_page_info,
        ),
        tool(
            "getInteractiveElements",
            "List interactive elements on the current page (links, buttons, inputs, forms).",
            InteractiveElementsArgs,
            get_interactive_elements,
        ),
        tool(
            "extractData",
            "Extract structured data from the current page using CSS selectors.",
            ExtractDataArgs,
            extract_data,
        ),
        tool(
            "waitForElement",
            "Wait for an element to appear on the page, e.g. after navigation.",
            WaitForElementArgs,
            wait_for_element,
        ),
        tool(
            "screenshot",
            "Take a screenshot of the current page.",
            NoArgs,
            screenshot,
        ),
    ]
