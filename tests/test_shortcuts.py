import asyncio

import pytest

from page_agent.models import ShortcutAction
from page_agent.shortcut_tools import create_shortcut_tools
from page_agent.shortcuts import ShortcutManager, build_action, is_valid_accelerator

PROMPT = ShortcutAction(type="prompt", prompt="Summarize this page")

# ---------------------------------------------------------------------------
# Accelerator validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "accelerator",
    ["CmdOrCtrl+Shift+1", "Alt+S", "F12", "Ctrl+Alt+Shift+PageDown", "cmdorctrl+k", "Super+num5", "Shift+F24"],
)
def test_valid_accelerators(accelerator):
    assert is_valid_accelerator(accelerator) is True

@pytest.mark.parametrize(
    "accelerator",
    ["", "Shift+", "Ctrl+Alt+Shift+Meta+K", "Hyper+K", "Ctrl+Shift", "F25", "Ctrl+KK", "K+Ctrl"],
)
def test_invalid_accelerators(accelerator):
    assert is_valid_accelerator(accelerator) is False

# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

def test_add_assigns_id_and_timestamp():
    manager = ShortcutManager(clock=lambda: 1700000000.0)
    shortcut = manager.add("Alt+1", "Summarize", PROMPT)

    assert shortcut.id.startswith("shortcut-1700000000000-")
    assert shortcut.created_at == 1700000000.0
    assert manager.get(shortcut.id) == shortcut

def test_duplicate_accelerator_is_case_insensitive():
    manager = ShortcutManager()
    assert manager.add("Alt+S", "One", PROMPT) is not None
    assert manager.add("alt+s", "Two", PROMPT) is None
    assert len(manager) == 1

def test_invalid_accelerator_is_rejected():
    assert ShortcutManager().add("Hyper+X", "Bad", PROMPT) is None

def test_find_by_id_accelerator_or_name():
    manager = ShortcutManager()
    shortcut = manager.add("Alt+2", "Scroll Down", ShortcutAction(type="code", code="window.scrollBy(0, 500)"))

    assert manager.find(shortcut.id) == shortcut
    assert manager.find("ALT+2") == shortcut
    assert manager.find("scroll down") == shortcut
    assert manager.find("nothing") is None

def test_update_rejects_taken_accelerator():
    manager = ShortcutManager()
    manager.add("Alt+1", "One", PROMPT)
    two = manager.add("Alt+2", "Two", PROMPT)

    assert manager.update(two.id, accelerator="Alt+1") is None
    assert manager.update(two.id, accelerator="Alt+3").accelerator == "Alt+3"

def test_remove_by_accelerator():
    manager = ShortcutManager()
    manager.add("Alt+1", "One", PROMPT)
    assert manager.remove_by_accelerator("alt+1") is True
    assert manager.all() == []

def test_build_action_requires_fields():
    assert build_action("prompt") is None
    assert build_action("both", prompt="p") is None
    assert build_action("both", prompt="p", code="c").type == "both"

# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

def _tools(manager):
    return {d.name: d for d in create_shortcut_tools(manager)}

def test_add_and_list_tools():
    manager = ShortcutManager()
    tools = _tools(manager)

    added = asyncio.run(
        tools["addKeyboardShortcut"].executor(
            {"accelerator": "CmdOrCtrl+Shift+1", "name": "Summarize", "actionType": "prompt", "prompt": "Summarize"}
        )
    )
    listed = asyncio.run(tools["listKeyboardShortcuts"].executor({}))

    assert added["success"] is True
    assert added["shortcut"]["actionType"] == "prompt"
    assert listed["shortcuts"][0]["hasPrompt"] is True
    assert listed["shortcuts"][0]["hasCode"] is False

def test_add_tool_reports_missing_action_fields():
    tools = _tools(ShortcutManager())
    result = asyncio.run(
        tools["addKeyboardShortcut"].executor({"accelerator": "Alt+1", "name": "X", "actionType": "both", "code": "1"})
    )
    assert result["success"] is False
    assert "both 'code' and 'prompt'" in result["message"]

def test_update_tool_merges_action():
    manager = ShortcutManager()
    manager.add("Alt+1", "Summarize", PROMPT)
    tools = _tools(manager)

    result = asyncio.run(
        tools["updateKeyboardShortcut"].executor(
            {"currentIdentifier": "summarize", "newActionType": "both", "newCode": "console.log(1)"}
        )
    )

    assert result["success"] is True
    action = manager.find("Alt+1").action
    assert action.type == "both"
    assert action.prompt == "Summarize this page"
    assert action.code == "console.log(1)"

def test_remove_tool_by_name():
    manager = ShortcutManager()
    manager.add("Alt+1", "Summarize", PROMPT)
    result = asyncio.run(_tools(manager)["removeKeyboardShortcut"].executor({"identifier": "Summarize"}))
    assert result["success"] is True
    assert len(manager) == 0
