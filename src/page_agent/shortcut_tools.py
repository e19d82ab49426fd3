# shortcut_tools.py
# Tools that let the model manage keyboard shortcuts.

from typing import Any, Literal

from pydantic import Field

from page_agent.models import Shortcut, ToolArgs, ToolDescriptor
from page_agent.registry import tool
from page_agent.shortcuts import ShortcutManager, build_action

ActionType = Literal["prompt", "code", "both"]


def _summary(shortcut: Shortcut) -> dict[str, Any]:
    return {
        "name": shortcut.name,
        "accelerator": shortcut.accelerator,
        "description": shortcut.description,
        "actionType": shortcut.action.type,
    }


class AddShortcutArgs(ToolArgs):
    accelerator: str = Field(
        ...,
        description="Accelerator such as 'CmdOrCtrl+Shift+1' or 'Alt+S'. Avoid common ones like Ctrl+C.",
    )
    name: str = Field(..., description="Short, descriptive name.")
    description: str = Field("", description="What the shortcut does.")
    action_type: ActionType = Field(
        ...,
        description="'code' runs JavaScript immediately, 'prompt' sends a message to the assistant, 'both' does both.",
    )
    code: str | None = Field(None, description="JavaScript to run (required for 'code' and 'both').")
    prompt: str | None = Field(None, description="Prompt to send (required for 'prompt' and 'both').")


class RemoveShortcutArgs(ToolArgs):
    identifier: str = Field(..., description="Name or accelerator of the shortcut to remove.")


class ListShortcutsArgs(ToolArgs):
    pass


class UpdateShortcutArgs(ToolArgs):
    current_identifier: str = Field(..., description="Current name or accelerator of the shortcut.")
    new_accelerator: str | None = None
    new_name: str | None = None
    new_description: str | None = None
    new_action_type: ActionType | None = None
    new_code: str | None = None
    new_prompt: str | None = None


def create_shortcut_tools(manager: ShortcutManager) -> list[ToolDescriptor]:
    async def add_shortcut(args: AddShortcutArgs) -> dict[str, Any]:
        action = build_action(args.action_type, prompt=args.prompt, code=args.code)
        if action is None:
            needs = "both 'code' and 'prompt'" if args.action_type == "both" else f"'{args.action_type}'"
            return {"success": False, "message": f"Invalid action: {args.action_type} requires {needs} to be provided"}

        shortcut = manager.add(args.accelerator, args.name, action, description=args.description)
        if shortcut is None:
            return {
                "success": False,
                "message": (
                    f'Failed to add keyboard shortcut. The accelerator "{args.accelerator}" '
                    "may be invalid or already in use."
                ),
            }
        return {
            "success": True,
            "message": (
                f'Successfully added keyboard shortcut "{args.name}" ({args.accelerator}) '
                f"with {args.action_type} action"
            ),
            "shortcut": _summary(shortcut),
        }

    async def remove_shortcut(args: RemoveShortcutArgs) -> dict[str, Any]:
        removed = manager.remove_by_accelerator(args.identifier)
        if not removed:
            shortcut = manager.find(args.identifier)
            removed = shortcut is not None and manager.remove(shortcut.id)
        if removed:
            return {"success": True, "message": f'Successfully removed keyboard shortcut "{args.identifier}"'}
        return {"success": False, "message": f'Keyboard shortcut "{args.identifier}" not found'}

    async def list_shortcuts(args: ListShortcutsArgs) -> dict[str, Any]:
        shortcuts = manager.all()
        if not shortcuts:
            return {"success": True, "message": "No keyboard shortcuts are currently registered.", "shortcuts": []}
        return {
            "success": True,
            "message": f"Found {len(shortcuts)} keyboard shortcut(s)",
            "shortcuts": [
                {
                    **_summary(s),
                    "hasCode": s.action.type in ("code", "both"),
                    "hasPrompt": s.action.type in ("prompt", "both"),
                }
                for s in shortcuts
            ],
        }

    async def update_shortcut(args: UpdateShortcutArgs) -> dict[str, Any]:
        shortcut = manager.find(args.current_identifier)
        if shortcut is None:
            return {"success": False, "message": f'Keyboard shortcut "{args.current_identifier}" not found'}

        action = None
        if args.new_action_type or args.new_code or args.new_prompt:
            current = shortcut.action
            # Unchanged halves of the action carry over.
            action = build_action(
                args.new_action_type or current.type,
                prompt=args.new_prompt or current.prompt,
                code=args.new_code or current.code,
            )

        updated = manager.update(
            shortcut.id,
            accelerator=args.new_accelerator,
            name=args.new_name,
            description=args.new_description,
            action=action,
        )
        if updated is None:
            return {"success": False, "message": "Failed to update keyboard shortcut"}
        return {
            "success": True,
            "message": f'Successfully updated keyboard shortcut "{shortcut.name}"',
            "shortcut": _summary(updated),
        }

    return [
        tool(
            "addKeyboardShortcut",
            "Add a keyboard shortcut that triggers an automation: run JavaScript on the page, send a prompt "
            "to the assistant, or both. Use accelerators like 'CmdOrCtrl+Shift+1'.",
            AddShortcutArgs,
            add_shortcut,
        ),
        tool(
            "removeKeyboardShortcut",
            "Remove a keyboard shortcut by its name or accelerator.",
            RemoveShortcutArgs,
            remove_shortcut,
        ),
        tool(
            "listKeyboardShortcuts",
            "List all registered keyboard shortcuts.",
            ListShortcutsArgs,
            list_shortcuts,
        ),
        tool(
            "updateKeyboardShortcut",
            "Update a keyboard shortcut's accelerator, name, description, action type, code or prompt.",
            UpdateShortcutArgs,
            update_shortcut,
        ),
    ]
