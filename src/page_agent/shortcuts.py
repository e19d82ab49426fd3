# shortcuts.py
# In-memory keyboard shortcut manager.
#
# Shortcuts live for the lifetime of the session. Registering them with an
# OS-level hotkey service is the host's job; the session only triggers them.

import random
import re
import string
import time
from typing import Callable

from page_agent import display
from page_agent.models import Shortcut, ShortcutAction

MODIFIER_PATTERN = re.compile(
    r"^(Command|Cmd|Control|Ctrl|CommandOrControl|CmdOrCtrl|Alt|Option|AltGr|Shift|Super|Meta)$",
    re.IGNORECASE,
)
KEY_PATTERN = re.compile(
    r"^([0-9A-Za-z]|F[1-9]|F1[0-9]|F2[0-4]|Plus|Space|Tab|Capslock|Numlock|Scrolllock|Backspace|Delete"
    r"|Insert|Return|Enter|Up|Down|Left|Right|Home|End|PageUp|PageDown|Escape|Esc|VolumeUp|VolumeDown"
    r"|VolumeMute|MediaNextTrack|MediaPreviousTrack|MediaStop|MediaPlayPause|PrintScreen|num[0-9]"
    r"|numdec|numadd|numsub|nummult|numdiv)$",
    re.IGNORECASE,
)


def is_valid_accelerator(accelerator: str) -> bool:
    """
    Check an accelerator such as 'CmdOrCtrl+Shift+1'.

    One to four '+'-separated parts; the last is a key, the rest modifiers.
    """
    parts = accelerator.split("+")
    if not 1 <= len(parts) <= 4:
        return False
    *modifiers, key = parts
    if not KEY_PATTERN.match(key):
        return False
    return all(MODIFIER_PATTERN.match(m) for m in modifiers)


def build_action(action_type: str, prompt: str | None = None, code: str | None = None) -> ShortcutAction | None:
    """Return an action, or None when the fields its type needs are missing."""
    if action_type == "prompt" and prompt:
        return ShortcutAction(type="prompt", prompt=prompt)
    if action_type == "code" and code:
        return ShortcutAction(type="code", code=code)
    if action_type == "both" and prompt and code:
        return ShortcutAction(type="both", prompt=prompt, code=code)
    return None


def _new_id(clock: Callable[[], float]) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"shortcut-{int(clock() * 1000)}-{suffix}"


class ShortcutManager:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._shortcuts: dict[str, Shortcut] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._shortcuts)

    def _accelerator_taken(self, accelerator: str, exclude_id: str | None = None) -> bool:
        wanted = accelerator.lower()
        return any(
            s.accelerator.lower() == wanted and s.id != exclude_id for s in self._shortcuts.values()
        )

    def add(self, accelerator: str, name: str, action: ShortcutAction, description: str = "") -> Shortcut | None:
        """Register a shortcut. Returns None for an invalid or taken accelerator."""
        if not is_valid_accelerator(accelerator):
            display.shortcut_rejected(accelerator, "invalid accelerator format")
            return None
        if self._accelerator_taken(accelerator):
            display.shortcut_rejected(accelerator, "accelerator already in use")
            return None

        shortcut = Shortcut(
            id=_new_id(self._clock),
            accelerator=accelerator,
            name=name,
            description=description,
            action=action,
            created_at=self._clock(),
        )
        self._shortcuts[shortcut.id] = shortcut
        return shortcut

    def remove(self, shortcut_id: str) -> bool:
        return self._shortcuts.pop(shortcut_id, None) is not None

    def remove_by_accelerator(self, accelerator: str) -> bool:
        shortcut = self.get_by_accelerator(accelerator)
        return shortcut is not None and self.remove(shortcut.id)

    def update(
        self,
        shortcut_id: str,
        accelerator: str | None = None,
        name: str | None = None,
        description: str | None = None,
        action: ShortcutAction | None = None,
    ) -> Shortcut | None:
        shortcut = self._shortcuts.get(shortcut_id)
        if shortcut is None:
            return None

        if accelerator and accelerator != shortcut.accelerator:
            if not is_valid_accelerator(accelerator):
                display.shortcut_rejected(accelerator, "invalid accelerator format")
                return None
            if self._accelerator_taken(accelerator, exclude_id=shortcut_id):
                display.shortcut_rejected(accelerator, "accelerator already in use")
                return None

        changes = {
            key: value
            for key, value in (
                ("accelerator", accelerator),
                ("name", name),
                ("description", description),
                ("action", action),
            )
            if value
        }
        updated = shortcut.model_copy(update=changes)
        self._shortcuts[shortcut_id] = updated
        return updated

    def get(self, shortcut_id: str) -> Shortcut | None:
        return self._shortcuts.get(shortcut_id)

    def get_by_accelerator(self, accelerator: str) -> Shortcut | None:
        wanted = accelerator.lower()
        for shortcut in self._shortcuts.values():
            if shortcut.accelerator.lower() == wanted:
                return shortcut
        return None

    def find(self, identifier: str) -> Shortcut | None:
        """Look a shortcut up by id, accelerator or name (case-insensitive)."""
        if identifier in self._shortcuts:
            return self._shortcuts[identifier]
        by_accelerator = self.get_by_accelerator(identifier)
        if by_accelerator is not None:
            return by_accelerator
        wanted = identifier.lower()
        for shortcut in self._shortcuts.values():
            if shortcut.name.lower() == wanted:
                return shortcut
        return None

    def all(self) -> list[Shortcut]:
        return list(self._shortcuts.values())
