"""
Key decoding for the gsmtui state machine.

Textual reports special keys by name ('up', 'escape', 'ctrl+c', ...) and
printable keys through the character. Decoding depends on what currently has
the keyboard: the screen, a text-entry dialog, or a confirmation dialog.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class Action(Enum):
    QUIT = auto()
    INTERRUPT = auto()
    UP = auto()
    DOWN = auto()
    TOP = auto()
    BOTTOM = auto()
    SELECT = auto()
    BACK = auto()
    REFRESH = auto()
    NEW_SECRET = auto()
    ADD_VERSION = auto()
    DELETE = auto()
    COPY = auto()
    TOGGLE_PAYLOAD = auto()
    HELP = auto()
    ENABLE = auto()
    DISABLE = auto()
    SWITCH_PROJECT = auto()
    SEARCH = auto()
    # text entry
    CHAR = auto()
    BACKSPACE = auto()
    CURSOR_LEFT = auto()
    CURSOR_RIGHT = auto()
    # confirmation
    CONFIRM = auto()
    REJECT = auto()


class KeyMode(Enum):
    NAVIGATE = auto()
    INPUT = auto()
    CONFIRM = auto()


@dataclass(frozen=True)
class KeyAction:
    action: Action
    char: Optional[str] = None


_NAVIGATE_KEYS = {
    "up": Action.UP,
    "down": Action.DOWN,
    "home": Action.TOP,
    "end": Action.BOTTOM,
    "enter": Action.SELECT,
    "escape": Action.BACK,
    "backspace": Action.BACK,
    "f1": Action.HELP,
}

_NAVIGATE_CHARS = {
    "k": Action.UP,
    "j": Action.DOWN,
    "g": Action.TOP,
    "G": Action.BOTTOM,
    "b": Action.BACK,
    "q": Action.QUIT,
    "r": Action.REFRESH,
    "n": Action.NEW_SECRET,
    "a": Action.ADD_VERSION,
    "d": Action.DELETE,
    "c": Action.COPY,
    "s": Action.TOGGLE_PAYLOAD,
    "?": Action.HELP,
    "e": Action.ENABLE,
    "x": Action.DISABLE,
    "p": Action.SWITCH_PROJECT,
    "/": Action.SEARCH,
}

_INPUT_KEYS = {
    "enter": Action.SELECT,
    "escape": Action.BACK,
    "backspace": Action.BACKSPACE,
    "left": Action.CURSOR_LEFT,
    "right": Action.CURSOR_RIGHT,
}

_CONFIRM_KEYS = {
    "enter": Action.CONFIRM,
    "escape": Action.REJECT,
}

_CONFIRM_CHARS = {
    "y": Action.CONFIRM,
    "Y": Action.CONFIRM,
    "n": Action.REJECT,
    "N": Action.REJECT,
}


def decode_key(key: str, character: Optional[str], mode: KeyMode = KeyMode.NAVIGATE) -> Optional[KeyAction]:
    """Translate a key event to a KeyAction, or None when the key means nothing in this mode."""
    if key == "ctrl+c":
        return KeyAction(Action.INTERRUPT)

    if mode is KeyMode.INPUT:
        if key in _INPUT_KEYS:
            return KeyAction(_INPUT_KEYS[key])
        if character and character.isprintable():
            return KeyAction(Action.CHAR, character)
        return None

    if mode is KeyMode.CONFIRM:
        action = _CONFIRM_KEYS.get(key) or _CONFIRM_CHARS.get(character or "")
        return KeyAction(action) if action else None

    if key in _NAVIGATE_KEYS:
        return KeyAction(_NAVIGATE_KEYS[key])
    action = _NAVIGATE_CHARS.get(character or "")
    return KeyAction(action) if action else None
