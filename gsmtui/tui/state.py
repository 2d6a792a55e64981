"""
Application state for the gsmtui terminal UI.

Everything the renderer reads lives here. The navigation state machine is the
only writer, and it only runs on the event-loop thread.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

from ..secrets.domains.models import Project, Secret, Version
from .keys import KeyMode


class ScreenKind(Enum):
    AUTH_REQUIRED = auto()
    PROJECT_PICKER = auto()
    SECRET_LIST = auto()
    SECRET_DETAIL = auto()
    VERSION_DETAIL = auto()


class DialogKind(Enum):
    NEW_SECRET = auto()
    ADD_VERSION = auto()
    CONFIRM_DESTROY = auto()
    CONFIRM_DELETE = auto()
    HELP = auto()
    SEARCH = auto()


class Severity(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass
class ScreenFrame:
    """One entry of the navigation stack."""

    kind: ScreenKind

    cursor: int = 0
    """Selection index into this screen's list"""

    generation: int = 0
    """Bumped on every fetch; completions stamped with an older value are stale"""

    loading: bool = False
    """True while a fetch for this screen is outstanding"""


@dataclass
class InputBuffer:
    """Single-line text entry with a cursor (character index)."""

    text: str = ""
    cursor: int = 0

    def insert(self, char: str) -> None:
        self.text = self.text[:self.cursor] + char + self.text[self.cursor:]
        self.cursor += len(char)

    def backspace(self) -> None:
        if self.cursor > 0:
            self.text = self.text[:self.cursor - 1] + self.text[self.cursor:]
            self.cursor -= 1

    def left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def right(self) -> None:
        if self.cursor < len(self.text):
            self.cursor += 1


@dataclass
class Dialog:
    """Modal dialog layered over the current screen."""

    kind: DialogKind
    buffer: InputBuffer = field(default_factory=InputBuffer)

    secret_name: Optional[str] = None
    """Secret the dialog acts on (add version, delete, destroy)"""

    version_id: Optional[str] = None
    """Version the dialog acts on (destroy)"""

    @property
    def key_mode(self) -> KeyMode:
        if self.kind in (DialogKind.NEW_SECRET, DialogKind.ADD_VERSION, DialogKind.SEARCH):
            return KeyMode.INPUT
        if self.kind in (DialogKind.CONFIRM_DESTROY, DialogKind.CONFIRM_DELETE):
            return KeyMode.CONFIRM
        return KeyMode.NAVIGATE


@dataclass
class StatusMessage:
    text: str
    severity: Severity = Severity.INFO

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


def filter_secrets(secrets: List[Secret], query: str) -> List[Secret]:
    """Secrets whose name contains query (case-insensitive), in their original order.

    Returns a new list; an empty query matches everything.
    """
    needle = query.strip().lower()
    if not needle:
        return list(secrets)
    return [secret for secret in secrets if needle in secret.name.lower()]


@dataclass
class AppState:
    """Application state for the TUI."""

    project_id: Optional[str] = None
    """Currently selected project, None before selection"""

    projects: List[Project] = field(default_factory=list)
    projects_loaded: bool = False

    secrets: List[Secret] = field(default_factory=list)
    """Secrets of project_id in API order; never reordered or filtered in place"""

    secrets_loaded: bool = False

    search_query: str = ""
    """Substring filter applied to the secret list for display"""

    current_secret: Optional[Secret] = None
    """Secret open in SecretDetail / VersionDetail"""

    versions: List[Version] = field(default_factory=list)
    """Versions of current_secret"""

    current_version: Optional[Version] = None
    """Version open in VersionDetail"""

    payload: Optional[bytes] = None
    """Revealed payload of the selected version; dropped when the view changes"""

    payload_visible: bool = False

    payload_generation: int = 0
    """Bumped on every payload request; screen data fetches use their frame's counter"""

    payload_loading: bool = False

    screens: List[ScreenFrame] = field(default_factory=list)
    """Navigation stack, bottom first"""

    dialog: Optional[Dialog] = None

    pending_mutations: int = 0
    """Outstanding create/add/enable/disable/destroy/delete calls"""

    message: Optional[StatusMessage] = None
    """Last status or error message"""

    authenticated: bool = False
    """True once any provider call has succeeded"""

    @property
    def screen(self) -> Optional[ScreenFrame]:
        return self.screens[-1] if self.screens else None

    @property
    def is_loading(self) -> bool:
        return (self.pending_mutations > 0 or self.payload_loading
                or any(frame.loading for frame in self.screens))

    def visible_secrets(self) -> List[Secret]:
        return filter_secrets(self.secrets, self.search_query)

    def list_length(self, kind: ScreenKind) -> int:
        if kind is ScreenKind.PROJECT_PICKER:
            return len(self.projects)
        if kind is ScreenKind.SECRET_LIST:
            return len(self.visible_secrets())
        if kind is ScreenKind.SECRET_DETAIL:
            return len(self.versions)
        return 0

    def frame_for(self, kind: ScreenKind) -> Optional[ScreenFrame]:
        for frame in reversed(self.screens):
            if frame.kind is kind:
                return frame
        return None

    def selected_project(self) -> Optional[Project]:
        frame = self.frame_for(ScreenKind.PROJECT_PICKER)
        if frame is None or not 0 <= frame.cursor < len(self.projects):
            return None
        return self.projects[frame.cursor]

    def selected_secret(self) -> Optional[Secret]:
        frame = self.frame_for(ScreenKind.SECRET_LIST)
        visible = self.visible_secrets()
        if frame is None or not 0 <= frame.cursor < len(visible):
            return None
        return visible[frame.cursor]

    def selected_version(self) -> Optional[Version]:
        """Version the version actions apply to on the current screen."""
        screen = self.screen
        if screen is None:
            return None
        if screen.kind is ScreenKind.VERSION_DETAIL:
            return self.current_version
        if screen.kind is ScreenKind.SECRET_DETAIL and 0 <= screen.cursor < len(self.versions):
            return self.versions[screen.cursor]
        return None

    def set_message(self, text: str, severity: Severity = Severity.INFO) -> None:
        self.message = StatusMessage(text, severity)

    def set_error(self, text: str) -> None:
        self.set_message(text, Severity.ERROR)

    def forget_payload(self) -> None:
        self.payload = None
        self.payload_visible = False
