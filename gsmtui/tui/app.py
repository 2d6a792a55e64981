"""
Textual application for gsmtui

Hosts the navigation state machine: forwards key events to it, runs its API
jobs on worker threads and redraws from AppState after every change.
"""

import logging
from typing import Optional, Tuple

import pyperclip
from pyperclip import PyperclipException
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Static

from ..secrets.domains.errors import ClientError, UnknownError
from ..secrets.domains.project_client import run_adc_login
from .keys import Action, KeyAction
from .navigation import Host, Job, Navigator
from .render import render_body, render_commands, render_dialog, render_header, render_status
from .state import AppState

logger = logging.getLogger(__name__)


def safe_copy_to_clipboard(text: str) -> Tuple[bool, str]:
    """Copy text to the clipboard, handling headless systems.

    Returns:
        (True, "") on success
        (False, error_message) on failure
    """
    try:
        pyperclip.copy(text)
        return True, ""
    except PyperclipException:
        return False, "Clipboard not available (no X11/Wayland)"


class TextualHost(Host):
    """Runs navigator jobs on Textual thread workers."""

    def __init__(self, app: "SecretManagerApp"):
        self.app = app

    def submit(self, job: Job) -> None:
        self.app.run_worker(lambda: self._execute(job), group="api", thread=True)

    def _execute(self, job: Job) -> None:
        """Worker-thread body: run the call and hand the outcome back to the event loop."""
        try:
            result = job.call()
        except ClientError as e:
            self.app.call_from_thread(self.app.complete_job, job, None, e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error: {job.failure}")
            self.app.call_from_thread(self.app.complete_job, job, None, UnknownError(str(e), cause=e))
            return
        self.app.call_from_thread(self.app.complete_job, job, result, None)

    def copy_to_clipboard(self, text: str) -> Tuple[bool, str]:
        return safe_copy_to_clipboard(text)

    def authenticate(self) -> bool:
        logger.info("Running gcloud auth application-default login")
        with self.app.suspend():
            return run_adc_login()

    def quit(self, return_code: int) -> None:
        logger.info(f"Exiting with code {return_code}")
        self.app.exit(return_code=return_code)


class SecretManagerApp(App):
    """The gsmtui terminal application"""

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Quit", show=False, priority=True),
    ]

    CSS = """
    Screen {
        background: #000000;
        layers: base overlay;
    }

    #header {
        dock: top;
        height: 1;
        background: #111111;
    }

    #body_scroll {
        padding: 0 1;
        border: round #37474f;
    }

    #dialog {
        layer: overlay;
        width: 70;
        height: auto;
        max-height: 90%;
        offset: 10 4;
        padding: 1 2;
        background: #111111;
        border: double #4fc3f7;
    }

    #status {
        dock: bottom;
        height: 1;
    }

    #commands {
        dock: bottom;
        height: 1;
        background: #111111;
    }
    """

    def __init__(self, client, project_id: Optional[str] = None, state: Optional[AppState] = None):
        super().__init__()
        self.initial_project_id = project_id
        self.navigator = Navigator(client, TextualHost(self), state)

    @property
    def state(self) -> AppState:
        return self.navigator.state

    def compose(self) -> ComposeResult:
        yield Static("", id="header")
        with VerticalScroll(id="body_scroll"):
            yield Static("", id="body")
        yield Static("", id="commands")
        yield Static("", id="status")
        yield Static("", id="dialog")

    def on_mount(self) -> None:
        logger.debug("gsmtui on_mount called")
        self.navigator.start(self.initial_project_id)
        self.redraw()

    def on_key(self, event) -> None:
        if self.navigator.handle_key(event.key, event.character):
            event.stop()
            event.prevent_default()
        self.redraw()

    def action_interrupt(self) -> None:
        self.navigator.handle(KeyAction(Action.INTERRUPT))

    def complete_job(self, job: Job, result, error: Optional[ClientError]) -> None:
        self.navigator.complete(job, result, error)
        self.redraw()

    def redraw(self) -> None:
        state = self.state
        self.query_one("#header", Static).update(render_header(state))
        self.query_one("#body", Static).update(render_body(state))
        self.query_one("#status", Static).update(render_status(state))
        self.query_one("#commands", Static).update(render_commands(state))

        dialog = self.query_one("#dialog", Static)
        markup = render_dialog(state)
        dialog.display = markup is not None
        dialog.update(markup or "")
