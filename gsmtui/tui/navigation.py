"""
Screen/navigation state machine for gsmtui.

Turns decoded key actions into AppState mutations and API jobs. Jobs are handed
to a Host which runs them off the event loop and calls Navigator.complete() back
on it. Fetch jobs are stamped with the generation of the screen frame that
issued them; a completion whose frame is no longer the current screen, or whose
generation has been superseded, is discarded. Payload requests carry a counter
of their own, so a reveal or copy never supersedes a reload of the screen data.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from ..secrets.domains.errors import ClientError, TransientError, UnauthenticatedError
from ..secrets.domains.models import VersionState
from ..secrets.domains.validators import validate_secret_name, validate_secret_value
from .keys import Action, KeyAction, KeyMode, decode_key
from .state import AppState, Dialog, DialogKind, InputBuffer, ScreenFrame, ScreenKind

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTH_DECLINED = 1

LIST_SCREENS = (ScreenKind.PROJECT_PICKER, ScreenKind.SECRET_LIST, ScreenKind.SECRET_DETAIL)


def decode_payload(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


@dataclass
class Job:
    """One adapter call to run off the event loop."""

    failure: str
    """Prefix for the status message if the call fails"""

    call: Callable[[], Any]
    on_success: Callable[[Any], None]

    frame: Optional[ScreenFrame] = None
    """Screen that issued the job"""

    generation: Optional[int] = None
    """Generation stamp for fetches; None for mutations, which are never discarded"""

    payload: bool = False
    """Stamped with AppState.payload_generation instead of the frame's counter"""

    @property
    def is_fetch(self) -> bool:
        return self.generation is not None


class Host(ABC):
    """Services the state machine needs from the event loop that drives it."""

    @abstractmethod
    def submit(self, job: Job) -> None:
        """Run job.call() off the event loop, then call Navigator.complete() on it."""

    @abstractmethod
    def copy_to_clipboard(self, text: str) -> Tuple[bool, str]:
        """Returns (True, "") on success or (False, error_message)."""

    @abstractmethod
    def authenticate(self) -> bool:
        """Release the terminal and run the interactive login. True on success."""

    @abstractmethod
    def quit(self, return_code: int) -> None:
        pass


class Navigator:
    """Owns the navigation stack and every write to AppState."""

    def __init__(self, client, host: Host, state: Optional[AppState] = None):
        self.client = client
        self.host = host
        self.state = state or AppState()

        self._screen_actions = {
            ScreenKind.AUTH_REQUIRED: {
                Action.SELECT: self._authenticate,
            },
            ScreenKind.PROJECT_PICKER: {
                Action.SELECT: self._open_project,
                Action.REFRESH: self._refresh,
            },
            ScreenKind.SECRET_LIST: {
                Action.SELECT: self._open_secret,
                Action.REFRESH: self._refresh,
                Action.NEW_SECRET: self._start_new_secret,
                Action.DELETE: self._confirm_delete_secret,
                Action.SEARCH: self._start_search,
                Action.SWITCH_PROJECT: self._switch_project,
            },
            ScreenKind.SECRET_DETAIL: {
                Action.SELECT: self._open_version,
                Action.REFRESH: self._refresh,
                Action.ADD_VERSION: self._start_add_version,
                Action.DELETE: self._confirm_destroy_version,
                Action.ENABLE: lambda: self._change_version_state(VersionState.ENABLED),
                Action.DISABLE: lambda: self._change_version_state(VersionState.DISABLED),
                Action.TOGGLE_PAYLOAD: self._toggle_payload,
                Action.COPY: self._copy_payload,
                Action.SWITCH_PROJECT: self._switch_project,
            },
            ScreenKind.VERSION_DETAIL: {
                Action.REFRESH: self._refresh,
                Action.DELETE: self._confirm_destroy_version,
                Action.ENABLE: lambda: self._change_version_state(VersionState.ENABLED),
                Action.DISABLE: lambda: self._change_version_state(VersionState.DISABLED),
                Action.TOGGLE_PAYLOAD: self._toggle_payload,
                Action.COPY: self._copy_payload,
                Action.SWITCH_PROJECT: self._switch_project,
            },
        }

    # --- Entry points ---

    def start(self, project_id: Optional[str] = None) -> None:
        """Build the initial stack. A preselected project skips the picker."""
        state = self.state
        state.screens = [ScreenFrame(ScreenKind.PROJECT_PICKER)]
        state.dialog = None
        state.forget_payload()
        state.current_secret = None
        state.current_version = None
        state.versions = []

        if project_id:
            self._select_project(project_id)
            self._load_secrets(self._push(ScreenKind.SECRET_LIST))
        else:
            self._load_projects(state.screen)

    @property
    def key_mode(self) -> KeyMode:
        dialog = self.state.dialog
        return dialog.key_mode if dialog else KeyMode.NAVIGATE

    def handle_key(self, key: str, character: Optional[str] = None) -> bool:
        """Decode and handle a key event. Returns False if the key means nothing here."""
        key_action = decode_key(key, character, self.key_mode)
        if key_action is None:
            return False
        self.handle(key_action)
        return True

    def handle(self, key_action: KeyAction) -> None:
        action = key_action.action
        if action is Action.INTERRUPT:
            self._quit()
            return

        if self.state.dialog is not None:
            self._handle_dialog(key_action)
            return

        screen = self.state.screen
        if screen is None:
            return

        if action is Action.QUIT:
            self._quit()
        elif action is Action.HELP:
            self.state.dialog = Dialog(DialogKind.HELP)
        elif action is Action.BACK:
            self._back()
        elif action in (Action.UP, Action.DOWN, Action.TOP, Action.BOTTOM):
            if screen.kind in LIST_SCREENS:
                self._move(screen, action)
        else:
            handler = self._screen_actions[screen.kind].get(action)
            if handler is not None:
                handler()

    def complete(self, job: Job, result: Any = None, error: Optional[ClientError] = None) -> None:
        """Fold a finished job back into state. Must run on the event loop."""
        state = self.state
        if job.is_fetch:
            frame = job.frame
            if job.payload:
                current = job.generation == state.payload_generation
                if current:
                    state.payload_loading = False
            else:
                current = job.generation == frame.generation
                if current:
                    frame.loading = False
            if not current or frame is not state.screen:
                logger.debug(f"Discarding stale result ({job.failure}, generation {job.generation})")
                return
        else:
            state.pending_mutations = max(0, state.pending_mutations - 1)

        if error is not None:
            self._report_error(job, error)
            return

        state.authenticated = True
        job.on_success(result)

    # --- Stack ---

    def _push(self, kind: ScreenKind) -> ScreenFrame:
        frame = ScreenFrame(kind)
        self.state.screens.append(frame)
        self.state.message = None
        self.state.forget_payload()
        return frame

    def _back(self) -> None:
        state = self.state
        if len(state.screens) <= 1:
            return
        popped = state.screens.pop()
        state.message = None
        state.forget_payload()
        if popped.kind is ScreenKind.VERSION_DETAIL:
            state.current_version = None
        elif popped.kind is ScreenKind.SECRET_DETAIL:
            state.current_secret = None
            state.versions = []

    def _move(self, frame: ScreenFrame, action: Action) -> None:
        length = self.state.list_length(frame.kind)
        if length == 0:
            return
        if action is Action.UP:
            frame.cursor = length - 1 if frame.cursor <= 0 else frame.cursor - 1
        elif action is Action.DOWN:
            frame.cursor = 0 if frame.cursor >= length - 1 else frame.cursor + 1
        elif action is Action.TOP:
            frame.cursor = 0
        else:
            frame.cursor = length - 1
        if frame.kind is ScreenKind.SECRET_DETAIL:
            self.state.forget_payload()

    def _quit(self) -> None:
        state = self.state
        screen = state.screen
        declined = screen is not None and screen.kind is ScreenKind.AUTH_REQUIRED and not state.authenticated
        self.host.quit(EXIT_AUTH_DECLINED if declined else EXIT_OK)

    # --- Jobs ---

    def _fetch(self, frame: ScreenFrame, failure: str, call: Callable[[], Any],
               on_success: Callable[[Any], None]) -> None:
        frame.generation += 1
        frame.loading = True
        self.host.submit(Job(failure, call, on_success, frame=frame, generation=frame.generation))

    def _fetch_payload(self, failure: str, call: Callable[[], Any],
                       on_success: Callable[[Any], None]) -> None:
        state = self.state
        state.payload_generation += 1
        state.payload_loading = True
        self.host.submit(Job(failure, call, on_success, frame=state.screen,
                             generation=state.payload_generation, payload=True))

    def _mutate(self, failure: str, call: Callable[[], Any], on_success: Callable[[Any], None]) -> None:
        self.state.pending_mutations += 1
        self.host.submit(Job(failure, call, on_success, frame=self.state.screen))

    def _report_error(self, job: Job, error: ClientError) -> None:
        if isinstance(error, UnauthenticatedError):
            self._require_authentication(error)
            return

        text = f"{job.failure}: {error}"
        if isinstance(error, TransientError):
            attempts = getattr(getattr(self.client, "retry_policy", None), "attempts", None)
            if attempts:
                text += f" (gave up after {attempts} attempts)"
        logger.warning(f"{text} [{error.kind}]")
        self.state.set_error(text)

    def _require_authentication(self, error: ClientError) -> None:
        state = self.state
        logger.warning(f"Authentication required: {error}")
        state.screens = [ScreenFrame(ScreenKind.AUTH_REQUIRED)]
        state.dialog = None
        state.forget_payload()
        state.set_error(f"Authentication required: {error}")

    def _refresh_if_current(self, frame: Optional[ScreenFrame]) -> None:
        if frame is not None and frame is self.state.screen:
            self._refresh()

    # --- Loaders ---

    def _refresh(self) -> None:
        frame = self.state.screen
        self.state.forget_payload()
        loaders = {
            ScreenKind.PROJECT_PICKER: self._load_projects,
            ScreenKind.SECRET_LIST: self._load_secrets,
            ScreenKind.SECRET_DETAIL: self._load_versions,
            ScreenKind.VERSION_DETAIL: self._load_version,
        }
        loader = loaders.get(frame.kind)
        if loader is not None:
            loader(frame)

    def _load_projects(self, frame: ScreenFrame) -> None:
        state = self.state

        def apply(projects):
            state.projects = projects
            state.projects_loaded = True
            ids = [p.project_id for p in projects]
            frame.cursor = ids.index(state.project_id) if state.project_id in ids else 0

        self._fetch(frame, "Failed to load projects", self.client.list_projects, apply)

    def _load_secrets(self, frame: ScreenFrame) -> None:
        state = self.state
        project_id = state.project_id

        def apply(secrets):
            state.secrets = secrets
            state.secrets_loaded = True
            frame.cursor = min(frame.cursor, max(0, len(state.visible_secrets()) - 1))

        self._fetch(frame, "Failed to load secrets",
                    lambda: self.client.list_secrets(project_id), apply)

    def _load_versions(self, frame: ScreenFrame) -> None:
        state = self.state
        project_id = state.project_id
        secret_name = state.current_secret.name

        def apply(versions):
            state.versions = versions
            frame.cursor = min(frame.cursor, max(0, len(versions) - 1))

        self._fetch(frame, f"Failed to load versions of {secret_name}",
                    lambda: self.client.list_versions(project_id, secret_name), apply)

    def _load_version(self, frame: ScreenFrame) -> None:
        state = self.state
        project_id = state.project_id
        version = state.current_version

        def apply(fresh):
            state.current_version = fresh
            # keep the parent list in line with the confirmed state
            state.versions = [fresh if v.version_id == fresh.version_id else v for v in state.versions]

        self._fetch(frame, f"Failed to load version {version.version_id}",
                    lambda: self.client.get_version(project_id, version.secret_name, version.version_id),
                    apply)

    # --- Screen transitions ---

    def _select_project(self, project_id: str) -> None:
        state = self.state
        if project_id != state.project_id:
            state.project_id = project_id
            state.secrets = []
            state.secrets_loaded = False
            state.search_query = ""
        logger.info(f"Selected project {project_id}")

    def _open_project(self) -> None:
        project = self.state.selected_project()
        if project is None:
            return
        self._select_project(project.project_id)
        self._load_secrets(self._push(ScreenKind.SECRET_LIST))

    def _open_secret(self) -> None:
        state = self.state
        secret = state.selected_secret()
        if secret is None:
            return
        state.current_secret = secret
        state.versions = []
        self._load_versions(self._push(ScreenKind.SECRET_DETAIL))

    def _open_version(self) -> None:
        state = self.state
        version = state.selected_version()
        if version is None:
            return
        state.current_version = version
        self._load_version(self._push(ScreenKind.VERSION_DETAIL))

    def _switch_project(self) -> None:
        state = self.state
        del state.screens[1:]
        state.message = None
        state.forget_payload()
        state.current_secret = None
        state.current_version = None
        state.versions = []
        self._load_projects(state.screen)

    def _authenticate(self) -> None:
        state = self.state
        try:
            ok = self.host.authenticate()
        except ClientError as e:
            state.set_error(f"Failed to run gcloud: {e}")
            return
        if not ok:
            state.set_error("Authentication was cancelled or failed")
            return
        if hasattr(self.client, "reset"):
            self.client.reset()
        self.start(state.project_id)
        if state.screen.kind is not ScreenKind.AUTH_REQUIRED:
            state.set_message("Authentication successful")

    # --- Dialogs ---

    def _handle_dialog(self, key_action: KeyAction) -> None:
        dialog = self.state.dialog
        action = key_action.action

        if dialog.kind is DialogKind.HELP:
            self.state.dialog = None
            return

        if dialog.key_mode is KeyMode.CONFIRM:
            if action is Action.CONFIRM:
                self.state.dialog = None
                self._execute_confirmed(dialog)
            elif action is Action.REJECT:
                self.state.dialog = None
            return

        buffer = dialog.buffer
        if action is Action.CHAR:
            buffer.insert(key_action.char)
        elif action is Action.BACKSPACE:
            buffer.backspace()
        elif action is Action.CURSOR_LEFT:
            buffer.left()
        elif action is Action.CURSOR_RIGHT:
            buffer.right()
        elif action is Action.SELECT:
            self._submit_dialog(dialog)
            return
        elif action is Action.BACK:
            if dialog.kind is DialogKind.SEARCH:
                self._apply_search("")
            self.state.dialog = None
            return

        if dialog.kind is DialogKind.SEARCH:
            self._apply_search(buffer.text)

    def _submit_dialog(self, dialog: Dialog) -> None:
        if dialog.kind is DialogKind.NEW_SECRET:
            self._submit_new_secret(dialog.buffer.text.strip())
        elif dialog.kind is DialogKind.ADD_VERSION:
            self._submit_add_version(dialog.secret_name, dialog.buffer.text)
        elif dialog.kind is DialogKind.SEARCH:
            self.state.dialog = None

    def _start_new_secret(self) -> None:
        self.state.dialog = Dialog(DialogKind.NEW_SECRET)

    def _start_add_version(self) -> None:
        secret = self.state.current_secret
        if secret is not None:
            self.state.dialog = Dialog(DialogKind.ADD_VERSION, secret_name=secret.name)

    def _start_search(self) -> None:
        query = self.state.search_query
        self.state.dialog = Dialog(DialogKind.SEARCH, buffer=InputBuffer(query, len(query)))

    def _apply_search(self, query: str) -> None:
        self.state.search_query = query
        frame = self.state.frame_for(ScreenKind.SECRET_LIST)
        if frame is not None:
            frame.cursor = 0

    def _confirm_delete_secret(self) -> None:
        secret = self.state.selected_secret()
        if secret is not None:
            self.state.dialog = Dialog(DialogKind.CONFIRM_DELETE, secret_name=secret.name)

    def _confirm_destroy_version(self) -> None:
        version = self.state.selected_version()
        if version is None:
            return
        if not version.state.can_transition_to(VersionState.DESTROYED):
            self.state.set_error(f"Version {version.version_id} is already destroyed")
            return
        self.state.dialog = Dialog(DialogKind.CONFIRM_DESTROY,
                                   secret_name=version.secret_name,
                                   version_id=version.version_id)

    def _execute_confirmed(self, dialog: Dialog) -> None:
        if dialog.kind is DialogKind.CONFIRM_DELETE:
            self._delete_secret(dialog.secret_name)
        elif dialog.kind is DialogKind.CONFIRM_DESTROY:
            self._set_version_state(dialog.secret_name, dialog.version_id, VersionState.DESTROYED)

    # --- Mutations ---

    def _submit_new_secret(self, name: str) -> None:
        state = self.state
        error = validate_secret_name(name)
        if error:
            state.set_error(error)
            return
        state.dialog = None
        project_id = state.project_id
        frame = state.screen

        def done(_secret):
            state.set_message(f"Created secret: {name}")
            self._refresh_if_current(frame)

        logger.info(f"Creating secret {name} in {project_id}")
        self._mutate(f"Failed to create secret {name}",
                     lambda: self.client.create_secret(project_id, name), done)

    def _submit_add_version(self, secret_name: str, value: str) -> None:
        state = self.state
        error = validate_secret_value(value)
        if error:
            state.set_error(error)
            return
        state.dialog = None
        project_id = state.project_id
        payload = value.encode("utf-8")
        frame = state.screen

        def done(version):
            state.set_message(f"Added version {version.version_id} to {secret_name}")
            self._refresh_if_current(frame)

        logger.info(f"Adding version to {secret_name}")
        self._mutate(f"Failed to add version to {secret_name}",
                     lambda: self.client.add_version(project_id, secret_name, payload), done)

    def _delete_secret(self, secret_name: str) -> None:
        state = self.state
        project_id = state.project_id
        frame = state.screen

        def done(_result):
            state.set_message(f"Deleted secret: {secret_name}")
            self._refresh_if_current(frame)

        logger.info(f"Deleting secret {secret_name} in {project_id}")
        self._mutate(f"Failed to delete secret {secret_name}",
                     lambda: self.client.delete_secret(project_id, secret_name), done)

    def _change_version_state(self, target: VersionState) -> None:
        state = self.state
        version = state.selected_version()
        if version is None:
            return
        if version.state is VersionState.DESTROYED:
            state.set_error(f"Version {version.version_id} is destroyed and cannot change state")
            return
        if not version.state.can_transition_to(target):
            state.set_error(f"Version {version.version_id} is already {version.state.label.lower()}")
            return
        self._set_version_state(version.secret_name, version.version_id, target)

    def _set_version_state(self, secret_name: str, version_id: str, target: VersionState) -> None:
        state = self.state
        project_id = state.project_id
        frame = state.screen
        verbs = {
            VersionState.ENABLED: ("Enabled", "enable"),
            VersionState.DISABLED: ("Disabled", "disable"),
            VersionState.DESTROYED: ("Destroyed", "destroy"),
        }
        done_verb, verb = verbs[target]

        def done(_version):
            state.set_message(f"{done_verb} version {version_id} of {secret_name}")
            self._refresh_if_current(frame)

        state.forget_payload()
        logger.info(f"Requesting {verb} of {secret_name}/{version_id}")
        self._mutate(f"Failed to {verb} version {version_id}",
                     lambda: self.client.set_version_state(project_id, secret_name, version_id, target),
                     done)

    # --- Payload ---

    def _accessible_version(self):
        version = self.state.selected_version()
        if version is None:
            return None
        if version.state is VersionState.DESTROYED:
            self.state.set_error("Cannot access destroyed version - data is permanently gone")
            return None
        if version.state is VersionState.DISABLED:
            self.state.set_error("Version is disabled - press 'e' to enable it first")
            return None
        return version

    def _still_selected(self, version) -> bool:
        selected = self.state.selected_version()
        return selected is not None and selected.version_id == version.version_id

    def _toggle_payload(self) -> None:
        state = self.state
        if state.payload_visible:
            state.forget_payload()
            return
        version = self._accessible_version()
        if version is None:
            return
        project_id = state.project_id

        def apply(data):
            if not self._still_selected(version):
                return
            state.payload = data
            state.payload_visible = True
            state.set_message("Press 's' to hide value")

        self._fetch_payload(f"Failed to access version {version.version_id}",
                    lambda: self.client.access_version(project_id, version.secret_name, version.version_id),
                    apply)

    def _copy_payload(self) -> None:
        state = self.state
        version = self._accessible_version()
        if version is None:
            return
        project_id = state.project_id

        def apply(data):
            ok, error = self.host.copy_to_clipboard(decode_payload(data))
            if ok:
                state.set_message(f"Copied version {version.version_id} of {version.secret_name} to clipboard")
            else:
                state.set_error(f"Failed to copy to clipboard: {error}")

        self._fetch_payload(f"Failed to access version {version.version_id}",
                    lambda: self.client.access_version(project_id, version.secret_name, version.version_id),
                    apply)
