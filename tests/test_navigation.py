"""Tests for the screen/navigation state machine.

The state machine is driven without a terminal: FakeClient records every
adapter call, ImmediateHost completes jobs synchronously and DeferredHost holds
them until the test runs them, so ordering and stale completions can be checked.
"""
from unittest import mock

import pytest
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import resourcemanager_v3

from gsmtui.secrets.domains.config_loader import RetryPolicy
from gsmtui.secrets.domains.errors import (
    ClientError,
    NotFoundError,
    TransientError,
    UnauthenticatedError,
)
from gsmtui.secrets.domains.gcp_client import GCPSecretClient
from gsmtui.secrets.domains.models import Project, Secret, Version, VersionState
from gsmtui.tui.navigation import Host, Navigator
from gsmtui.tui.state import DialogKind, ScreenKind, Severity


class FakeClient:
    """In-memory adapter recording each call as a (method, *args) tuple."""

    def __init__(self):
        self.retry_policy = RetryPolicy(attempts=3)
        self.calls = []
        self.failures = {}
        self.reset_count = 0
        self.projects = [Project("p1", "Project One"), Project("p2")]
        self.secrets = {
            "p1": [Secret("s1", "p1"), Secret("s2", "p1"), Secret("db-password", "p1")],
            "p2": [Secret("other", "p2")],
        }
        self.versions = {
            "s1": [Version("s1", "2", VersionState.ENABLED), Version("s1", "1", VersionState.DISABLED)],
            "s2": [Version("s2", "1", VersionState.DESTROYED)],
        }
        self.payloads = {("s1", "2"): b"hunter2"}

    def _record(self, *call):
        self.calls.append(call)
        failure = self.failures.pop(call[0], None)
        if failure is not None:
            raise failure

    def names(self):
        return [call[0] for call in self.calls]

    def reset(self):
        self.reset_count += 1

    def list_projects(self):
        self._record("list_projects")
        return list(self.projects)

    def list_secrets(self, project_id):
        self._record("list_secrets", project_id)
        return list(self.secrets.get(project_id, []))

    def create_secret(self, project_id, secret_name):
        self._record("create_secret", project_id, secret_name)
        secret = Secret(secret_name, project_id)
        self.secrets.setdefault(project_id, []).append(secret)
        return secret

    def delete_secret(self, project_id, secret_name):
        self._record("delete_secret", project_id, secret_name)
        self.secrets[project_id] = [s for s in self.secrets[project_id] if s.name != secret_name]

    def list_versions(self, project_id, secret_name):
        self._record("list_versions", project_id, secret_name)
        return list(self.versions.get(secret_name, []))

    def get_version(self, project_id, secret_name, version_id):
        self._record("get_version", project_id, secret_name, version_id)
        return next(v for v in self.versions[secret_name] if v.version_id == version_id)

    def access_version(self, project_id, secret_name, version_id):
        self._record("access_version", project_id, secret_name, version_id)
        return self.payloads[(secret_name, version_id)]

    def add_version(self, project_id, secret_name, payload):
        self._record("add_version", project_id, secret_name, payload)
        versions = self.versions.setdefault(secret_name, [])
        number = max((int(v.version_id) for v in versions), default=0) + 1
        version = Version(secret_name, str(number), VersionState.ENABLED)
        versions.insert(0, version)
        self.payloads[(secret_name, version.version_id)] = payload
        return version

    def set_version_state(self, project_id, secret_name, version_id, target):
        self._record("set_version_state", project_id, secret_name, version_id, target)
        versions = self.versions[secret_name]
        for index, version in enumerate(versions):
            if version.version_id == version_id:
                versions[index] = Version(secret_name, version_id, target)
                return versions[index]
        raise NotFoundError(f"Version {version_id} not found")


class ImmediateHost(Host):
    """Runs each job as soon as it is submitted."""

    def __init__(self):
        self.navigator = None
        self.clipboard = []
        self.clipboard_error = None
        self.auth_result = True
        self.auth_calls = 0
        self.return_code = None

    def run(self, job):
        try:
            result = job.call()
        except ClientError as e:
            self.navigator.complete(job, None, e)
            return
        self.navigator.complete(job, result)

    def submit(self, job):
        self.run(job)

    def copy_to_clipboard(self, text):
        if self.clipboard_error:
            return False, self.clipboard_error
        self.clipboard.append(text)
        return True, ""

    def authenticate(self):
        self.auth_calls += 1
        return self.auth_result

    def quit(self, return_code):
        self.return_code = return_code


class DeferredHost(ImmediateHost):
    """Holds jobs until the test runs them."""

    def __init__(self):
        super().__init__()
        self.jobs = []

    def submit(self, job):
        self.jobs.append(job)

    def run_all(self):
        while self.jobs:
            self.run(self.jobs.pop(0))


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def host():
    return ImmediateHost()


@pytest.fixture
def deferred():
    return DeferredHost()


def make_navigator(client, host):
    navigator = Navigator(client, host)
    host.navigator = navigator
    return navigator


@pytest.fixture
def navigator(client, host):
    return make_navigator(client, host)


def press(navigator, *keys):
    """Feed keys as Textual reports them: named keys without a character, others as characters."""
    for key in keys:
        if len(key) == 1:
            navigator.handle_key(key, key)
        else:
            navigator.handle_key(key, None)


def type_text(navigator, text):
    for char in text:
        navigator.handle_key(char, char)


def kinds(navigator):
    return [frame.kind for frame in navigator.state.screens]


def open_secret_detail(navigator, secret_index=0):
    navigator.start()
    press(navigator, "enter")
    for _ in range(secret_index):
        press(navigator, "j")
    press(navigator, "enter")


class TestStartup:

    def test_starts_at_project_picker(self, navigator, client):
        navigator.start()

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]
        assert client.calls == [("list_projects",)]
        assert navigator.state.projects_loaded
        assert navigator.state.authenticated

    def test_preselected_project_skips_picker(self, navigator, client):
        navigator.start("p1")

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER, ScreenKind.SECRET_LIST]
        assert client.calls == [("list_secrets", "p1")]
        assert [s.name for s in navigator.state.secrets] == ["s1", "s2", "db-password"]

    def test_select_project_opens_secret_list(self, navigator, client):
        navigator.start()
        press(navigator, "j", "enter")

        assert kinds(navigator)[-1] is ScreenKind.SECRET_LIST
        assert navigator.state.project_id == "p2"
        assert client.calls[-1] == ("list_secrets", "p2")


class TestCursor:

    def test_wraps_and_jumps(self, navigator):
        navigator.start("p1")
        frame = navigator.state.screen

        press(navigator, "k")
        assert frame.cursor == 2
        press(navigator, "j")
        assert frame.cursor == 0
        press(navigator, "G")
        assert frame.cursor == 2
        press(navigator, "g")
        assert frame.cursor == 0
        press(navigator, "end")
        assert frame.cursor == 2
        press(navigator, "home")
        assert frame.cursor == 0

    def test_empty_list_ignores_movement(self, navigator, client):
        client.secrets["p1"] = []
        navigator.start("p1")

        press(navigator, "j", "enter")

        assert navigator.state.screen.cursor == 0
        assert kinds(navigator)[-1] is ScreenKind.SECRET_LIST


class TestBack:

    def test_back_through_whole_stack_makes_no_calls(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "enter")
        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER, ScreenKind.SECRET_LIST,
                                    ScreenKind.SECRET_DETAIL, ScreenKind.VERSION_DETAIL]
        calls_before = list(client.calls)

        for _ in range(len(navigator.state.screens)):
            press(navigator, "escape")

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]
        assert client.calls == calls_before

    def test_back_keeps_loaded_data(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "b")

        assert kinds(navigator)[-1] is ScreenKind.SECRET_LIST
        assert len(navigator.state.secrets) == 3
        assert navigator.state.current_secret is None
        assert navigator.state.versions == []

    def test_back_clears_message(self, navigator, client):
        client.failures["list_versions"] = NotFoundError("gone")
        open_secret_detail(navigator)
        assert navigator.state.message.is_error

        press(navigator, "backspace")

        assert navigator.state.message is None


class TestStaleCompletions:

    def test_abandoned_screen_result_discarded(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start()
        deferred.run_all()

        press(navigator, "enter")
        assert navigator.state.is_loading
        press(navigator, "escape")
        deferred.run_all()

        assert navigator.state.secrets == []
        assert not navigator.state.secrets_loaded
        assert not navigator.state.is_loading

    def test_superseded_generation_discarded(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        press(navigator, "r")
        first, second = deferred.jobs
        deferred.jobs.clear()

        deferred.run(second)
        client.secrets["p1"] = [Secret("late", "p1")]
        deferred.run(first)

        assert [s.name for s in navigator.state.secrets] == ["s1", "s2", "db-password"]
        assert not navigator.state.screen.loading

    def test_stale_error_not_reported(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        client.failures["list_versions"] = UnauthenticatedError("expired")
        press(navigator, "escape")
        deferred.run_all()

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER, ScreenKind.SECRET_LIST]
        assert navigator.state.message is None

    def test_payload_for_deselected_version_dropped(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        deferred.run_all()

        press(navigator, "s", "j")
        deferred.run_all()

        assert not navigator.state.payload_visible
        assert navigator.state.payload is None

    def test_copy_does_not_supersede_refresh_after_add(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        deferred.run_all()

        press(navigator, "a")
        type_text(navigator, "abc")
        press(navigator, "enter")
        deferred.run(deferred.jobs.pop(0))
        assert [job.failure for job in deferred.jobs] == ["Failed to load versions of s1"]

        press(navigator, "c")
        deferred.run_all()

        assert [v.version_id for v in navigator.state.versions] == ["3", "2", "1"]
        assert deferred.clipboard == ["hunter2"]
        assert navigator.state.message.text == "Copied version 2 of s1 to clipboard"
        assert not navigator.state.is_loading

    def test_refresh_does_not_supersede_copy(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        deferred.run_all()

        press(navigator, "c", "r")
        deferred.run_all()

        assert deferred.clipboard == ["hunter2"]
        assert navigator.state.message.text == "Copied version 2 of s1 to clipboard"
        assert client.names()[-2:] == ["access_version", "list_versions"]
        assert not navigator.state.is_loading

    def test_newer_reveal_supersedes_older(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        deferred.run_all()

        press(navigator, "s")
        first = deferred.jobs.pop(0)
        press(navigator, "c")
        client.payloads[("s1", "2")] = b"rotated"
        deferred.run_all()
        deferred.run(first)

        assert deferred.clipboard == ["rotated"]
        assert not navigator.state.payload_visible
        assert not navigator.state.is_loading


class TestConfirmation:

    def test_delete_secret_requires_confirmation(self, navigator, client):
        navigator.start("p1")

        press(navigator, "d")
        assert navigator.state.dialog.kind is DialogKind.CONFIRM_DELETE
        assert "delete_secret" not in client.names()

        press(navigator, "n")
        assert navigator.state.dialog is None
        assert "delete_secret" not in client.names()

    def test_delete_secret_confirmed(self, navigator, client):
        navigator.start("p1")

        press(navigator, "d", "y")

        assert client.calls[-2:] == [("delete_secret", "p1", "s1"), ("list_secrets", "p1")]
        assert [s.name for s in navigator.state.secrets] == ["s2", "db-password"]
        assert navigator.state.message.text == "Deleted secret: s1"

    def test_reject_destroy_in_version_detail(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "enter")
        version = navigator.state.current_version
        calls_before = list(client.calls)

        press(navigator, "d")
        assert navigator.state.dialog.kind is DialogKind.CONFIRM_DESTROY
        press(navigator, "escape")

        assert navigator.state.dialog is None
        assert kinds(navigator)[-1] is ScreenKind.VERSION_DETAIL
        assert navigator.state.current_version == version
        assert client.calls == calls_before

    def test_confirm_destroy_from_secret_detail(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "d", "enter")

        assert client.calls[-2:] == [
            ("set_version_state", "p1", "s1", "2", VersionState.DESTROYED),
            ("list_versions", "p1", "s1"),
        ]
        assert navigator.state.versions[0].state is VersionState.DESTROYED
        assert navigator.state.message.text == "Destroyed version 2 of s1"

    def test_destroyed_version_is_terminal(self, navigator, client):
        open_secret_detail(navigator, secret_index=1)
        calls_before = list(client.calls)

        press(navigator, "d")
        assert navigator.state.dialog is None
        assert "already destroyed" in navigator.state.message.text

        press(navigator, "e")
        assert navigator.state.message.is_error
        press(navigator, "x")
        press(navigator, "s")
        press(navigator, "c")

        assert client.calls == calls_before
        assert navigator.state.versions[0].state is VersionState.DESTROYED


class TestDialogs:

    def test_add_version(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "a")
        type_text(navigator, "abc")
        press(navigator, "enter")

        add_calls = [call for call in client.calls if call[0] == "add_version"]
        assert add_calls == [("add_version", "p1", "s1", b"abc")]
        assert client.calls[-1] == ("list_versions", "p1", "s1")
        assert navigator.state.dialog is None
        assert [v.version_id for v in navigator.state.versions] == ["3", "2", "1"]
        assert navigator.state.message.text == "Added version 3 to s1"

    def test_empty_value_keeps_dialog_open(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "a", "enter")

        assert navigator.state.dialog.kind is DialogKind.ADD_VERSION
        assert navigator.state.message.text == "Secret value cannot be empty"
        assert "add_version" not in client.names()

    def test_escape_cancels_dialog(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "a")
        type_text(navigator, "abc")
        press(navigator, "escape")

        assert navigator.state.dialog is None
        assert kinds(navigator)[-1] is ScreenKind.SECRET_DETAIL
        assert "add_version" not in client.names()

    def test_typed_keys_do_not_trigger_actions(self, navigator, host):
        open_secret_detail(navigator)

        press(navigator, "a")
        type_text(navigator, "qd?")

        assert host.return_code is None
        assert navigator.state.dialog.buffer.text == "qd?"

    def test_line_editing(self, navigator):
        navigator.start("p1")
        press(navigator, "n")
        type_text(navigator, "secet")
        press(navigator, "left", "left")
        type_text(navigator, "r")
        assert navigator.state.dialog.buffer.text == "secret"
        press(navigator, "right", "right", "right", "backspace")

        assert navigator.state.dialog.buffer.text == "secre"

    def test_new_secret(self, navigator, client):
        navigator.start("p1")

        press(navigator, "n")
        type_text(navigator, "new-secret")
        press(navigator, "enter")

        assert client.calls[-2:] == [("create_secret", "p1", "new-secret"), ("list_secrets", "p1")]
        assert navigator.state.message.text == "Created secret: new-secret"
        assert navigator.state.message.severity is Severity.INFO

    def test_invalid_secret_name_keeps_dialog_open(self, navigator, client):
        navigator.start("p1")

        press(navigator, "n")
        type_text(navigator, "9lives")
        press(navigator, "enter")

        assert navigator.state.dialog.kind is DialogKind.NEW_SECRET
        assert navigator.state.message.text == "Secret name must start with a letter"
        assert "create_secret" not in client.names()

    def test_help_opens_and_any_key_closes(self, navigator, host):
        navigator.start("p1")

        press(navigator, "?")
        assert navigator.state.dialog.kind is DialogKind.HELP
        press(navigator, "q")

        assert navigator.state.dialog is None
        assert host.return_code is None

    def test_action_invalid_for_screen_is_noop(self, navigator, client):
        navigator.start("p1")
        calls_before = list(client.calls)

        press(navigator, "a", "s", "e")

        assert navigator.state.dialog is None
        assert client.calls == calls_before


class TestSearch:

    def test_live_filter_and_keep(self, navigator, client):
        navigator.start("p1")
        press(navigator, "j", "/")
        type_text(navigator, "S")

        assert navigator.state.search_query == "S"
        assert [s.name for s in navigator.state.visible_secrets()] == ["s1", "s2", "db-password"]
        type_text(navigator, "2")
        assert [s.name for s in navigator.state.visible_secrets()] == ["s2"]
        assert navigator.state.screen.cursor == 0

        press(navigator, "enter")
        assert navigator.state.dialog is None
        assert navigator.state.search_query == "S2"
        assert navigator.state.selected_secret().name == "s2"
        assert len(navigator.state.secrets) == 3

    def test_escape_clears_filter(self, navigator):
        navigator.start("p1")
        press(navigator, "/")
        type_text(navigator, "db")
        press(navigator, "escape")

        assert navigator.state.dialog is None
        assert navigator.state.search_query == ""
        assert len(navigator.state.visible_secrets()) == 3

    def test_select_uses_filtered_list(self, navigator, client):
        navigator.start("p1")
        press(navigator, "/")
        type_text(navigator, "db")
        press(navigator, "enter", "enter")

        assert navigator.state.current_secret.name == "db-password"
        assert client.calls[-1] == ("list_versions", "p1", "db-password")


class TestVersionState:

    def test_disable_enabled_version(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "x")

        assert client.calls[-2:] == [
            ("set_version_state", "p1", "s1", "2", VersionState.DISABLED),
            ("list_versions", "p1", "s1"),
        ]
        assert navigator.state.versions[0].state is VersionState.DISABLED

    def test_enable_already_enabled_refused(self, navigator, client):
        open_secret_detail(navigator)
        calls_before = list(client.calls)

        press(navigator, "e")

        assert client.calls == calls_before
        assert navigator.state.message.text == "Version 2 is already enabled"

    def test_enable_disabled_version(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "j", "e")

        assert ("set_version_state", "p1", "s1", "1", VersionState.ENABLED) in client.calls

    def test_version_detail_refresh_patches_list(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "enter")
        client.versions["s1"][0] = Version("s1", "2", VersionState.DISABLED)

        press(navigator, "r")

        assert client.calls[-1] == ("get_version", "p1", "s1", "2")
        assert navigator.state.current_version.state is VersionState.DISABLED
        assert navigator.state.versions[0].state is VersionState.DISABLED

    def test_mutation_after_navigating_away_does_not_refresh(self, client, deferred):
        navigator = make_navigator(client, deferred)
        navigator.start("p1")
        deferred.run_all()
        press(navigator, "enter")
        deferred.run_all()

        press(navigator, "x")
        assert navigator.state.pending_mutations == 1
        assert navigator.state.is_loading
        press(navigator, "escape")
        deferred.run_all()

        assert navigator.state.pending_mutations == 0
        assert client.calls[-1][0] == "set_version_state"
        assert navigator.state.message.text == "Disabled version 2 of s1"


class TestPayload:

    def test_toggle_reveals_and_hides(self, navigator, client):
        open_secret_detail(navigator)

        press(navigator, "s")
        assert navigator.state.payload_visible
        assert navigator.state.payload == b"hunter2"
        assert client.calls[-1] == ("access_version", "p1", "s1", "2")

        calls_before = list(client.calls)
        press(navigator, "s")
        assert not navigator.state.payload_visible
        assert navigator.state.payload is None
        assert client.calls == calls_before

    def test_moving_cursor_forgets_payload(self, navigator):
        open_secret_detail(navigator)
        press(navigator, "s", "j")

        assert navigator.state.payload is None
        assert not navigator.state.payload_visible

    def test_disabled_version_not_accessed(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "j", "s")

        assert "access_version" not in client.names()
        assert "enable it first" in navigator.state.message.text

    def test_copy(self, navigator, host):
        open_secret_detail(navigator)
        press(navigator, "c")

        assert host.clipboard == ["hunter2"]
        assert navigator.state.message.text == "Copied version 2 of s1 to clipboard"
        assert not navigator.state.payload_visible

    def test_copy_without_clipboard(self, navigator, host):
        host.clipboard_error = "Clipboard not available (no X11/Wayland)"
        open_secret_detail(navigator)
        press(navigator, "c")

        assert navigator.state.message.is_error
        assert "Clipboard not available" in navigator.state.message.text

    def test_copy_non_utf8_payload(self, navigator, host, client):
        client.payloads[("s1", "2")] = b"\xffabc"
        open_secret_detail(navigator)
        press(navigator, "c")

        assert host.clipboard == ["�abc"]


class TestAuthentication:

    def test_unauthenticated_routes_to_auth_required(self, navigator, client):
        client.failures["list_projects"] = UnauthenticatedError("Could not find default credentials")
        navigator.start()

        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]
        assert navigator.state.message.is_error

    def test_quit_without_authenticating_is_failure(self, navigator, client, host):
        client.failures["list_projects"] = UnauthenticatedError("no credentials")
        navigator.start()

        press(navigator, "q")

        assert host.return_code == 1

    def test_back_on_auth_required_is_noop(self, navigator, client):
        client.failures["list_projects"] = UnauthenticatedError("no credentials")
        navigator.start()

        press(navigator, "escape", "r")

        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]
        assert client.names() == ["list_projects"]

    def test_login_rebuilds_and_refetches(self, navigator, client, host):
        client.failures["list_secrets"] = UnauthenticatedError("token expired")
        navigator.start("p1")
        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]

        press(navigator, "enter")

        assert host.auth_calls == 1
        assert client.reset_count == 1
        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER, ScreenKind.SECRET_LIST]
        assert client.calls[-1] == ("list_secrets", "p1")
        assert navigator.state.message.text == "Authentication successful"

    def test_failed_login_stays(self, navigator, client, host):
        client.failures["list_projects"] = UnauthenticatedError("no credentials")
        host.auth_result = False
        navigator.start()

        press(navigator, "enter")

        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]
        assert client.reset_count == 0
        assert navigator.state.message.text == "Authentication was cancelled or failed"

    def test_session_expiry_then_quit_is_normal(self, navigator, client, host):
        navigator.start()
        client.failures["list_projects"] = UnauthenticatedError("expired")
        press(navigator, "r")
        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]

        press(navigator, "q")

        assert host.return_code == 0

    def test_adc_login_unlocks_project_picker(self, host):
        credentials = {"adc": False}

        class Projects:
            def search_projects(self, request):
                return [resourcemanager_v3.Project(project_id="p1", display_name="Project One")]

        def projects_client():
            if not credentials["adc"]:
                raise DefaultCredentialsError("Could not automatically determine credentials")
            return Projects()

        def adc_login():
            credentials["adc"] = True
            return True

        client = GCPSecretClient(client_factory=mock.Mock(), projects_client_factory=projects_client,
                                 sleep=lambda seconds: None)
        navigator = make_navigator(client, host)
        navigator.start()
        assert kinds(navigator) == [ScreenKind.AUTH_REQUIRED]

        host.authenticate = adc_login
        press(navigator, "enter")

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]
        assert navigator.state.projects == [Project("p1", "Project One")]
        assert navigator.state.message.text == "Authentication successful"


class TestErrorsAndQuit:

    def test_failed_fetch_keeps_previous_content(self, navigator, client):
        navigator.start("p1")
        client.failures["list_secrets"] = NotFoundError("Project p1 not found")

        press(navigator, "r")

        assert len(navigator.state.secrets) == 3
        assert navigator.state.message.text == "Failed to load secrets: Project p1 not found"

    def test_transient_exhaustion_reported(self, navigator, client):
        client.failures["list_projects"] = TransientError("Service unavailable")
        navigator.start()

        assert navigator.state.message.is_error
        assert "gave up after 3 attempts" in navigator.state.message.text
        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]

    def test_ctrl_c_quits_from_dialog(self, navigator, host):
        navigator.start("p1")
        press(navigator, "n")

        navigator.handle_key("ctrl+c", None)

        assert host.return_code == 0

    def test_unknown_key_not_handled(self, navigator):
        navigator.start("p1")

        assert navigator.handle_key("z", "z") is False


class TestSwitchProject:

    def test_switch_from_secret_detail(self, navigator, client):
        open_secret_detail(navigator)
        press(navigator, "p")

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]
        assert client.calls[-1] == ("list_projects",)
        assert navigator.state.screen.cursor == 0
        assert navigator.state.current_secret is None

        press(navigator, "j", "enter")

        assert navigator.state.project_id == "p2"
        assert [s.name for s in navigator.state.secrets] == ["other"]

    def test_new_project_clears_search(self, navigator):
        navigator.start("p1")
        press(navigator, "/")
        type_text(navigator, "db")
        press(navigator, "enter", "p", "j", "enter")

        assert navigator.state.search_query == ""

    def test_picker_back_from_preselected_does_not_fetch(self, navigator, client):
        navigator.start("p1")
        press(navigator, "escape")

        assert kinds(navigator) == [ScreenKind.PROJECT_PICKER]
        assert not navigator.state.projects_loaded
        assert client.names() == ["list_secrets"]

        press(navigator, "r")
        assert navigator.state.projects_loaded
