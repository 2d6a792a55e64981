"""
Rendering for gsmtui

Pure functions from AppState to Rich markup strings. Nothing here mutates state
or talks to the API; the Textual app pushes the results into Static widgets.
"""

from typing import List, Optional, Tuple

from rich.markup import escape as rich_escape

from ..secrets.domains.models import Version, VersionState, format_timestamp
from .navigation import decode_payload
from .state import AppState, DialogKind, ScreenKind

COLORS = {
    'primary': '#4fc3f7',
    'secondary': '#81c784',
    'accent': '#ba68c8',
    'key': '#ffd54f',
    'text': '#ffffff',
    'text_dim': '#888888',
    'selection_bg': '#263238',
    'success': '#66bb6a',
    'warning': '#ffa726',
    'error': '#ef5350',
}

MASK = '•' * 16
SHOW_HINT = "press 's' to show"
NO_VERSIONS_HINT = "No versions yet - press 'a' to add one"

STATE_COLORS = {
    VersionState.ENABLED: 'success',
    VersionState.DISABLED: 'warning',
    VersionState.DESTROYED: 'error',
}

SCREEN_TITLES = {
    ScreenKind.AUTH_REQUIRED: 'Authentication Required',
    ScreenKind.PROJECT_PICKER: 'Select Project',
    ScreenKind.SECRET_LIST: 'Secrets',
    ScreenKind.SECRET_DETAIL: 'Secret Details',
    ScreenKind.VERSION_DETAIL: 'Version Details',
}

_NAV = [('↑↓', 'Navigate'), ('Enter', 'Select')]
_GENERAL = [('r', 'Refresh'), ('?', 'Help'), ('q', 'Quit')]

COMMANDS = {
    ScreenKind.AUTH_REQUIRED: [('Enter', 'Login'), ('q', 'Quit')],
    ScreenKind.PROJECT_PICKER: _NAV + _GENERAL,
    ScreenKind.SECRET_LIST: _NAV + [('n', 'New'), ('d', 'Delete'), ('/', 'Search'),
                                    ('p', 'Project'), ('Esc', 'Back')] + _GENERAL,
    ScreenKind.SECRET_DETAIL: _NAV + [('a', 'Add'), ('s', 'Show'), ('c', 'Copy'),
                                      ('e', 'Enable'), ('x', 'Disable'), ('d', 'Destroy'),
                                      ('Esc', 'Back')] + _GENERAL,
    ScreenKind.VERSION_DETAIL: [('s', 'Show'), ('c', 'Copy'), ('e', 'Enable'),
                                ('x', 'Disable'), ('d', 'Destroy'), ('Esc', 'Back')] + _GENERAL,
}

DIALOG_COMMANDS = {
    DialogKind.NEW_SECRET: [('Enter', 'Create'), ('Esc', 'Cancel')],
    DialogKind.ADD_VERSION: [('Enter', 'Add'), ('Esc', 'Cancel')],
    DialogKind.SEARCH: [('Enter', 'Apply'), ('Esc', 'Clear')],
    DialogKind.CONFIRM_DELETE: [('y', 'Confirm'), ('n', 'Cancel')],
    DialogKind.CONFIRM_DESTROY: [('y', 'Confirm'), ('n', 'Cancel')],
    DialogKind.HELP: [('any key', 'Close')],
}

HELP_SECTIONS = [
    ('NAVIGATION', [
        ('j / ↓', 'Move to next item'),
        ('k / ↑', 'Move to previous item'),
        ('g / Home', 'Jump to first item'),
        ('G / End', 'Jump to last item'),
        ('Enter', 'Select / View details'),
        ('Esc / b', 'Go back to previous view'),
        ('p', 'Switch project'),
    ]),
    ('SECRETS', [
        ('n', 'Create a new secret'),
        ('d', 'Delete selected secret'),
        ('/', 'Filter secrets by name'),
    ]),
    ('VERSIONS', [
        ('a', 'Add a new version with value'),
        ('s', 'Show / Hide secret value'),
        ('c', 'Copy secret value to clipboard'),
        ('e', 'Enable a disabled version'),
        ('x', 'Disable an enabled version'),
        ('d', 'Destroy selected version'),
    ]),
    ('GENERAL', [
        ('r', 'Refresh current view'),
        ('? / F1', 'Show this help'),
        ('q / Ctrl+C', 'Quit application'),
    ]),
]


def _c(role: str, text: str, bold: bool = False) -> str:
    """Wrap already-escaped text in a color tag."""
    color = COLORS[role]
    style = f"bold {color}" if bold else color
    return f"[{style}]{text}[/{style}]"


def _field(label: str, value: str) -> str:
    return f"  {_c('text_dim', rich_escape(label) + ':')} {_c('text', rich_escape(value))}"


def _row(text: str, selected: bool) -> str:
    if selected:
        return f"[bold {COLORS['text']} on {COLORS['selection_bg']}]▶ {text}[/]"
    return f"  {text}"


def _empty(title: str, hint: str) -> str:
    return "\n".join([
        "",
        f"  {_c('primary', rich_escape(title), bold=True)}",
        "",
        f"  {_c('text_dim', rich_escape(hint))}",
    ])


def state_label(version: Version) -> str:
    return _c(STATE_COLORS[version.state], version.state.label)


def render_header(state: AppState) -> str:
    """Title bar: app name, project, breadcrumb and sync indicator."""
    parts = [_c('primary', 'GCP Secret Manager', bold=True)]
    if state.project_id:
        parts.append(_c('secondary', rich_escape(state.project_id)))
    if state.current_secret is not None and state.screen is not None \
            and state.screen.kind in (ScreenKind.SECRET_DETAIL, ScreenKind.VERSION_DETAIL):
        parts.append(_c('text', rich_escape(state.current_secret.name)))
    if state.current_version is not None and state.screen is not None \
            and state.screen.kind is ScreenKind.VERSION_DETAIL:
        parts.append(_c('text', f"v{rich_escape(state.current_version.version_id)}"))
    indicator = _c('warning', '◈ SYNC', bold=True) if state.is_loading else _c('text_dim', 'Google Cloud')
    return f" {' › '.join(parts)}  {indicator}"


def render_body(state: AppState) -> str:
    screen = state.screen
    if screen is None:
        return ""
    renderers = {
        ScreenKind.AUTH_REQUIRED: _render_auth_required,
        ScreenKind.PROJECT_PICKER: _render_project_picker,
        ScreenKind.SECRET_LIST: _render_secret_list,
        ScreenKind.SECRET_DETAIL: _render_secret_detail,
        ScreenKind.VERSION_DETAIL: _render_version_detail,
    }
    title = _c('primary', SCREEN_TITLES[screen.kind], bold=True)
    return f"{title}\n\n{renderers[screen.kind](state)}"


def _render_auth_required(state: AppState) -> str:
    return "\n".join([
        "",
        f"  {_c('primary', 'GCP credentials not found', bold=True)}",
        "",
        f"  {_c('text', 'To use this app, you need to authenticate with Google Cloud.')}",
        "",
        f"  {_c('text_dim', 'Press')} {_c('key', 'Enter', bold=True)} {_c('text_dim', 'to run:')} "
        f"{_c('secondary', 'gcloud auth application-default login')}",
        "",
        f"  {_c('text_dim', 'This will open your browser to authenticate.')}",
        f"  {_c('warning', 'Make sure to check all permission boxes in the consent screen.')}",
        "",
        f"  {_c('text_dim', 'Press')} {_c('key', 'q', bold=True)} {_c('text_dim', 'to quit')}",
    ])


def _render_project_picker(state: AppState) -> str:
    if not state.projects:
        if state.screen.loading:
            return _empty("Loading projects...", "Searching Resource Manager for accessible projects")
        if not state.projects_loaded:
            return _empty("Projects not loaded", "Press 'r' to load the projects you can access")
        return _empty("No projects found", "Check that your account can see at least one project")

    cursor = state.screen.cursor
    lines = []
    for index, project in enumerate(state.projects):
        text = rich_escape(project.project_id)
        if project.display_name != project.project_id:
            text += f"  {_c('text_dim', rich_escape(project.display_name))}"
        if project.project_id == state.project_id:
            text += f"  {_c('secondary', '(current)')}"
        lines.append(_row(text, index == cursor))
    return "\n".join(lines)


def _render_secret_list(state: AppState) -> str:
    visible = state.visible_secrets()
    header = []
    if state.search_query:
        header = [f"  {_c('accent', 'Filter:')} {rich_escape(state.search_query)}  "
                  f"{_c('text_dim', f'{len(visible)} of {len(state.secrets)}')}", ""]

    if not visible:
        if state.screen.loading:
            body = _empty("Loading secrets...", f"Listing secrets in {state.project_id}")
        elif state.search_query:
            body = _empty("No matching secrets", "Press '/' to change the filter")
        else:
            body = _empty("No secrets found", "Press 'n' to create your first secret")
        return "\n".join(header + [body])

    cursor = state.screen.cursor
    lines = []
    for index, secret in enumerate(visible):
        created = _c('text_dim', format_timestamp(secret.create_time))
        lines.append(_row(f"{rich_escape(secret.name)}  {created}", index == cursor))
    return "\n".join(header + lines)


def _payload_lines(state: AppState, version: Optional[Version]) -> List[str]:
    lines = [f"  {_c('accent', 'Value', bold=True)}"]
    if version is None:
        return lines
    if version.state is VersionState.DESTROYED:
        lines.append(f"  {_c('error', 'Destroyed - data is permanently gone')}")
    elif version.state is VersionState.DISABLED:
        lines.append(f"  {_c('warning', 'Disabled - enable the version to read its value')}")
    elif state.payload_visible and state.payload is not None:
        for line in decode_payload(state.payload).splitlines() or [""]:
            lines.append(f"  {_c('text', rich_escape(line))}")
    else:
        lines.append(f"  {_c('text_dim', MASK)}  {_c('text_dim', SHOW_HINT)}")
    return lines


def _render_secret_detail(state: AppState) -> str:
    secret = state.current_secret
    lines = [
        _field('Name', secret.name),
        _field('Created', format_timestamp(secret.create_time)),
        _field('Replication', secret.replication),
    ]
    for title, mapping in (('Labels', secret.labels), ('Annotations', secret.annotations),
                           ('Aliases', secret.version_aliases)):
        if mapping:
            lines.append(_field(title, ", ".join(f"{k}={v}" for k, v in sorted(mapping.items()))))

    lines += ["", f"  {_c('accent', 'Versions', bold=True)}"]
    if not state.versions:
        if state.screen.loading:
            lines.append(f"  {_c('text_dim', 'Loading versions...')}")
        else:
            lines.append(f"  {_c('text_dim', NO_VERSIONS_HINT)}")
        return "\n".join(lines)

    cursor = state.screen.cursor
    for index, version in enumerate(state.versions):
        text = (f"v{rich_escape(version.version_id):<6} {state_label(version)}  "
                f"{_c('text_dim', format_timestamp(version.create_time))}")
        lines.append(_row(text, index == cursor))

    lines.append("")
    lines += _payload_lines(state, state.selected_version())
    return "\n".join(lines)


def _render_version_detail(state: AppState) -> str:
    version = state.current_version
    lines = [
        _field('Secret', version.secret_name),
        _field('Version', version.version_id),
        f"  {_c('text_dim', 'State:')} {state_label(version)}",
        _field('Created', format_timestamp(version.create_time)),
    ]
    if version.destroy_time is not None:
        lines.append(_field('Destroyed', format_timestamp(version.destroy_time)))
    lines.append("")
    lines += _payload_lines(state, version)
    return "\n".join(lines)


def render_dialog(state: AppState) -> Optional[str]:
    """Markup for the dialog overlay, or None when no dialog is open."""
    dialog = state.dialog
    if dialog is None:
        return None

    if dialog.kind is DialogKind.HELP:
        lines = [_c('primary', 'Help', bold=True) + f"  {_c('text_dim', '- press any key to close')}"]
        for section, entries in HELP_SECTIONS:
            lines += ["", _c('primary', section, bold=True)]
            for keys, description in entries:
                lines.append(f"  {_c('key', rich_escape(f'{keys:<12}'), bold=True)}{_c('text', description)}")
        return "\n".join(lines)

    if dialog.kind is DialogKind.CONFIRM_DELETE:
        return "\n".join([
            _c('error', 'Delete Secret', bold=True),
            "",
            f"Delete secret {_c('text', rich_escape(dialog.secret_name), bold=True)} and all its versions?",
            _c('warning', 'This cannot be undone.'),
            "",
            f"{_c('key', 'y', bold=True)} confirm   {_c('key', 'n', bold=True)} cancel",
        ])

    if dialog.kind is DialogKind.CONFIRM_DESTROY:
        return "\n".join([
            _c('error', 'Destroy Version', bold=True),
            "",
            f"Destroy version {_c('text', rich_escape(dialog.version_id), bold=True)} of "
            f"{_c('text', rich_escape(dialog.secret_name), bold=True)}?",
            _c('warning', 'The value will be permanently gone.'),
            "",
            f"{_c('key', 'y', bold=True)} confirm   {_c('key', 'n', bold=True)} cancel",
        ])

    titles = {
        DialogKind.NEW_SECRET: ('New Secret', 'Secret name'),
        DialogKind.ADD_VERSION: ('Add Version', f"New value for {dialog.secret_name}"),
        DialogKind.SEARCH: ('Search', 'Filter secrets by name'),
    }
    title, prompt = titles[dialog.kind]
    lines = [
        _c('primary', title, bold=True),
        "",
        _c('text_dim', rich_escape(prompt)),
        f"> {_render_input(dialog.buffer.text, dialog.buffer.cursor)}",
    ]
    message = state.message
    if message is not None and message.is_error:
        lines += ["", _c('error', rich_escape(message.text))]
    return "\n".join(lines)


def _render_input(text: str, cursor: int) -> str:
    before, at, after = text[:cursor], text[cursor:cursor + 1], text[cursor + 1:]
    return f"{rich_escape(before)}[reverse]{rich_escape(at or ' ')}[/reverse]{rich_escape(after)}"


def render_status(state: AppState) -> str:
    message = state.message
    if message is None:
        return ""
    role = 'error' if message.is_error else 'success'
    return f" {_c(role, rich_escape(message.text))}"


def commands_for(state: AppState) -> List[Tuple[str, str]]:
    if state.dialog is not None:
        return DIALOG_COMMANDS[state.dialog.kind]
    if state.screen is None:
        return []
    return COMMANDS[state.screen.kind]


def render_commands(state: AppState) -> str:
    return " " + "  ".join(
        f"{_c('key', rich_escape(key), bold=True)} {_c('text_dim', description)}"
        for key, description in commands_for(state)
    )
