"""Input validation for identifiers and payloads sent to Secret Manager.

Each validator returns an error message, or None when the value is valid,
so the TUI can show the message in its status line.
"""
import re
from typing import Optional

MAX_SECRET_NAME_LENGTH = 255

_SECRET_NAME_CHARS = re.compile(r'[A-Za-z0-9_-]+')
_VERSION_ID = re.compile(r'\d+|latest')


def validate_secret_name(name: str) -> Optional[str]:
    """
    Validate secret name matches GCP requirements.

    Rules:
        - 1-255 ASCII characters
        - Starts with a letter
        - Letters, digits, underscores (_) and hyphens (-) only
        - Does not end with a hyphen

    Args:
        name: Secret name to validate

    Returns:
        Error message, or None if the name is valid
    """
    if not name:
        return "Secret name cannot be empty"

    if len(name) > MAX_SECRET_NAME_LENGTH:
        return f"Secret name must be {MAX_SECRET_NAME_LENGTH} characters or less"

    if not (name[0].isascii() and name[0].isalpha()):
        return "Secret name must start with a letter"

    if not _SECRET_NAME_CHARS.fullmatch(name):
        bad = next(c for c in name if not (c.isascii() and (c.isalnum() or c in "_-")))
        return (
            "Secret name can only contain letters, digits, underscores, and hyphens. "
            f"Found: '{bad}'"
        )

    if name.endswith("-"):
        return "Secret name cannot end with a hyphen"

    return None


def validate_secret_value(value: str) -> Optional[str]:
    """
    Validate secret value is not empty.

    GCP Secret Manager does not allow empty secret payloads.
    """
    if not value or value.strip() == "":
        return "Secret value cannot be empty"
    return None


def validate_version_id(version_id: str) -> Optional[str]:
    if not version_id or not _VERSION_ID.fullmatch(version_id):
        return f"Invalid version id '{version_id}'"
    return None


def validate_project_id(project_id: str) -> Optional[str]:
    if not project_id:
        return "Project ID cannot be empty"
    if "/" in project_id or any(c.isspace() for c in project_id):
        return f"Invalid project ID '{project_id}'"
    return None


def require(error: Optional[str]) -> None:
    """Raise ValueError when a validator reported an error."""
    if error:
        raise ValueError(error)
