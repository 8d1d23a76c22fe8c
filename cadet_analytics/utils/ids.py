"""
Identifier helpers for the campus analytics engine.

Validates subject logins and splits the ``<project>#<n>`` retry suffix used
in project names.
"""

import re
from typing import Optional, Tuple

LOGIN_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{1,50}$")
RETRY_SUFFIX_PATTERN = re.compile(r"^(.+?)#(\d+)$")


def validate_login(login: Optional[str]) -> str:
    """Return the stripped login or raise ``ValueError``."""
    if login is None:
        raise ValueError("Login is required")
    value = str(login).strip()
    if not value:
        raise ValueError("Login is required")
    if not LOGIN_PATTERN.match(value):
        raise ValueError(f"Invalid login format: {login!r}")
    return value


def is_valid_login(login: Optional[str]) -> bool:
    """Check if a string is an acceptable login."""
    try:
        validate_login(login)
        return True
    except ValueError:
        return False


def split_retry_suffix(project_name: Optional[str]) -> Tuple[str, int]:
    """Split ``"libft#2"`` into ``("libft", 2)``.

    Names without a suffix come back with a retry index of 0; an empty or
    missing name gives ``("", 0)``.
    """
    if not project_name:
        return "", 0
    match = RETRY_SUFFIX_PATTERN.match(project_name)
    if match:
        return match.group(1), int(match.group(2))
    return project_name, 0
