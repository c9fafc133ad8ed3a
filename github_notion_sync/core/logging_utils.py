"""
Logging helpers for values that come from GitHub or Notion.

Issue titles and API error bodies are user-controlled text; they are
sanitized before they reach the log so they cannot forge log lines.
"""

import re
from typing import Any


_VISIBLE_ESCAPES = {"\r": "\\r", "\n": "\\n", "\t": "\\t", "\x00": "\\x00"}
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _escape_control(match: "re.Match[str]") -> str:
    return _VISIBLE_ESCAPES.get(match.group(), "")


def sanitize_for_logging(value: Any, max_length: int = 200) -> str:
    """
    Render a value as a single log-safe line.

    Line breaks, tabs and NUL are shown as backslash escapes; other control
    characters are removed. Text past ``max_length`` is cut and replaced by
    a marker with the number of characters dropped.

    Examples:
        >>> sanitize_for_logging("title\\nERROR forged line")
        'title\\\\nERROR forged line'
        >>> sanitize_for_logging("x" * 30, max_length=10)
        'xxxxxxxxxx...[truncated 20 chars]'
    """
    text = _CONTROL_CHARS.sub(_escape_control, str(value))
    overflow = len(text) - max_length
    if overflow > 0:
        text = f"{text[:max_length]}...[truncated {overflow} chars]"
    return text


def redact_token(value: str, visible_chars: int = 4) -> str:
    """
    Redact an API token so it can be identified in logs without leaking it.

    Examples:
        >>> redact_token("ghp_1234567890abcdef")
        'ghp_...cdef'
        >>> redact_token("short", visible_chars=4)
        '*****'
        >>> redact_token("")
        '<unset>'
    """
    if not value:
        return "<unset>"

    if len(value) <= visible_chars * 2:
        return "*" * len(value)

    return f"{value[:visible_chars]}...{value[-visible_chars:]}"
