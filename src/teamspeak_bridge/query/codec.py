"""ServerQuery text codec.

The raw query protocol is line based. Commands look like:

    clientlist -uid
    login client_login_name=serveradmin client_login_password=p\\sw

Replies are zero or more data lines followed by a status line:

    clid=1 cid=1 client_nickname=Alice client_type=0|clid=2 cid=3 ...
    error id=0 msg=ok

Records inside a data line are separated by "|", properties by spaces.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

_ESCAPES = [
    ("\\", "\\\\"),
    ("/", "\\/"),
    (" ", "\\s"),
    ("|", "\\p"),
    ("\a", "\\a"),
    ("\b", "\\b"),
    ("\f", "\\f"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\v", "\\v"),
]

_UNESCAPES = {escaped[1]: raw for raw, escaped in _ESCAPES}

ERROR_PREFIX = "error "
NOTIFY_PREFIX = "notify"


def escape(value: str) -> str:
    """Escape a value for use in a query command."""
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape(value: str) -> str:
    """Reverse escape()."""
    if "\\" not in value:
        return value

    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            out.append(_UNESCAPES.get(value[i + 1], value[i + 1]))
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return escape(str(value))


def encode_command(
    name: str,
    params: Mapping[str, Any] | None = None,
    options: Iterable[str] = (),
) -> str:
    """Build a command line (without the trailing newline).

    None-valued params are skipped. Options are rendered as "-name".
    """
    parts = [name]
    for key, value in (params or {}).items():
        if value is None:
            continue
        parts.append(f"{key}={_format_value(value)}")
    parts.extend(f"-{opt}" for opt in options)
    return " ".join(parts)


def parse_record(text: str) -> dict[str, str]:
    """Parse a single space-separated record."""
    record: dict[str, str] = {}
    for token in text.split(" "):
        if not token:
            continue
        key, sep, value = token.partition("=")
        record[key] = unescape(value) if sep else ""
    return record


def parse_records(line: str) -> list[dict[str, str]]:
    """Parse a data line into records (split on '|')."""
    line = line.strip()
    if not line:
        return []
    return [parse_record(chunk) for chunk in line.split("|")]


def is_error_line(line: str) -> bool:
    return line.startswith(ERROR_PREFIX)


def is_notification(line: str) -> bool:
    return line.startswith(NOTIFY_PREFIX)


def parse_error(line: str) -> tuple[int, str]:
    """Parse a status line into (error_id, message)."""
    record = parse_record(line[len(ERROR_PREFIX) :])
    try:
        error_id = int(record.get("id", "0"))
    except ValueError:
        error_id = -1
    return error_id, record.get("msg", "")


def parse_notification(line: str) -> tuple[str, dict[str, str]]:
    """Split a notification line into (event name, first record)."""
    name, _, rest = line.partition(" ")
    records = parse_records(rest)
    return name, records[0] if records else {}
