"""Printing command results as text, JSON or YAML, and colouring tables."""

from __future__ import annotations

import dataclasses
import enum
import ipaddress
import json
import re
import sys
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

import yaml

HEADSCALE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
MACHINE_OUTPUT_FORMATS = ("json", "json-line", "yaml")

_RESET = "\x1b[0m"
_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_SEPARATOR = " | "


def _plain(value: Any) -> Any:
    """Turn a result into data that JSON and YAML encoders accept."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item) for item in value]
    if isinstance(value, enum.Enum):
        return _plain(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(
        value,
        (
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
        ),
    ):
        return str(value)
    return value


def success_output(result: Any, override: str, output_format: str) -> None:
    """Print ``result`` in the requested format, or ``override`` as text."""
    if output_format == "json":
        text = json.dumps(_plain(result), indent="\t", ensure_ascii=False)
    elif output_format == "json-line":
        text = json.dumps(_plain(result), separators=(",", ":"), ensure_ascii=False)
    elif output_format == "yaml":
        text = yaml.safe_dump(_plain(result), sort_keys=False, allow_unicode=True)
    else:
        print(override)
        return
    print(text)


def error_output(error: BaseException, override: str, output_format: str) -> None:
    """Print an error as ``{"error": ...}`` or ``override`` as text."""
    success_output({"error": str(error)}, override, output_format)


def has_machine_output_flag(argv: Optional[Sequence[str]] = None) -> bool:
    """Report whether a machine-readable output format was asked for."""
    args = sys.argv if argv is None else argv
    return any(arg in MACHINE_OUTPUT_FORMATS for arg in args)


def _colour(code: int, text: str) -> str:
    return f"\x1b[{code}m{text}{_RESET}"


def light_green(text: str) -> str:
    return _colour(92, text)


def light_red(text: str) -> str:
    return _colour(91, text)


def light_magenta(text: str) -> str:
    return _colour(95, text)


def light_yellow(text: str) -> str:
    return _colour(93, text)


def colour_time(date: datetime, now: Optional[datetime] = None) -> str:
    """Format a time, green when it lies in the future and red otherwise."""
    if now is None:
        now = datetime.now(timezone.utc) if date.tzinfo else datetime.now()
    text = date.strftime(HEADSCALE_DATETIME_FORMAT)
    return light_green(text) if date > now else light_red(text)


def _visible_width(text: str) -> int:
    return len(_ANSI.sub("", text))


def render_table(rows: Sequence[Sequence[str]]) -> str:
    """Lay out rows as aligned columns; the first row is the header."""
    if not rows:
        return ""
    column_count = max(len(row) for row in rows)
    padded = [list(row) + [""] * (column_count - len(row)) for row in rows]
    widths = [
        max(_visible_width(row[column]) for row in padded)
        for column in range(column_count)
    ]
    lines = []
    for row in padded:
        cells = [
            cell + " " * (width - _visible_width(cell))
            for cell, width in zip(row, widths)
        ]
        lines.append(_SEPARATOR.join(cells).rstrip())
    return "\n".join(lines)