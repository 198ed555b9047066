"""
Output rendering — table, JSON and YAML.

Usage:
    from bundlecreds.printer import OutputFormat, parse_format, print_table

    fmt = parse_format("table")
    print_table(sys.stdout, rows, lambda r: [r.namespace, r.name], "NAMESPACE", "NAME")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, TextIO

from bundlecreds.encoding import marshal_json, marshal_yaml
from bundlecreds.errors import ValidationError

COLUMN_GAP = "   "


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def parse_format(value: str | OutputFormat) -> OutputFormat:
    """Convert a --output value. Raises ValidationError for unknown formats."""
    try:
        return OutputFormat(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"invalid format: {value}") from None


class DateTimePrinter:
    """Human-relative timestamps against a fixed ``now``.

    Capture one printer per render so every row shares the same reference.
    """

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(UTC)

    def format(self, dt: datetime | None) -> str:
        if dt is None:
            return "-"
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        delta = self.now - dt
        future = delta < timedelta(0)
        delta = abs(delta)

        if delta < timedelta(minutes=1):
            return "now"
        if delta >= timedelta(days=7):
            return dt.astimezone(UTC).strftime("%Y-%m-%d")

        if delta < timedelta(hours=1):
            amount, unit = int(delta.total_seconds() // 60), "minute"
        elif delta < timedelta(days=1):
            amount, unit = int(delta.total_seconds() // 3600), "hour"
        else:
            amount, unit = delta.days, "day"
        span = f"{amount} {unit}{'s' if amount != 1 else ''}"
        return f"in {span}" if future else f"{span} ago"


def print_json(out: TextIO, value: Any) -> None:
    out.write(marshal_json(value).decode("utf-8"))
    out.write("\n")


def print_yaml(out: TextIO, value: Any) -> None:
    out.write(marshal_yaml(value).decode("utf-8"))


def format_table(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> list[str]:
    """Left-aligned columns sized to their widest cell."""
    cells = [[str(h) for h in headers]]
    cells.extend([("" if c is None else str(c)) for c in row] for row in rows)
    widths = [max(len(r[i]) for r in cells) for i in range(len(headers))]
    return [
        COLUMN_GAP.join(f"{cell:<{widths[i]}}" for i, cell in enumerate(row)).rstrip()
        for row in cells
    ]


def print_table(
    out: TextIO,
    items: Iterable[Any],
    row_fn: Callable[[Any], Sequence[Any] | None],
    *headers: str,
) -> None:
    """Render items as a table. Items for which row_fn returns None are skipped."""
    rows = [r for r in (row_fn(item) for item in items) if r is not None]
    for line in format_table(headers, rows):
        out.write(line + "\n")
