"""Filtering of container log lines by their level marker."""

from __future__ import annotations

import calendar
import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

TIME_FORMAT_IN = "2006-01-02T15:04:05.999999999Z07:00"

LEVEL_PREFIXES = {"info": "I", "warning": "W", "error": "E"}

_TIMESTAMP_RE = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"T(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
    r"(?:\.\d+)?"
    r"(?P<zone>Z|[+-](?P<zh>\d{2}):(?P<zm>\d{2}))\Z"
)


class LogParseError(ValueError):
    """Raised when a log line is not in the expected format."""


def _timestamp_problem(text: str) -> str | None:
    """Return why ``text`` is not a valid timestamp, or None if it is."""
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        return f"cannot parse {text!r} as {TIME_FORMAT_IN!r}"
    year = int(match["year"])
    month = int(match["month"])
    day = int(match["day"])
    if not 1 <= month <= 12:
        return "month out of range"
    days = calendar.mdays[month] + (1 if month == 2 and calendar.isleap(year) else 0)
    if not 1 <= day <= days:
        return "day out of range"
    if int(match["hour"]) > 23:
        return "hour out of range"
    if int(match["minute"]) > 59:
        return "minute out of range"
    if int(match["second"]) > 59:
        return "second out of range"
    if match["zh"] is not None and (int(match["zh"]) > 24 or int(match["zm"]) > 60):
        return "time zone offset out of range"
    return None


def _prefixes(levels: Iterable[str]) -> frozenset[str]:
    return frozenset(LEVEL_PREFIXES[level] for level in levels if level in LEVEL_PREFIXES)


def _parse(line: str, prefixes: frozenset[str]) -> str | None:
    head, sep, rest = line.partition(" ")
    if not sep:
        raise LogParseError("timestamp is not found")
    problem = _timestamp_problem(head)
    if problem is not None:
        raise LogParseError(f"unexpected timestamp format {TIME_FORMAT_IN!r}: {problem}")
    stream, sep, _ = rest.partition(" ")
    if not sep:
        raise LogParseError("stream type is not found")
    if stream and stream[0] in prefixes:
        return line
    return None


def parse_cri_line(line: str, levels: Iterable[str]) -> str | None:
    """Return ``line`` when its level marker is one of ``levels``, else None.

    ``levels`` holds names among "info", "warning" and "error". The line
    must start with an RFC 3339 timestamp followed by a space-separated field.
    """
    return _parse(line, _prefixes(levels))


def filter_log_lines(lines: Iterable[str], levels: Iterable[str]) -> Iterator[str]:
    """Yield the lines whose level marker is one of ``levels``."""
    prefixes = _prefixes(levels)
    for line in lines:
        kept = _parse(line, prefixes)
        if kept:
            yield kept


def _read_lines(path: Path) -> Iterator[str]:
    with path.open(encoding="utf-8", errors="replace", newline="") as handle:
        for raw in handle:
            yield raw.removesuffix("\n").removesuffix("\r")


def filter_log_file(path: str | os.PathLike, levels: Iterable[str]) -> Iterator[str]:
    """Yield the lines of a log file whose level marker is one of ``levels``."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"error: file {path} does not exist")
    return filter_log_lines(_read_lines(file_path), list(levels))