"""The catalogue of API resources and its table rendering."""

from __future__ import annotations

import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import zip_longest

import yaml

HEADERS = ("name", "shortnames", "apiversion", "namespaced", "kind")
WIDE_HEADERS = HEADERS + ("since",)
COLUMN_GAP = "   "


@dataclass
class Resource:
    """One API resource as listed in the resource catalogue."""

    kind: str = ""
    api_version: str = ""
    name: str = ""
    namespaced: bool = False
    short_names: list[str] = field(default_factory=list)
    supported_since: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Resource":
        namespaced = data.get("namespaced", False)
        if namespaced is None:
            namespaced = False
        if not isinstance(namespaced, bool):
            raise ValueError(f"namespaced must be a boolean, got {namespaced!r}")
        short_names = data.get("shortNames") or []
        if not isinstance(short_names, list):
            raise ValueError(f"shortNames must be a list, got {short_names!r}")
        return cls(
            kind=str(data.get("kind") or ""),
            api_version=str(data.get("apiVersion") or ""),
            name=str(data.get("name") or ""),
            namespaced=namespaced,
            short_names=[str(n) for n in short_names],
            supported_since=str(data.get("supportedSince") or ""),
        )

    def to_dict(self) -> dict:
        data: dict = {
            "kind": self.kind,
            "apiVersion": self.api_version,
            "name": self.name,
            "namespaced": self.namespaced,
        }
        if self.short_names:
            data["shortNames"] = list(self.short_names)
        data["supportedSince"] = self.supported_since
        return data


def parse_resource_list(text: str | bytes) -> list[Resource]:
    """Parse a YAML document with a top-level ``resources`` list."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(str(exc)) from exc
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError("resource list must be a mapping")
    items = data.get("resources") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ValueError("resources must be a list of mappings")
    return [Resource.from_dict(item) for item in items]


def resource_table(
    resources: Iterable[Resource], wide: bool = False
) -> tuple[list[str], list[list[str]]]:
    """Return the headers and rows that describe ``resources``."""
    headers = list(WIDE_HEADERS if wide else HEADERS)
    rows = []
    for resource in resources:
        row = [
            resource.name,
            ",".join(resource.short_names),
            resource.api_version,
            "true" if resource.namespaced else "false",
            resource.kind,
        ]
        if wide:
            row.append(resource.supported_since)
        rows.append(row)
    return headers, rows


def format_table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Render an upper-cased header line and left-aligned columns."""
    table = [[h.upper() for h in headers]] + [[str(cell) for cell in row] for row in rows]
    widths = [max(map(len, column)) for column in zip_longest(*table, fillvalue="")]
    lines = (
        COLUMN_GAP.join(
            cell.ljust(width) for cell, width in zip_longest(row, widths, fillvalue="")
        ).rstrip()
        for row in table
    )
    return "".join(line + "\n" for line in lines)


def fetch_resources(url: str) -> list[Resource]:
    """Download and parse the resource catalogue found at ``url``."""
    with urllib.request.urlopen(url) as response:
        body = response.read()
    return parse_resource_list(body)