"""Listing of arbitrary Kubernetes objects stored in YAML files."""

from __future__ import annotations

import decimal
import json
import math
import operator
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from omc.resources import format_table

NO_RESOURCES = "No resources found."
UNKNOWN_AGE = "<unknown>"
NO_LABELS = "<none>"


class UGetError(Exception):
    """Raised when objects cannot be read, filtered or rendered."""


class _Loader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class Column:
    """A custom column: its header and the JSONPath that fills it."""

    name: str = ""
    json_path: str = ""
    description: str = ""
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Column":
        return cls(
            name=str(data.get("name") or ""),
            json_path=str(data.get("jsonPath") or ""),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or ""),
        )


# --- JSONPath templates -----------------------------------------------------


class _SyntaxError(ValueError):
    pass


class _Missing(Exception):
    pass


@dataclass
class _Text:
    text: str


@dataclass
class _Expr:
    steps: list


@dataclass
class _Range:
    steps: list
    body: list


_NAME_RE = re.compile(r"(?:\\.|[^.\[\]\s\\])*")
_FILTER_RE = re.compile(r"^(@[^=!<>]*?)\s*(==|!=|<=|>=|<|>)\s*(.+)$", re.S)
_ORDERING = {"<": operator.lt, ">": operator.gt, "<=": operator.le, ">=": operator.ge}


def _close_brace(template: str, start: int) -> int:
    quote = None
    for pos, ch in enumerate(template[start:], start):
        if quote:
            if ch == quote and template[pos - 1] != "\\":
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "}":
            return pos
    raise _SyntaxError("unclosed action")


def _close_bracket(text: str, start: int) -> int:
    depth = 0
    quote = None
    for pos, ch in enumerate(text[start:], start):
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth -= 1
            if depth == 0:
                return pos
    raise _SyntaxError("unterminated array")


def _actions(template: str):
    pos = 0
    while pos < len(template):
        start = template.find("{", pos)
        if start < 0:
            yield False, template[pos:]
            return
        if start > pos:
            yield False, template[pos:start]
        end = _close_brace(template, start + 1)
        yield True, template[start + 1 : end].strip()
        pos = end + 1


def _read_name(text: str, pos: int) -> tuple[str, int]:
    match = _NAME_RE.match(text, pos)
    return match.group().replace("\\.", "."), match.end()


def _literal(text: str):
    text = text.strip()
    if text.startswith("@"):
        return "path", _parse_path(text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return "value", text[1:-1]
    if text in ("true", "false"):
        return "value", text == "true"
    for convert in (int, float):
        try:
            return "value", convert(text)
        except ValueError:
            pass
    raise _SyntaxError(f"unrecognized filter value {text!r}")


def _parse_filter(body: str):
    body = body.strip()
    match = _FILTER_RE.match(body)
    if match is None:
        if not body.startswith("@"):
            raise _SyntaxError(f"unrecognized filter {body!r}")
        return ("filter", _parse_path(body), None, None)
    left, op, right = match.groups()
    return ("filter", _parse_path(left.strip()), op, _literal(right))


def _int(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise _SyntaxError(f"invalid array index {text!r}") from None


def _parse_bracket(inner: str):
    if inner == "*":
        return ("wildcard",)
    if inner.startswith("?(") and inner.endswith(")"):
        return _parse_filter(inner[2:-1])
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "\"'":
        return ("field", inner[1:-1])
    if ":" in inner:
        parts = inner.split(":")
        if len(parts) > 3:
            raise _SyntaxError(f"invalid array slice {inner!r}")
        bounds = [_int(p) if p.strip() else None for p in parts]
        bounds += [None] * (3 - len(bounds))
        if bounds[2] == 0:
            raise _SyntaxError("slice step cannot be zero")
        return ("slice", slice(*bounds))
    if not inner:
        raise _SyntaxError("empty array index")
    return ("indices", [_int(p) for p in inner.split(",")])


def _parse_path(text: str) -> list:
    steps: list = []
    pos = 1 if text[:1] in ("$", "@") else 0
    while pos < len(text):
        if text.startswith("..", pos):
            name, pos = _read_name(text, pos + 2)
            if not name:
                raise _SyntaxError("recursive descent needs a field name")
            steps.append(("recursive", name))
        elif text[pos] == ".":
            name, pos = _read_name(text, pos + 1)
            if name == "*":
                steps.append(("wildcard",))
            elif name:
                steps.append(("field", name))
        elif text[pos] == "[":
            end = _close_bracket(text, pos)
            steps.append(_parse_bracket(text[pos + 1 : end].strip()))
            pos = end + 1
        else:
            raise _SyntaxError(f"unrecognized character in action: {text[pos]!r}")
    return steps


def _unquote(content: str) -> str:
    if content[0] == '"':
        try:
            return json.loads(content)
        except ValueError:
            raise _SyntaxError(f"invalid string literal {content}") from None
    if len(content) < 2 or content[-1] != "'":
        raise _SyntaxError(f"invalid string literal {content}")
    return content[1:-1]


def _parse_template(template: str) -> list:
    root: list = []
    stack = [root]
    for is_action, content in _actions(template):
        if not is_action:
            stack[-1].append(_Text(content))
        elif content == "end":
            if len(stack) == 1:
                raise _SyntaxError("not in range, nothing to end")
            stack.pop()
        elif content.split(None, 1)[:1] == ["range"]:
            rest = content[len("range") :].strip()
            node = _Range(_parse_path(rest), [])
            stack[-1].append(node)
            stack.append(node.body)
        elif content[:1] in ("\"", "'"):
            stack[-1].append(_Text(_unquote(content)))
        else:
            stack[-1].append(_Expr(_parse_path(content)))
    if len(stack) > 1:
        raise _SyntaxError("unclosed range")
    return root


def _descend(value: Any, name: str):
    if isinstance(value, dict):
        if name in value:
            yield value[name]
        for child in value.values():
            yield from _descend(child, name)
    elif isinstance(value, list):
        for child in value:
            yield from _descend(child, name)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _matches(item: Any, left: list, op: str | None, right) -> bool:
    try:
        found = _walk([item], left)
    except _Missing:
        return False
    if op is None:
        return bool(found)
    kind, value = right
    if kind == "path":
        try:
            others = _walk([item], value)
        except _Missing:
            return False
        if not others:
            return False
        value = others[0]
    if not found:
        return False
    current = found[0]
    if op == "==":
        return _equal(current, value)
    if op == "!=":
        return not _equal(current, value)
    if _is_number(current) and _is_number(value):
        return _ORDERING[op](current, value)
    return False


def _apply(values: list, step: tuple) -> list:
    kind = step[0]
    out: list = []
    if kind == "field":
        out = [v[step[1]] for v in values if isinstance(v, dict) and step[1] in v]
        if not out:
            raise _Missing(f"{step[1]} is not found")
    elif kind == "recursive":
        for value in values:
            out.extend(_descend(value, step[1]))
    elif kind == "wildcard":
        for value in values:
            if isinstance(value, dict):
                out.extend(value[k] for k in sorted(value, key=str))
            elif isinstance(value, list):
                out.extend(value)
    elif kind == "indices":
        for value in (v for v in values if isinstance(v, list)):
            for index in step[1]:
                if not -len(value) <= index < len(value):
                    raise _Missing("array index out of bounds")
                out.append(value[index])
    elif kind == "slice":
        for value in (v for v in values if isinstance(v, list)):
            out.extend(value[step[1]])
    elif kind == "filter":
        _, left, op, right = step
        for value in (v for v in values if isinstance(v, list)):
            out.extend(item for item in value if _matches(item, left, op, right))
    return out


def _walk(values: list, steps: list) -> list:
    for step in steps:
        values = _apply(values, step)
    return values


def _go_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1, value) < 0 else "0"
    number = decimal.Decimal(repr(value)).normalize()
    sign, digits, exponent = number.as_tuple()
    scientific = len(digits) + exponent - 1
    if -4 <= scientific < 6:
        return format(number, "f")
    text = "".join(map(str, digits))
    mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
    exp_sign = "-" if scientific < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(scientific):02d}"


def _go_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float):
        return _go_float(value)
    if isinstance(value, dict):
        entries = " ".join(
            f"{_go_text(k)}:{_go_text(value[k])}" for k in sorted(value, key=str)
        )
        return f"map[{entries}]"
    if isinstance(value, list):
        return "[" + " ".join(_go_text(v) for v in value) + "]"
    return str(value)


def _render(nodes: list, data: Any, out: list[str]) -> None:
    for node in nodes:
        if isinstance(node, _Text):
            out.append(node.text)
        elif isinstance(node, _Expr):
            out.append(" ".join(_go_text(r) for r in _walk([data], node.steps)))
        else:
            for item in _walk([data], node.steps):
                _render(node.body, item, out)


def to_json_path(path: str) -> str:
    """Wrap a JSONPath expression in exactly one pair of braces."""
    return "{" + path.removeprefix("{").removesuffix("}") + "}"


def get_from_json_path(data: Any, template: str) -> str:
    """Evaluate a JSONPath template against ``data`` and return the text.

    A key that is missing stops evaluation; the text produced up to that
    point is returned.
    """
    try:
        nodes = _parse_template(template)
    except _SyntaxError as exc:
        raise UGetError(f"error: error parsing jsonpath {template}, {exc}") from exc
    out: list[str] = []
    try:
        _render(nodes, data, out)
    except _Missing:
        pass
    return "".join(out)


# --- filtering and loading --------------------------------------------------


def match_kind(kinds: Sequence[str], kind: str) -> bool:
    """Return whether ``kind`` (compared lower-cased) is among ``kinds``."""
    if not kinds:
        return True
    return kind.lower() in kinds


def match_labels(labels: Mapping[str, str], selector: str) -> bool:
    """Return whether ``labels`` satisfy a comma-separated label selector.

    Terms are ``key=value``, ``key==value``, ``key!=value``, ``key`` and ``!key``.
    """
    if not selector:
        return True
    for term in (t.strip() for t in selector.split(",")):
        if not term:
            continue
        if "!=" in term:
            key, value = term.split("!=", 1)
            if labels.get(key.strip()) == value.strip():
                return False
        elif "=" in term:
            key, value = term.replace("==", "=", 1).split("=", 1)
            if labels.get(key.strip()) != value.strip():
                return False
        elif term.startswith("!"):
            if term[1:].strip() in labels:
                return False
        elif term not in labels:
            return False
    return True


def load_columns(path: str | os.PathLike) -> list[Column]:
    """Read custom column definitions from a YAML file with a ``columns`` list."""
    if not path:
        return []
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise UGetError(f"File {path} does not exist.") from exc
    try:
        data = yaml.load(text, Loader=_Loader)
    except yaml.YAMLError as exc:
        raise UGetError(str(exc)) from exc
    if data is None:
        return []
    if not isinstance(data, dict):
        raise UGetError(f"File {path} does not hold a columns mapping.")
    columns = data.get("columns") or []
    if not isinstance(columns, list):
        raise UGetError(f"File {path} does not hold a columns list.")
    return [Column.from_dict(c) for c in columns if isinstance(c, dict)]


def collect_object_files(path: str | os.PathLike) -> list[str]:
    """Return ``path`` itself, or the regular files directly inside it."""
    path = str(path)
    if not os.path.isdir(path):
        return [path]
    base = path.removesuffix("/")
    with os.scandir(path) as entries:
        names = sorted(e.name for e in entries if not e.is_dir())
    return [f"{base}/{name}" for name in names]


def _load_objects(file_path: str) -> list[dict]:
    def invalid(reason: str) -> UGetError:
        return UGetError(f"File: {file_path}  does not contain a valid k8s object, {reason}")

    try:
        text = Path(file_path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise invalid(str(exc)) from exc
    try:
        data = yaml.load(text, Loader=_Loader)
    except yaml.YAMLError as exc:
        raise invalid(str(exc)) from exc
    if not isinstance(data, dict):
        raise invalid("Object is not a mapping")
    kind = data.get("kind")
    if not isinstance(kind, str) or not kind:
        raise invalid("Object 'Kind' is missing")
    items = data.get("items")
    if not isinstance(items, list):
        return [data]
    item_kind = kind.removesuffix("List")
    objects = []
    for item in items:
        if not isinstance(item, dict):
            raise invalid("list items must be objects")
        objects.append(item if item.get("kind") else {**item, "kind": item_kind})
    return objects


def _metadata(obj: dict) -> dict:
    metadata = obj.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def _labels(metadata: dict) -> dict[str, str]:
    labels = metadata.get("labels")
    if not isinstance(labels, dict):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in labels.items()}


def _label_text(labels: Mapping[str, str]) -> str:
    return ",".join(f"{k}={labels[k]}" for k in sorted(labels)) or NO_LABELS


def _human_duration(seconds: int) -> str:
    if seconds < 0:
        return "<invalid>"
    if seconds < 120:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 120:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 48:
        return f"{hours}h"
    return f"{hours // 24}d"


def _age(file_path: str, timestamp: Any) -> str:
    """Age of an object at the time its file was written."""
    if not isinstance(timestamp, str) or not timestamp:
        return UNKNOWN_AGE
    try:
        created = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return UNKNOWN_AGE
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    written = datetime.fromtimestamp(os.path.getmtime(file_path), tz=timezone.utc)
    return _human_duration(int((written - created).total_seconds()))


def _sorted(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sorted(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, list):
        return [_sorted(v) for v in value]
    return value


def _split_kinds(kinds: str | Iterable[str]) -> list[str]:
    if isinstance(kinds, str):
        kinds = kinds.lower().removesuffix(",")
        return kinds.split(",") if kinds else []
    return [k.lower() for k in kinds]


def _json_template(output: str) -> str:
    template = output.removeprefix("jsonpath=")
    if len(template) >= 2 and template[0] == template[-1] and template[0] in "\"'":
        template = template[1:-1]
    return template


def uget(
    objects_path: str | os.PathLike,
    names: Iterable[str] = (),
    output: str = "",
    columns_path: str = "",
    kinds: str | Iterable[str] = "",
    selector: str = "",
    show_labels: bool = False,
) -> str:
    """List the objects stored at ``objects_path`` and return the text to print.

    With no ``output`` a table is produced; otherwise ``output`` is one of
    ``json``, ``yaml`` or ``jsonpath=TEMPLATE``.
    """
    objects_path = str(objects_path)
    if not os.path.exists(objects_path):
        raise UGetError(f"Path {objects_path} does not exist.")
    if columns_path and not os.path.exists(columns_path):
        raise UGetError(f"File {columns_path} does not exist.")
    columns = load_columns(columns_path)
    default_columns = not columns_path
    headers = (["kind", "name"] if default_columns else []) + [c.name for c in columns]
    kind_list = _split_kinds(kinds)
    names = list(names)

    rows: list[list[str]] = []
    items: list[dict] = []
    for file_path in collect_object_files(objects_path):
        for obj in _load_objects(file_path):
            metadata = _metadata(obj)
            name = str(metadata.get("name") or "")
            labels = _labels(metadata)
            if not (
                match_kind(kind_list, str(obj.get("kind") or ""))
                and match_labels(labels, selector)
                and (not names or name in names)
            ):
                continue
            if output:
                items.append(obj)
                continue
            row = [str(obj["kind"]), name] if default_columns else []
            for column in columns:
                value = get_from_json_path(obj, to_json_path(column.json_path))
                if column.type == "date":
                    value = _age(file_path, metadata.get("creationTimestamp"))
                row.append(value)
            if show_labels:
                row.append(_label_text(labels))
            if row:
                rows.append(row)

    if not output:
        if not rows:
            raise UGetError(NO_RESOURCES)
        if show_labels:
            headers.append("labels")
        return format_table(headers, rows)

    if not items:
        raise UGetError(NO_RESOURCES)
    if len(items) == 1:
        result: Any = _sorted(items[0])
    else:
        result = {"apiVersion": "v1", "kind": "List", "items": _sorted(items)}
    if output == "json":
        return json.dumps(result, indent=2, ensure_ascii=False) + "\n"
    if output == "yaml":
        return yaml.safe_dump(result, default_flow_style=False, allow_unicode=True) + "\n"
    if output.startswith("jsonpath="):
        return get_from_json_path(result, _json_template(output))
    return ""