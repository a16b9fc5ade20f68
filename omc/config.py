"""Must-gather context configuration stored as a JSON file."""

from __future__ import annotations

import json
import os
import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path

CURRENT_MARK = "*"
DEFAULT_PROJECT = "default"
_ID_ALPHABET = string.ascii_lowercase + string.digits


class MustGatherError(Exception):
    """Raised when a directory does not hold a usable must-gather."""


@dataclass
class Context:
    """One managed must-gather and the project selected in it."""

    id: str = ""
    path: str = ""
    current: str = ""
    project: str = ""

    @property
    def is_current(self) -> bool:
        return self.current == CURRENT_MARK

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "current": self.current,
            "project": self.project,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Context":
        return cls(
            id=str(data.get("id") or ""),
            path=str(data.get("path") or ""),
            current=str(data.get("current") or ""),
            project=str(data.get("project") or ""),
        )


@dataclass
class Config:
    """The whole configuration: the last used id and every known context."""

    id: str = ""
    contexts: list[Context] = field(default_factory=list)

    def current(self) -> Context | None:
        """Return the first context marked as current, if any."""
        return next((c for c in self.contexts if c.is_current), None)

    def to_dict(self) -> dict:
        data: dict = {}
        if self.id:
            data["id"] = self.id
        if self.contexts:
            data["contexts"] = [c.to_dict() for c in self.contexts]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        contexts = data.get("contexts") or []
        return cls(
            id=str(data.get("id") or ""),
            contexts=[Context.from_dict(c) for c in contexts if isinstance(c, dict)],
        )


def load_config(path: str | os.PathLike) -> Config:
    """Read a configuration file; a missing or unreadable file gives an empty one."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Config()
    if not isinstance(data, dict):
        return Config()
    return Config.from_dict(data)


def save_config(config: Config, path: str | os.PathLike) -> None:
    """Write a configuration file, indented by one space per level."""
    text = json.dumps(config.to_dict(), indent=" ", ensure_ascii=False)
    Path(path).write_text(text, encoding="utf-8")


def set_project(config_path: str | os.PathLike, project: str) -> str | None:
    """Set the project of the current context and return the message to show.

    With an empty project the current selection is kept and reported.
    Returns None when no context is current.
    """
    old = load_config(config_path)
    message = None
    contexts = []
    for ctx in old.contexts:
        if ctx.is_current:
            if project:
                contexts.append(Context(ctx.id, ctx.path, ctx.current, project))
                message = f'Now using project "{project}" on must-gather "{ctx.path}".'
            else:
                contexts.append(Context(ctx.id, ctx.path, ctx.current, ctx.project))
                message = f'Using project "{ctx.project}" on must-gather "{ctx.path}".'
        else:
            contexts.append(Context(ctx.id, ctx.path, ctx.current, ctx.project))
    save_config(Config(contexts=contexts), config_path)
    return message


def find_must_gather(path: str | os.PathLike) -> str:
    """Locate the must-gather directory at or below ``path``.

    The result ends with a single "/". A directory that holds a
    ``timestamp`` file must hold exactly one subdirectory.
    """
    path = str(path)
    base = path.removesuffix("/")
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise MustGatherError(str(exc)) from exc

    dirs = [e.name for e in entries if e.is_dir()]
    has_timestamp = any(e.name == "timestamp" and not e.is_dir() for e in entries)

    if "namespaces" in dirs:
        return base + "/"
    if has_timestamp and len(dirs) != 1:
        raise MustGatherError(
            f'Expected one directory in path: "{path}", found: {len(dirs)}.'
        )
    if not has_timestamp and len(dirs) == 1:
        return find_must_gather(f"{base}/{dirs[-1]}")
    return base + "/"


def random_id(length: int) -> str:
    """Return a random identifier of lower-case letters and digits."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def use_context(
    config_path: str | os.PathLike, path: str, context_id: str
) -> Config:
    """Make the context matching ``context_id`` or ``path`` current.

    A context that is not known yet is added with the default project.
    The written configuration is returned.
    """
    if path:
        path = find_must_gather(path).removesuffix("/")

    old = load_config(config_path)
    contexts = []
    found = False
    for ctx in old.contexts:
        if ctx.id == context_id or ctx.path == path:
            contexts.append(Context(ctx.id, ctx.path, CURRENT_MARK, ctx.project))
            found = True
        else:
            contexts.append(Context(ctx.id, ctx.path, "", ctx.project))

    new_id = context_id
    if not found:
        if not new_id:
            new_id = random_id(8)
        contexts.append(Context(new_id, path, CURRENT_MARK, DEFAULT_PROJECT))

    config = Config(id=new_id, contexts=contexts)
    save_config(config, config_path)
    return config