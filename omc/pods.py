"""Locating and printing container logs stored in a must-gather."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TextIO

import yaml

from omc.crilog import LogParseError, filter_log_file

POD_RESOURCE_NAMES = frozenset({"po", "pod", "pods"})

_USAGE = (
    "error: expected 'logs [-p] (POD | TYPE/NAME) [-c CONTAINER]'.\n"
    "POD or TYPE/NAME is a required argument for the logs command\n"
    "See 'omc logs -h' for help and examples"
)


class LogsError(Exception):
    """Raised when the requested logs cannot be located or printed."""


def resolve_must_gather_root(root: str) -> str:
    """Return the directory holding ``namespaces`` for the given must-gather."""
    if not root:
        raise LogsError("There are no must-gather resources defined.")
    if os.path.exists(f"{root}/namespaces"):
        return root
    try:
        names = sorted(os.listdir(root))
    except OSError as exc:
        raise LogsError(str(exc)) from exc
    quay = next((name for name in names if name.startswith("quay")), None)
    if quay is None:
        raise LogsError("Some error occurred, wrong must-gather file composition")
    return f"{root}/{quay}"


def resolve_logs_target(args: Sequence[str], container: str = "") -> tuple[str, str]:
    """Work out the pod and container named on the command line.

    ``args`` is ``POD``, ``pod/NAME``, or either of them followed by a
    container name, which may not be combined with ``container``.
    """
    args = list(args)
    if not 1 <= len(args) <= 2:
        raise LogsError(_USAGE)
    if len(args) == 2 and container:
        raise LogsError("error: only one of -c or an inline [CONTAINER] arg is allowed")
    parts = args[0].split("/")
    if len(parts) == 2 and parts[0] in POD_RESOURCE_NAMES:
        pod = parts[1]
        if not pod:
            raise LogsError(
                "error: arguments in resource/name form must have a single resource and name"
            )
    else:
        pod = parts[0] if len(args) == 1 else args[0]
    return pod, args[1] if len(args) == 2 else container


def _load_pods(namespace_path: str, namespace: str) -> list[dict]:
    pods_file = f"{namespace_path}/core/pods.yaml"
    try:
        text = Path(pods_file).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise LogsError(f"error: namespace {namespace} not found.") from exc
    unreadable = LogsError(f"Error when trying to unmarshal file {pods_file}")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise unreadable from exc
    if data is None:
        return []
    if not isinstance(data, dict):
        raise unreadable
    items = data.get("items") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise unreadable
    return items


def _pod_name(pod: dict) -> str:
    metadata = pod.get("metadata") or {}
    return str(metadata.get("name") or "")


def _container_names(pod: dict, key: str) -> list[str]:
    spec = pod.get("spec") or {}
    return [str(c.get("name") or "") for c in spec.get(key) or [] if isinstance(c, dict)]


def container_log_paths(
    root: str,
    namespace: str,
    pod_name: str,
    container: str = "",
    previous: bool = False,
    all_containers: bool = False,
) -> list[str]:
    """Return the log files to show for a pod's container(s).

    A pod with one container needs no container name; otherwise a name is
    required unless ``all_containers`` asks for every regular container.
    """
    log_file = "previous.log" if previous else "current.log"
    namespace_path = f"{root}/namespaces/{namespace}"

    def log_path(pod: str, name: str) -> str:
        return f"{namespace_path}/pods/{pod}/{name}/{name}/logs/{log_file}"

    paths: list[str] = []
    found = False
    for pod in _load_pods(namespace_path, namespace):
        name = _pod_name(pod)
        if name != pod_name:
            continue
        found = True
        containers = _container_names(pod, "containers")
        inits = _container_names(pod, "initContainers")
        if len(containers) == 1 and not container:
            match = containers[0]
        elif all_containers:
            return paths + [log_path(name, c) for c in containers]
        else:
            match = container if container in containers + inits else ""
        if not match:
            if container:
                raise LogsError(f"error: container {container} is not valid for pod {name}")
            choices = " ".join(containers + inits)
            raise LogsError(
                f"error: a container name must be specified for pod {name}, "
                f"choose one of: [{choices}]"
            )
        paths.append(log_path(name, match))
    if not found:
        raise LogsError(f"error: pods {pod_name} not found")
    return paths


def print_pod_logs(
    root: str,
    namespace: str,
    pod_name: str,
    container: str = "",
    previous: bool = False,
    all_containers: bool = False,
    levels: Iterable[str] = (),
    out: TextIO | None = None,
) -> None:
    """Write a pod's container logs to ``out``, filtered by ``levels`` if any."""
    out = sys.stdout if out is None else out
    levels = list(levels)
    for path in container_log_paths(root, namespace, pod_name, container, previous, all_containers):
        try:
            if levels:
                for line in filter_log_file(path, levels):
                    out.write(line + "\n")
            else:
                with open(path, encoding="utf-8", errors="replace", newline="") as handle:
                    out.write(handle.read())
        except FileNotFoundError as exc:
            raise LogsError(f"error: file {path} does not exist") from exc
        except OSError as exc:
            raise LogsError(f"error: can't open file {path}") from exc
        except LogParseError as exc:
            raise LogsError(str(exc)) from exc