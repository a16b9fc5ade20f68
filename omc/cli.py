"""Command-line entry point for inspecting must-gather archives."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path
from typing import Callable, NamedTuple, Optional
from urllib.error import URLError

from omc.config import (
    Config,
    MustGatherError,
    load_config,
    save_config,
    set_project,
    use_context,
)
from omc.pods import LogsError, print_pod_logs, resolve_logs_target, resolve_must_gather_root
from omc.resources import fetch_resources, format_table, resource_table
from omc.uget import UGetError, uget

CONFIG_NAME = ".omc.json"
RESOURCES_URL_ENV = "OMC_API_RESOURCES_URL"
VERSION_HASH = ""
HELLO = "Hello from omc CLI. :]"

_Handler = Callable[[argparse.Namespace, "_Session"], int]


class _Session(NamedTuple):
    """Settings resolved before a command runs."""

    config_path: str
    root: str
    namespace: str


def _version_tag() -> str:
    try:
        return metadata.version("omc")
    except metadata.PackageNotFoundError:
        return ""


def _version_message() -> str:
    return f"omc version: {_version_tag()}\nhash: {VERSION_HASH}"


def _create_config_file(home: Path) -> None:
    target = home / CONFIG_NAME
    if not target.exists():
        save_config(Config(), target)


def init_config(config_path: str = "", namespace: str = "") -> _Session:
    """Read the configuration and work out the current must-gather and namespace.

    An explicit ``namespace`` wins over the project of the current context.
    """
    if config_path:
        used = Path(config_path)
    else:
        home = Path.home()
        used = home / CONFIG_NAME
        _create_config_file(home)

    if not used.is_file():
        _create_config_file(Path.home())
        return _Session(str(used), "", namespace)

    context = load_config(used).current()
    root = ""
    if context is not None:
        root = context.path
        if not namespace:
            namespace = context.project

    if root and not os.path.exists(f"{root}/namespaces"):
        try:
            names = sorted(os.listdir(root))
        except OSError as exc:
            print(exc)
            return _Session(str(used), "", namespace)
        base = next((n for n in names if os.path.isdir(f"{root}/{n}")), None)
        if base is None:
            raise MustGatherError("Some error occurred, wrong must-gather file composition")
        root = f"{root}/{base}"

    return _Session(str(used), root, namespace)


# --- command handlers -------------------------------------------------------


def _project(args: argparse.Namespace, session: _Session) -> int:
    if len(args.name) > 1:
        print("Expect one argument, found: ", len(args.name))
        return 1
    project = args.name[0] if args.name else ""
    message = set_project(session.config_path, project)
    if message is not None:
        print(message)
    return 0


def _use(args: argparse.Namespace, session: _Session) -> int:
    context_id = args.id
    if not args.path and not context_id:
        print(f'must-gather: "{session.root}"\nnamespace: "{session.namespace}"')
        return 0
    if len(args.path) > 1:
        print("Expect one argument, found: ", len(args.path))
        return 1
    path = ""
    if args.path:
        path = os.path.abspath(args.path[0].rstrip("/").rstrip("\\"))
        if not os.path.isdir(path):
            print(f"Error: {path} is not a directory.")
            return 1
    try:
        use_context(session.config_path, path, context_id)
    except MustGatherError as exc:
        print(exc)
        return 1
    return 0


def _logs(args: argparse.Namespace, session: _Session) -> int:
    levels = args.log_level.split(",") if args.log_level else []
    try:
        root = resolve_must_gather_root(session.root)
        pod, container = resolve_logs_target(args.target, args.container)
        print_pod_logs(
            root,
            session.namespace,
            pod,
            container,
            args.previous,
            args.all_containers,
            levels,
            sys.stdout,
        )
    except LogsError as exc:
        print(exc)
        return 1
    return 0


def _api_resources(args: argparse.Namespace, session: _Session) -> int:
    url = args.source or os.environ.get(RESOURCES_URL_ENV, "")
    if not url:
        print(f"error: no resource catalogue location given; set {RESOURCES_URL_ENV} or --source")
        return 1
    try:
        resources = fetch_resources(url)
    except (URLError, OSError, ValueError) as exc:
        print(exc)
        return 1
    headers, rows = resource_table(resources, wide=args.output == "wide")
    sys.stdout.write(format_table(headers, rows))
    return 0


def _uget(args: argparse.Namespace, session: _Session) -> int:
    if not args.path:
        print("The path for the object(s) to inspect needs to be defined with the flag --path")
        return 1
    try:
        text = uget(
            args.path,
            args.names,
            args.output,
            args.columns,
            args.kind,
            args.selector,
            args.show_labels,
        )
    except UGetError as exc:
        print(exc)
        return 1
    sys.stdout.write(text)
    return 0


# --- parser -----------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every command."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Config file to use (default is $HOME/.omc.json).",
    )
    common.add_argument(
        "-n",
        "--namespace",
        default=argparse.SUPPRESS,
        help="If present, list the requested object(s) for a specific namespace.",
    )

    parser = argparse.ArgumentParser(prog="omc", parents=[common])
    parser.set_defaults(config="", namespace="", handler=None)
    sub = parser.add_subparsers(dest="command")

    def add(
        name: str, handler: Optional[_Handler], help_text: str, **kwargs
    ) -> argparse.ArgumentParser:
        command = sub.add_parser(name, parents=[common], help=help_text, **kwargs)
        command.set_defaults(handler=handler)
        return command

    add("version", None, "Print omc version")

    project = add("project", _project, "Switch to another project")
    project.add_argument("name", nargs="*")

    use = add("use", _use, "Select the must-gather to use")
    use.add_argument("path", nargs="*")
    use.add_argument(
        "-i",
        "--id",
        default="",
        help="Id string for the must-gather to use. If two must-gather has the same id "
        "the first one will be used.",
    )

    logs = add("logs", _logs, "Print the logs for a container in a pod")
    logs.add_argument("target", nargs="*")
    logs.add_argument("-c", "--container", default="", help="Print the logs of this container")
    logs.add_argument(
        "-p",
        "--previous",
        action="store_true",
        help="Print the logs for the previous instance of the container in a pod if it exists.",
    )
    logs.add_argument(
        "--all-containers", action="store_true", help="Get all containers' logs in the pod(s)."
    )
    logs.add_argument(
        "-l",
        "--log-level",
        default="",
        help="Filter logs by level (info|error|warning), comma separated.",
    )

    resources = add("api-resources", _api_resources, "Print the supported API resources")
    resources.add_argument("-o", "--output", default="", help="Output format. One of: wide")
    resources.add_argument("--source", default="", help="Location of the resource catalogue.")

    ug = add("uget", _uget, "List objects stored in YAML files", aliases=["dget"])
    ug.add_argument("names", nargs="*")
    ug.add_argument(
        "--show-labels",
        action="store_true",
        help="When printing, show all labels as the last column.",
    )
    ug.add_argument(
        "-o", "--output", default="", help="Output format. One of: json|yaml|jsonpath=..."
    )
    ug.add_argument("-c", "--columns", default="", help="Custom columns file path.")
    ug.add_argument("-p", "--path", default="", help="Inspect object(s) path.")
    ug.add_argument("-k", "--kind", default="", help="kind(s) to filter on, comma separated")
    ug.add_argument(
        "-l",
        "--selector",
        default="",
        help="selector (label query) to filter on, supports '=', '==', and '!='.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    args = build_parser().parse_args(argv)
    try:
        session = init_config(args.config, args.namespace)
    except MustGatherError as exc:
        print(exc)
        return 1
    if args.command is None:
        print(HELLO)
        return 0
    if args.handler is None:
        print(_version_message())
        return 0
    return args.handler(args, session)


if __name__ == "__main__":
    sys.exit(main())