from __future__ import annotations

import argparse
import logging
from dataclasses import fields, is_dataclass
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter

from playground_sandbox import DockerRuntime, SandboxError, SandboxSettings, compile_source, toolchain_version

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="pgs")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def _to_jsonable(value: object) -> Any:
    """Convert CLI return values into printable payloads.

    Example:
        ```python
        payload = _to_jsonable(version)
        ```
    """
    if not isinstance(value, type) and is_dataclass(value):
        return {field.name: getattr(value, field.name) for field in fields(value)}
    if hasattr(value, "__dict__"):
        return vars(value)
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for sandboxed compiles and managed containers.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="pgs",
        description=(
            "playground-sandbox CLI\n"
            "Compile untrusted source in a locked-down container and manage\n"
            "only playground-sandbox-labeled Docker containers."
        ),
        epilog=(
            "Quick Examples:\n"
            "  pgs compile main.rs -o main.wasm\n"
            "  pgs version\n"
            "  pgs list containers\n"
            "  pgs kill container <id>\n"
            "  pgs cleanup\n\n"
            "Remote Examples:\n"
            "  pgs --docker-context build-farm compile main.rs\n"
            "  pgs --ssh-host server --ssh-user ubuntu list containers"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a settings TOML file with a [sandbox] table.\n"
            "Keys missing from the file keep their defaults."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details such as the generated docker command.",
    )
    parser.add_argument(
        "--docker-context",
        help=(
            "Use an existing Docker context name.\n"
            "Mutually exclusive with --docker-host and --ssh-host."
        ),
    )
    parser.add_argument(
        "--docker-host",
        help=(
            "Connect directly with DOCKER_HOST.\n"
            "Examples: ssh://user@server, tcp://host:2376"
        ),
    )
    parser.add_argument(
        "--ssh-host",
        help="SSH shortcut for remote Docker. Builds DOCKER_HOST=ssh://<user>@<host>.",
    )
    parser.add_argument("--ssh-user", help="SSH username used with --ssh-host.")
    parser.add_argument("--ssh-port", type=int, help="SSH port used with --ssh-host.")
    parser.add_argument("--ssh-key-path", help="Path to SSH private key file used with --ssh-host.")

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    compile_cmd = sub.add_parser(
        "compile",
        help="Compile one source file in the sandbox.",
        description=(
            "Compile a source file in a fresh sandbox.\n"
            "Exits 0 when the toolchain succeeds, 1 otherwise."
        ),
        epilog="Example:\n  pgs compile main.rs -o main.wasm",
        formatter_class=_HELP_FORMATTER,
    )
    compile_cmd.add_argument("source_file")
    compile_cmd.add_argument("-o", "--output", help="Where to write the artifact, if one is produced.")

    sub.add_parser(
        "version",
        help="Show the toolchain version inside the sandbox image.",
        formatter_class=_HELP_FORMATTER,
    )

    list_cmd = sub.add_parser(
        "list",
        help="List managed containers.",
        formatter_class=_HELP_FORMATTER,
    )
    list_cmd_sub = list_cmd.add_subparsers(
        dest="resource",
        required=True,
        parser_class=_RichArgumentParser,
    )
    list_cmd_sub.add_parser(
        "containers",
        help="List managed containers in any state.",
        formatter_class=_HELP_FORMATTER,
    )

    kill_cmd = sub.add_parser(
        "kill",
        help="Force-remove one managed container.",
        formatter_class=_HELP_FORMATTER,
    )
    kill_cmd_sub = kill_cmd.add_subparsers(
        dest="resource",
        required=True,
        parser_class=_RichArgumentParser,
    )
    kill_container = kill_cmd_sub.add_parser(
        "container",
        help="Force-remove a managed container by id or name.",
        formatter_class=_HELP_FORMATTER,
    )
    kill_container.add_argument("container_id")

    sub.add_parser(
        "cleanup",
        help="Remove managed containers that are no longer running.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def build_runtime(args: argparse.Namespace) -> DockerRuntime:
    """Create a DockerRuntime from global CLI connection flags.

    Example:
        ```python
        runtime = build_runtime(args)
        ```
    """
    return DockerRuntime(
        docker_context=args.docker_context,
        docker_host=args.docker_host,
        ssh_host=args.ssh_host,
        ssh_user=args.ssh_user,
        ssh_port=args.ssh_port,
        ssh_key_path=args.ssh_key_path,
    )


def _configure_logging(verbose: bool) -> None:
    """Route library logs through a Rich handler.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_settings(args: argparse.Namespace) -> SandboxSettings:
    """Load settings from --config or fall back to defaults.

    Example:
        ```python
        settings = _load_settings(args)
        ```
    """
    if args.config:
        return SandboxSettings.from_file(args.config)
    return SandboxSettings()


def _print_containers(rows: list[dict[str, Any]]) -> None:
    """Render managed containers in a rich table.

    Example:
        ```python
        _print_containers([{"id": "abc", "name": "playground-sandbox-1"}])
        ```
    """
    table = Table(title="Managed Containers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Image")
    table.add_column("State")
    table.add_column("Status")
    for row in rows:
        table.add_row(row["id"], row["name"], row["image"], row["state"], row["status"])
    _CONSOLE.print(table)


def _run_compile(args: argparse.Namespace, runtime: DockerRuntime, settings: SandboxSettings) -> int:
    """Compile the requested file and report the outcome.

    Example:
        ```python
        code = _run_compile(args, runtime, settings)
        ```
    """
    source = Path(args.source_file).read_text(encoding="utf-8")
    response = compile_source(source, runtime=runtime, settings=settings)
    if response.stdout.strip():
        _CONSOLE.print(Panel(Text(response.stdout.rstrip()), title="stdout", border_style="cyan"))
    if response.stderr.strip():
        style = "yellow" if response.success else "red"
        _CONSOLE.print(Panel(Text(response.stderr.rstrip()), title="stderr", border_style=style))
    if response.artifact is not None and args.output:
        Path(args.output).write_bytes(response.artifact)
        _CONSOLE.print(f"Wrote {len(response.artifact)} bytes to {args.output}")
    if not response.success:
        _CONSOLE.print(Panel.fit("Compilation failed", style="bold red"))
        return 1
    _CONSOLE.print(Panel.fit("Compilation succeeded", style="bold green"))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `pgs` CLI command handler.

    Example:
        ```python
        code = main(["compile", "main.rs", "-o", "main.wasm"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    try:
        runtime = build_runtime(args)
        settings = _load_settings(args)
    except (ValueError, OSError) as exc:
        parser.error(str(exc))

    try:
        if args.command == "compile":
            return _run_compile(args, runtime, settings)
        if args.command == "version":
            version = _to_jsonable(toolchain_version(runtime=runtime, settings=settings))
            _CONSOLE.print(Panel.fit(Pretty(version), title="Toolchain", border_style="cyan"))
            return 0
        if args.command == "list" and args.resource == "containers":
            rows = [_to_jsonable(c) for c in runtime.list_containers(all_states=True)]
            _print_containers(rows)
            return 0
        if args.command == "kill" and args.resource == "container":
            runtime.kill_container(args.container_id)
            _CONSOLE.print(Panel.fit(f"Killed container {args.container_id}", style="bold yellow"))
            return 0
        if args.command == "cleanup":
            summary = _to_jsonable(runtime.cleanup_stale())
            _CONSOLE.print(Panel.fit(Pretty(summary), title="Cleanup Summary", border_style="green"))
            return 0
    except (SandboxError, RuntimeError, ValueError, OSError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {escape(str(exc))}", border_style="red"))
        return 1

    parser.error("Unhandled command")
