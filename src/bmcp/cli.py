from __future__ import annotations

import argparse
import asyncio
import os
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter
from batch_mcp import ServerSettings, run_code
from batch_mcp.execution.config import PROFILES
from batch_mcp.logging_setup import configure_logging
from batch_mcp.server import build_engine, serve

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
        parser = _RichArgumentParser(prog="python -m bmcp")
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


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the batch-mcp server and one-off runs.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m bmcp",
        description=(
            "batch-mcp CLI\n"
            "Serve the execute_matlab MCP tool or run one snippet locally.\n"
            "Code runs unsandboxed in the configured interpreter's batch mode."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m bmcp serve\n"
            "  python -m bmcp serve -t http --port 8080\n"
            "  python -m bmcp run --code \"disp(2+3)\"\n"
            "  python -m bmcp run --file analysis.m --timeout 60\n\n"
            "Environment:\n"
            "  MATLAB_PATH            MATLAB executable (default: matlab on PATH)\n"
            "  OCTAVE_PATH            Octave executable (default: octave-cli on PATH)\n"
            "  BATCH_MCP_INTERPRETER  matlab or octave\n"
            "  BATCH_MCP_CONFIG       Path to a TOML settings file"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a TOML settings file.\n"
            "Environment variables override file values; flags override both."
        ),
    )
    parser.add_argument(
        "--interpreter",
        choices=sorted(PROFILES),
        help="Interpreter profile to launch (default: matlab).",
    )
    parser.add_argument(
        "--interpreter-path",
        help=(
            "Interpreter executable.\n"
            "Example: --interpreter-path /Applications/MATLAB_R2025a.app/bin/matlab"
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Log level for stderr output (default: INFO).",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    serve_cmd = sub.add_parser(
        "serve",
        help="Serve the execute_matlab tool over MCP.",
        description=(
            "Start the MCP server.\n"
            "stdio is the default transport; http serves streamable HTTP at /mcp."
        ),
        epilog=(
            "Examples:\n"
            "  python -m bmcp serve\n"
            "  python -m bmcp serve --transport http --host 127.0.0.1 --port 9000"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    serve_cmd.add_argument(
        "-t",
        "--transport",
        choices=["stdio", "http"],
        help="Transport type (stdio or http, default: stdio).",
    )
    serve_cmd.add_argument("--host", help="HTTP bind address (default: 0.0.0.0).")
    serve_cmd.add_argument("--port", type=int, help="HTTP port (default: 8080).")

    run_cmd = sub.add_parser(
        "run",
        help="Execute one snippet and print its output.",
        description=(
            "Run code through the same staging, deadline and classification\n"
            "path the execute_matlab tool uses."
        ),
        epilog=(
            "Examples:\n"
            "  python -m bmcp run --code \"A = [1 2; 3 4]; disp(det(A))\"\n"
            "  python -m bmcp run --file script.m --timeout 30"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    source = run_cmd.add_mutually_exclusive_group(required=True)
    source.add_argument("--code", help="Code to execute.")
    source.add_argument("--file", help="Read the code to execute from this file.")
    run_cmd.add_argument(
        "--timeout",
        type=float,
        help="Timeout in seconds (default: 300).",
    )

    return parser


def build_settings(args: argparse.Namespace) -> ServerSettings:
    """Resolve settings from file, environment and CLI flags, in that order.

    Example:
        ```python
        settings = build_settings(build_parser().parse_args(["serve"]))
        ```
    """
    base = ServerSettings.from_file(args.config) if args.config else None
    settings = ServerSettings.from_env(os.environ, base=base)
    overrides: dict[str, Any] = {}
    if args.interpreter:
        overrides["interpreter"] = args.interpreter
        if args.interpreter != settings.interpreter and not args.interpreter_path:
            overrides["interpreter_path"] = None
    if args.interpreter_path:
        overrides["interpreter_path"] = args.interpreter_path
    if args.log_level:
        overrides["log_level"] = args.log_level
    for name in ("transport", "host", "port"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    return replace(settings, **overrides) if overrides else settings


def _read_code(args: argparse.Namespace) -> str:
    """Return the code given inline or read from `--file`.

    Example:
        ```python
        code = _read_code(args)
        ```
    """
    if args.code is not None:
        return args.code
    return Path(args.file).read_text(encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `bmcp` CLI command handler.

    Example:
        ```python
        code = main(["run", "--code", "disp(2+3)"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        settings = build_settings(args)
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(settings.log_level)

    if args.command == "serve":
        serve(settings)
        return 0
    if args.command == "run":
        try:
            code = _read_code(args)
        except OSError as exc:
            parser.error(f"Cannot read code file: {exc}")
        timeout = args.timeout if args.timeout is not None else settings.default_timeout_seconds
        try:
            result = asyncio.run(
                run_code(
                    code,
                    build_engine(settings),
                    timeout_seconds=timeout,
                    staging_root=settings.staging_dir,
                )
            )
        except ValueError as exc:
            parser.error(str(exc))
        if result.is_error:
            _CONSOLE.print(Panel.fit(Text(result.text), title="Execution Error", border_style="red"))
            return 1
        _CONSOLE.print(Panel.fit(Text(result.text), title="Output", border_style="green"))
        return 0

    parser.error("Unhandled command")
