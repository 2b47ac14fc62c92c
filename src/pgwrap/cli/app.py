"""CLI application entry point and invocation-name dispatch for pg-wrap.

pg-wrap is installed under the names of the PostgreSQL client programs
(``psql``, ``pg_dump``, ...) and as ``pg_wrapper``.  The name it was
invoked under decides what runs:

* a client name — resolve the target and exec that client;
* ``pg_wrapper`` — dispatcher mode, the first free argument names the
  client (``pg_wrapper psql -d mydb``); ``pg_wrapper doctor`` prints
  diagnostics instead.

This module is the **sole error boundary** for the entire application.
It catches :class:`~pgwrap.exceptions.PgWrapError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering messages on stderr and
returning well-defined exit codes before any client is launched.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from pgwrap.cli import exit_codes
from pgwrap.cli.console import console, escape
from pgwrap.config.logging import configure_logging
from pgwrap.config.settings import WrapperSettings
from pgwrap.core.arguments import split_program_name
from pgwrap.exceptions import DispatchError, PgWrapError
from pgwrap.version import __version__

DISPATCHER_NAMES: frozenset[str] = frozenset({"pg_wrapper", "pgwrap"})
DOCTOR_COMMAND: str = "doctor"

_DISPATCHER_FLAGS: frozenset[str] = frozenset({"--help", "-V", "--version"})
"""Handled by ``pg_wrapper`` itself.  ``-h`` is left alone: clients read it as the host."""


# ---------------------------------------------------------------------------
# Argument parser (dispatcher mode only)
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the parser for ``pg_wrapper`` itself.

    Client arguments are never parsed here; they are forwarded verbatim.
    """
    parser = argparse.ArgumentParser(
        prog="pg_wrapper",
        description=(
            "Run a PostgreSQL client program from the installed version "
            "matching the target cluster."
        ),
        epilog=(
            "Select a cluster with --cluster <version>/<cluster>, "
            "$PGCLUSTER, ~/.postgresqlrc, or /etc/postgresql-common/user_clusters. "
            "Run 'pg_wrapper doctor' to inspect the installation."
        ),
        add_help=False,
    )
    parser.add_argument(
        "--help",
        action="help",
        help="Show this help message and exit.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "program",
        nargs="?",
        default=None,
        help="Client program to run (e.g. psql), or 'doctor' for diagnostics.",
    )
    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _handle_client(
    command: str,
    args: Sequence[str],
    environ: Mapping[str, str],
    settings: WrapperSettings,
) -> int:
    """Resolve the target for *command* and replace this process with it.

    Flow:
    1. Build the installation inventory and the resolver.
    2. Resolve version, cluster, and environment overlay.
    3. Print advisories.
    4. Locate the client binary and exec it.
    """
    from pgwrap.core.environment import apply_overlay
    from pgwrap.core.models import ResolutionRequest
    from pgwrap.core.resolver import Resolver
    from pgwrap.exceptions import ProgramNotFoundError
    from pgwrap.infra.installation import PgInstallation
    from pgwrap.infra.launcher import exec_program

    installation = PgInstallation.from_settings(settings)
    resolver = Resolver(installation, sysconf_dir=str(settings.sysconf_dir))
    resolution = resolver.resolve(
        ResolutionRequest(argv=tuple(args), environ=environ, command=command),
    )

    for warning in resolution.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    version = resolution.result.binary_version or ""
    path = installation.get_program_path(command, version)
    if path is None:
        raise ProgramNotFoundError(
            f"pg_wrapper: {command} was not found in "
            f"{installation.bin_root / version / 'bin'}",
            hint=f"Install the PostgreSQL {version} client package providing {command}.",
        )

    exec_program(path, command, resolution.argv, apply_overlay(environ, resolution.overlay))
    return exit_codes.SUCCESS


def _handle_doctor(environ: Mapping[str, str], settings: WrapperSettings) -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from pgwrap.cli.doctor import run_doctor

    return run_doctor(environ, settings)


def _handle_dispatcher(
    args: Sequence[str],
    environ: Mapping[str, str],
    settings: WrapperSettings,
) -> int:
    """Run ``pg_wrapper [options] <program> [client arguments]``."""
    if args and args[0] in _DISPATCHER_FLAGS:
        # Exits via SystemExit after printing help or the version.
        _build_parser().parse_args(args[:1])

    program, rest = split_program_name(args)
    if program is None:
        raise DispatchError(
            "pg_wrapper called directly but no program given as argument",
            hint="Usage: pg_wrapper <program> [options], e.g. pg_wrapper psql -l",
        )
    if program == DOCTOR_COMMAND:
        return _handle_doctor(environ, settings)
    return _handle_client(program, rest, environ, settings)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(
    argv: Sequence[str] | None = None,
    *,
    prog: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run pg-wrap.

    Parameters
    ----------
    argv:
        Arguments after the program name.  When ``None`` (default),
        ``sys.argv[1:]`` is used.
    prog:
        Name pg-wrap was invoked under; defaults to ``sys.argv[0]``.
        Only its basename matters.
    environ:
        Environment snapshot; defaults to a copy of ``os.environ``.

    Returns
    -------
    int
        OS process exit code.  A successful client launch never returns.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    command = Path(prog if prog is not None else sys.argv[0]).name
    env = dict(os.environ) if environ is None else dict(environ)

    settings = WrapperSettings.from_environ(env)
    configure_logging(verbose=settings.debug, log_json=settings.log_json)

    if command in DISPATCHER_NAMES:
        return _handle_dispatcher(args, env, settings)
    return _handle_client(command, args, env, settings)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli(prog: str | None = None) -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main(prog=prog)
        sys.exit(code)
    except PgWrapError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
