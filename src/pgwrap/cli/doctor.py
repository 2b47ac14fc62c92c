"""``pg_wrapper doctor`` — installation diagnostics.

Collects the installed versions, the configured clusters, and the
target a plain ``psql`` would be sent to, then renders a Rich table
(or a plain-text table when Rich is missing).

This module lives in the CLI layer — it may import from ``infra`` and
``core``.  No resolution logic resides here; the default target comes
from the same :class:`~pgwrap.core.resolver.Resolver` the clients use.
"""

from __future__ import annotations

import platform
import sys
from collections.abc import Mapping

from pgwrap.cli import exit_codes
from pgwrap.cli.console import console, escape
from pgwrap.config.settings import WrapperSettings
from pgwrap.core.models import ResolutionRequest
from pgwrap.core.protocols import ClusterInventory
from pgwrap.core.resolver import Resolver
from pgwrap.exceptions import PgWrapError
from pgwrap.infra.installation import PgInstallation
from pgwrap.version import __version__

OK = "[green]OK[/green]"
WARN = "[yellow]WARN[/yellow]"
FAIL = "[red]FAIL[/red]"

Check = tuple[str, str, str]


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _pgwrap_version_check() -> Check:
    """Return (label, value, status) for the pg-wrap version row."""
    return "pg-wrap", __version__, OK


def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = OK if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _versions_check(inventory: ClusterInventory, settings: WrapperSettings) -> Check:
    """Return the row listing installed versions."""
    versions = inventory.get_versions()
    if not versions:
        return "Versions", f"none in {settings.bin_root}", FAIL
    return "Versions", ", ".join(versions), OK


def _cluster_checks(inventory: ClusterInventory) -> list[Check]:
    """Return one row per configured cluster, newest version first."""
    rows: list[Check] = []
    for version in reversed(inventory.get_versions()):
        for cluster in inventory.get_version_clusters(version):
            port = inventory.get_cluster_port(version, cluster)
            socketdir = inventory.get_cluster_socketdir(version, cluster)
            rows.append((f"{version}/{cluster}", f"port {port}, socket {socketdir}", OK))
    if not rows:
        rows.append(("Clusters", "none configured", WARN))
    return rows


def _default_target_check(
    inventory: ClusterInventory,
    environ: Mapping[str, str],
    settings: WrapperSettings,
) -> Check:
    """Resolve ``psql`` without arguments and describe the outcome."""
    resolver = Resolver(inventory, sysconf_dir=str(settings.sysconf_dir))
    try:
        resolution = resolver.resolve(
            ResolutionRequest(argv=(), environ=environ, command="psql"),
        )
    except PgWrapError as exc:
        return "Default target", str(exc), FAIL

    result = resolution.result
    if resolution.warnings:
        return "Default target", "none", WARN

    parts: list[str] = []
    if result.cluster_label:
        parts.append(result.cluster_label)
    if result.host:
        parts.append(f"host {result.host}")
    if result.port is not None:
        parts.append(f"port {result.port}")
    if result.database:
        parts.append(f"database {result.database}")
    if not parts:
        parts.append("from environment")
    return "Default target", ", ".join(parts), OK


def _status_plain(status: str) -> str:
    """Convert rich-markup status to plain text."""
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_doctor_table(checks: list[Check]) -> None:
    """Render doctor output without Rich."""
    print("\npg_wrapper doctor", file=sys.stderr)
    print("=" * 72, file=sys.stderr)
    print(f"{'Component':<16} {'Value':<46} {'Status':<8}", file=sys.stderr)
    print("-" * 72, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<16} {value:<46} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(
    environ: Mapping[str, str],
    settings: WrapperSettings,
    inventory: ClusterInventory | None = None,
) -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check fails,
        :data:`exit_codes.GENERAL_ERROR` otherwise.
    """
    if inventory is None:
        inventory = PgInstallation.from_settings(settings)

    checks = [
        _pgwrap_version_check(),
        _python_version_check(),
        _versions_check(inventory, settings),
        *_cluster_checks(inventory),
        _default_target_check(inventory, environ, settings),
    ]
    has_failure = any("FAIL" in status for _, _, status in checks)

    try:
        from rich.table import Table
    except ModuleNotFoundError:
        _print_plain_doctor_table(checks)
        print("Some checks failed." if has_failure else "All checks passed.", file=sys.stderr)
        return exit_codes.GENERAL_ERROR if has_failure else exit_codes.SUCCESS

    table = Table(
        title="pg_wrapper doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=14)
    table.add_column("Value", min_width=24)
    table.add_column("Status", justify="center", min_width=6)
    for label, value, status in checks:
        table.add_row(escape(label), escape(value), status)

    console.print()
    console.print(table)
    console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR
    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
