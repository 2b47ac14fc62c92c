"""Tests for invocation-name dispatch (cli/app.py).

``PgInstallation`` is built over a ``tmp_path`` tree and ``exec_program``
is always mocked, so no client program ever runs.

Coverage:
* Client mode: resolved binary, forwarded arguments, environment.
* Dispatcher mode: program from the first free argument, ``--help``,
  ``--version``, missing program, ``doctor`` routing.
* Advisories and errors before exec.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import PgTree

from pgwrap.cli import exit_codes
from pgwrap.cli.app import cli, main
from pgwrap.exceptions import (
    DispatchError,
    NoVersionsInstalledError,
    ProgramNotFoundError,
    UnknownClusterError,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _environ(pg_tree: PgTree, **extra: str) -> dict[str, str]:
    environ = {
        "PG_CLUSTER_CONF_ROOT": str(pg_tree.cluster_conf_root),
        "PGSYSCONFDIR": str(pg_tree.sysconf_dir),
        "HOME": str(pg_tree.home),
        "PATH": "/usr/bin",
    }
    environ.update(extra)
    return environ


def _run(
    pg_tree: PgTree,
    prog: str,
    argv: list[str],
    **extra: str,
) -> MagicMock:
    """Run ``main`` against *pg_tree* and return the mocked ``exec_program``."""
    with (
        patch(
            "pgwrap.infra.installation.PgInstallation.from_settings",
            return_value=pg_tree.installation(),
        ),
        patch("pgwrap.infra.launcher.exec_program") as mock_exec,
    ):
        code = main(argv, prog=prog, environ=_environ(pg_tree, **extra))
    assert code == exit_codes.SUCCESS
    return mock_exec


@pytest.fixture
def two_versions(pg_tree: PgTree) -> PgTree:
    """Versions 14 and 16; clusters 14/main:5432 and 16/main:5433."""
    pg_tree.install("14", programs=("psql", "pg_dump"))
    pg_tree.install("16", programs=("psql", "pg_dump", "pg_isready"))
    pg_tree.cluster("14", "main", "port = 5432\n")
    pg_tree.cluster("16", "main", "port = 5433\nunix_socket_directories = '/run/pg16'\n")
    return pg_tree


# ---------------------------------------------------------------------------
# Client mode
# ---------------------------------------------------------------------------

class TestClientMode:
    def test_execs_resolved_binary(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "/usr/bin/pg_dump", ["--cluster", "16/main", "db"])
        path, argv0, args, env = mock_exec.call_args.args
        assert path == two_versions.bin_root / "16" / "bin" / "pg_dump"
        assert argv0 == "pg_dump"
        assert tuple(args) == ("db",)
        assert env["PGCLUSTER"] == "16/main"
        assert env["PGPORT"] == "5433"
        assert env["PGHOST"] == "/run/pg16"
        assert env["PATH"] == "/usr/bin"

    def test_default_port_cluster(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "pg_dump", [])
        path, _, _, env = mock_exec.call_args.args
        assert path == two_versions.bin_root / "14" / "bin" / "pg_dump"
        assert env["PGCLUSTER"] == "14/main"

    def test_version_agnostic_client_runs_newest(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "psql", ["--cluster=14/main"])
        path, _, _, env = mock_exec.call_args.args
        assert path == two_versions.bin_root / "16" / "bin" / "psql"
        assert env["PGCLUSTER"] == "14/main"

    def test_explicit_host_unsets_pgcluster(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "psql", ["-h", "db.example"], PGCLUSTER="14/main")
        env = mock_exec.call_args.args[3]
        assert "PGCLUSTER" not in env
        assert "PGHOST" not in env

    def test_warning_is_printed(
        self, pg_tree: PgTree, capsys: pytest.CaptureFixture[str]
    ) -> None:
        pg_tree.install("16")
        pg_tree.cluster("16", "a", "port = 5440\n")
        pg_tree.cluster("16", "b", "port = 5441\n")
        mock_exec = _run(pg_tree, "psql", [])
        assert mock_exec.called
        assert "No existing cluster is suitable" in capsys.readouterr().err

    def test_unknown_cluster_never_execs(self, two_versions: PgTree) -> None:
        with (
            patch(
                "pgwrap.infra.installation.PgInstallation.from_settings",
                return_value=two_versions.installation(),
            ),
            patch("pgwrap.infra.launcher.exec_program") as mock_exec,
        ):
            with pytest.raises(UnknownClusterError):
                main(["--cluster", "14/nope"], prog="psql", environ=_environ(two_versions))
        mock_exec.assert_not_called()

    def test_program_missing_from_version(self, two_versions: PgTree) -> None:
        with (
            patch(
                "pgwrap.infra.installation.PgInstallation.from_settings",
                return_value=two_versions.installation(),
            ),
            patch("pgwrap.infra.launcher.exec_program") as mock_exec,
        ):
            with pytest.raises(ProgramNotFoundError, match="pg_upgrade was not found"):
                main(["--cluster", "14/main"], prog="pg_upgrade", environ=_environ(two_versions))
        mock_exec.assert_not_called()

    def test_nothing_installed(self, pg_tree: PgTree) -> None:
        with (
            patch(
                "pgwrap.infra.installation.PgInstallation.from_settings",
                return_value=pg_tree.installation(),
            ),
            patch("pgwrap.infra.launcher.exec_program") as mock_exec,
        ):
            with pytest.raises(NoVersionsInstalledError):
                main(["-h", "db"], prog="psql", environ=_environ(pg_tree))
        mock_exec.assert_not_called()


# ---------------------------------------------------------------------------
# Dispatcher mode
# ---------------------------------------------------------------------------

class TestDispatcherMode:
    def test_program_from_first_free_argument(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "pg_wrapper", ["--cluster", "16/main", "pg_dump", "db"])
        path, argv0, args, _ = mock_exec.call_args.args
        assert path == two_versions.bin_root / "16" / "bin" / "pg_dump"
        assert argv0 == "pg_dump"
        assert tuple(args) == ("db",)

    def test_no_program(self) -> None:
        with pytest.raises(DispatchError, match="no program given"):
            main([], prog="pg_wrapper", environ={})

    def test_only_options(self) -> None:
        with pytest.raises(DispatchError):
            main(["-l"], prog="pg_wrapper", environ={})

    def test_version_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"], prog="pg_wrapper", environ={})
        assert exc_info.value.code == 0
        assert "pg_wrapper" in capsys.readouterr().out

    def test_help_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"], prog="pg_wrapper", environ={})
        assert exc_info.value.code == 0
        assert "--cluster" in capsys.readouterr().out

    def test_separate_port_value_is_not_the_program(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "pg_wrapper", ["-p", "5433", "pg_dump", "db"])
        path, argv0, args, env = mock_exec.call_args.args
        assert path == two_versions.bin_root / "16" / "bin" / "pg_dump"
        assert argv0 == "pg_dump"
        assert tuple(args) == ("-p", "5433", "db")
        assert env["PGCLUSTER"] == "16/main"

    def test_short_host_option_is_forwarded(self, two_versions: PgTree) -> None:
        mock_exec = _run(two_versions, "pg_wrapper", ["-h", "localhost", "pg_dump", "db"])
        path, argv0, args, env = mock_exec.call_args.args
        assert path == two_versions.bin_root / "16" / "bin" / "pg_dump"
        assert argv0 == "pg_dump"
        assert tuple(args) == ("-h", "localhost", "db")
        assert "PGHOST" not in env
        assert "PGCLUSTER" not in env

    def test_doctor_only_in_dispatcher_mode(self, two_versions: PgTree) -> None:
        with patch("pgwrap.cli.doctor.run_doctor") as mock_doc:
            _run(two_versions, "psql", ["doctor"])
        mock_doc.assert_not_called()


# ---------------------------------------------------------------------------
# Error boundary
# ---------------------------------------------------------------------------

class TestCli:
    def test_dispatch_error_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("sys.argv", ["pg_wrapper"])
        with pytest.raises(SystemExit) as exc_info:
            cli()
        assert exc_info.value.code == exit_codes.GENERAL_ERROR
        err = capsys.readouterr().err
        assert "no program given" in err
        assert "Usage: pg_wrapper <program>" in err

    def test_markup_in_messages_is_escaped(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch(
            "pgwrap.cli.app.main",
            side_effect=UnknownClusterError("No existing cluster 16/[bold]x"),
        ):
            with pytest.raises(SystemExit):
                cli()
        assert "16/[bold]x" in capsys.readouterr().err

    def test_bad_setting_exits_general(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.argv", ["psql"])
        monkeypatch.setenv("PGWRAP_DEBUG", "loud")
        with pytest.raises(SystemExit) as exc_info:
            cli()
        assert exc_info.value.code == exit_codes.GENERAL_ERROR


def test_prog_basename_decides_mode(tmp_path: Path) -> None:
    with pytest.raises(DispatchError):
        main([], prog=str(tmp_path / "bin" / "pg_wrapper"), environ={})
