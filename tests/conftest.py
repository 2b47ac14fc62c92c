"""Shared pytest fixtures and configuration for the pg-wrap test suite.

Guidelines
----------
* No test reads ``/usr/lib/postgresql`` or ``/etc/postgresql``.
* No test replaces the process — ``exec_program`` is always mocked.
* Core tests use :class:`FakeInventory`; infra tests build trees in
  ``tmp_path``.
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterable
from pathlib import Path

import pytest

from pgwrap.core.models import sort_versions, version_key
from pgwrap.infra.installation import PgInstallation


class FakeInventory:
    """In-memory :class:`~pgwrap.core.protocols.ClusterInventory`.

    Parameters
    ----------
    clusters:
        ``{version: {cluster: port}}``.
    versions:
        Installed versions; defaults to the keys of *clusters*.
    programs:
        ``{version: {program, ...}}``; ``None`` means every version ships
        every program.
    user_map:
        Value returned by :meth:`user_cluster_map`.
    """

    def __init__(
        self,
        clusters: dict[str, dict[str, int]] | None = None,
        *,
        versions: Iterable[str] | None = None,
        programs: dict[str, set[str]] | None = None,
        user_map: tuple[str | None, str | None, str | None] = (None, None, None),
        socketdir: str = "/var/run/postgresql",
    ) -> None:
        self.clusters = clusters or {}
        self.versions = sort_versions(versions if versions is not None else self.clusters)
        self.programs = programs
        self.user_map = user_map
        self.socketdir = socketdir
        self.exists_calls: list[tuple[str, str]] = []

    def get_versions(self) -> list[str]:
        return list(self.versions)

    def get_version_clusters(self, version: str) -> list[str]:
        return sorted(self.clusters.get(version, {}))

    def get_cluster_port(self, version: str, cluster: str) -> int:
        return self.clusters[version][cluster]

    def get_cluster_socketdir(self, version: str, cluster: str) -> str:
        return self.socketdir

    def cluster_exists(self, version: str, cluster: str) -> bool:
        self.exists_calls.append((version, cluster))
        return cluster in self.clusters.get(version, {})

    def user_cluster_map(self) -> tuple[str | None, str | None, str | None]:
        return self.user_map

    def _ships(self, program: str, version: str) -> bool:
        return self.programs is None or program in self.programs.get(version, set())

    def get_newest_version(
        self,
        program: str,
        max_version: str | None = None,
    ) -> str | None:
        for version in reversed(self.versions):
            if max_version and version_key(version) > version_key(max_version):
                continue
            if self._ships(program, version):
                return version
        return None

    def get_program_path(self, program: str, version: str) -> Path | None:
        if version in self.versions and self._ships(program, version):
            return Path("/usr/lib/postgresql") / version / "bin" / program
        return None


@pytest.fixture
def fake_inventory() -> type[FakeInventory]:
    """Expose :class:`FakeInventory` to tests without importing conftest."""
    return FakeInventory


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after tests that run ``configure_logging``."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    pgwrap_logger = logging.getLogger("pgwrap")
    pgwrap_level = pgwrap_logger.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    pgwrap_logger.setLevel(pgwrap_level)



# ---------------------------------------------------------------------------
# On-disk installation trees
# ---------------------------------------------------------------------------

class PgTree:
    """Debian-style PostgreSQL layout rooted in a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.bin_root = root / "lib" / "postgresql"
        self.cluster_conf_root = root / "etc" / "postgresql"
        self.sysconf_dir = root / "etc" / "postgresql-common"
        self.home = root / "home"
        for path in (self.bin_root, self.cluster_conf_root, self.sysconf_dir, self.home):
            path.mkdir(parents=True)

    def install(
        self,
        version: str,
        programs: Iterable[str] = ("psql", "pg_dump", "pg_isready"),
    ) -> Path:
        """Create ``<bin_root>/<version>/bin`` with executable stubs."""
        bindir = self.bin_root / version / "bin"
        bindir.mkdir(parents=True, exist_ok=True)
        for program in programs:
            stub = bindir / program
            stub.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
            stub.chmod(0o755)
        return bindir

    def cluster(self, version: str, name: str, conf: str = "") -> Path:
        """Create ``<cluster_conf_root>/<version>/<name>/postgresql.conf``."""
        cluster_dir = self.cluster_conf_root / version / name
        cluster_dir.mkdir(parents=True, exist_ok=True)
        path = cluster_dir / "postgresql.conf"
        path.write_text(conf, encoding="utf-8")
        return path

    def installation(self, **overrides: object) -> PgInstallation:
        """Return a :class:`PgInstallation` over this tree."""
        kwargs: dict[str, object] = {
            "bin_root": self.bin_root,
            "cluster_conf_root": self.cluster_conf_root,
            "sysconf_dir": self.sysconf_dir,
            "home": self.home,
            "user": "alice",
            "groups": ("staff",),
        }
        kwargs.update(overrides)
        return PgInstallation(**kwargs)  # type: ignore[arg-type]


@pytest.fixture
def pg_tree(tmp_path: Path) -> PgTree:
    """Empty installation tree under ``tmp_path``."""
    return PgTree(tmp_path)
