"""Infrastructure: installed versions and configured clusters on disk.

:class:`PgInstallation` implements
:class:`~pgwrap.core.protocols.ClusterInventory` over the Debian
layout:

* ``<bin_root>/<version>/bin/<program>`` — client and server binaries.
* ``<cluster_conf_root>/<version>/<cluster>/postgresql.conf`` — one
  directory per configured cluster.
* ``~/.postgresqlrc`` and ``<sysconf_dir>/user_clusters`` — default
  cluster maps.

Rules
-----
* Read-only: nothing here writes to disk or to the environment.
* No ``print()`` — decisions are logged at DEBUG.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
from collections.abc import Iterable
from pathlib import Path

from pgwrap.config.settings import WrapperSettings
from pgwrap.core.models import DEFAULT_PORT, sort_versions, version_key

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_DIR: str = "/var/run/postgresql"
USER_MAP_FILE: str = ".postgresqlrc"
SYSTEM_MAP_FILE: str = "user_clusters"
WILDCARD: str = "*"

_MAX_INCLUDE_DEPTH: int = 10


# ---------------------------------------------------------------------------
# postgresql.conf reading
# ---------------------------------------------------------------------------

def _strip_comment(line: str) -> str:
    """Drop a trailing ``#`` comment that is not inside single quotes."""
    quoted = False
    for index, char in enumerate(line):
        if char == "'":
            quoted = not quoted
        elif char == "#" and not quoted:
            return line[:index]
    return line


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value[1:-1].replace("''", "'").replace("\\'", "'")
    return value


def parse_conf_line(line: str) -> tuple[str, str] | None:
    """Parse ``name = value`` (the ``=`` is optional) into a pair.

    Returns ``None`` for blank and comment-only lines.
    """
    text = _strip_comment(line).strip()
    if not text:
        return None
    if "=" in text:
        name, _, value = text.partition("=")
    else:
        name, _, value = text.partition(" ")
    name = name.strip().lower()
    if not name:
        return None
    return name, _unquote(value.strip())


def read_conf_file(path: Path, _depth: int = 0) -> dict[str, str]:
    """Read a postgresql.conf-style file, following include directives.

    Later assignments override earlier ones, as in the server.  A missing
    file yields an empty mapping.
    """
    settings: dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        logger.debug("cannot read %s: %s", path, exc)
        return settings

    for line in lines:
        parsed = parse_conf_line(line)
        if parsed is None:
            continue
        name, value = parsed
        if name in ("include", "include_if_exists", "include_dir"):
            if _depth >= _MAX_INCLUDE_DEPTH:
                logger.debug("include depth exceeded in %s", path)
                continue
            target = Path(value)
            if not target.is_absolute():
                target = path.parent / target
            if name == "include_dir":
                for child in sorted(target.glob("*.conf")):
                    settings.update(read_conf_file(child, _depth + 1))
            else:
                settings.update(read_conf_file(target, _depth + 1))
            continue
        settings[name] = value
    return settings


# ---------------------------------------------------------------------------
# Invoking user
# ---------------------------------------------------------------------------

def _current_user() -> str:
    return pwd.getpwuid(os.getuid()).pw_name


def _current_groups() -> frozenset[str]:
    names: set[str] = set()
    for gid in {os.getgid(), *os.getgroups()}:
        try:
            names.add(grp.getgrgid(gid).gr_name)
        except KeyError:
            continue
    return frozenset(names)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

class PgInstallation:
    """Concrete :class:`ClusterInventory` backed by the filesystem.

    Usage::

        installation = PgInstallation.from_settings(settings)
        installation.get_versions()          # ['13', '16']
        installation.get_cluster_port('16', 'main')

    This class satisfies the :class:`~pgwrap.core.protocols.ClusterInventory`
    protocol structurally — no explicit inheritance required.
    """

    def __init__(
        self,
        *,
        bin_root: Path,
        cluster_conf_root: Path,
        sysconf_dir: Path,
        home: Path | None = None,
        user: str | None = None,
        groups: Iterable[str] | None = None,
    ) -> None:
        self.bin_root = bin_root
        self.cluster_conf_root = cluster_conf_root
        self.sysconf_dir = sysconf_dir
        self.home = home
        self._user = user
        self._groups = frozenset(groups) if groups is not None else None

    @classmethod
    def from_settings(cls, settings: WrapperSettings) -> PgInstallation:
        return cls(
            bin_root=settings.bin_root,
            cluster_conf_root=settings.cluster_conf_root,
            sysconf_dir=settings.sysconf_dir,
            home=settings.home,
        )

    # ------------------------------------------------------------------
    # Versions and binaries
    # ------------------------------------------------------------------

    def get_versions(self) -> list[str]:
        """Return versions with a ``bin`` directory, oldest first."""
        if not self.bin_root.is_dir():
            return []
        return sort_versions(
            entry.name
            for entry in self.bin_root.iterdir()
            if (entry / "bin").is_dir()
        )

    def get_program_path(self, program: str, version: str) -> Path | None:
        candidate = self.bin_root / version / "bin" / program
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return candidate
        return None

    def get_newest_version(
        self,
        program: str,
        max_version: str | None = None,
    ) -> str | None:
        """Return the newest version shipping *program*, at most *max_version*."""
        ceiling = version_key(max_version) if max_version else None
        for version in reversed(self.get_versions()):
            if ceiling is not None and version_key(version) > ceiling:
                continue
            if self.get_program_path(program, version) is not None:
                return version
        return None

    # ------------------------------------------------------------------
    # Clusters
    # ------------------------------------------------------------------

    def _conf_path(self, version: str, cluster: str) -> Path:
        return self.cluster_conf_root / version / cluster / "postgresql.conf"

    def get_version_clusters(self, version: str) -> list[str]:
        version_dir = self.cluster_conf_root / version
        if not version_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in version_dir.iterdir()
            if (entry / "postgresql.conf").is_file()
        )

    def cluster_exists(self, version: str, cluster: str) -> bool:
        return self._conf_path(version, cluster).is_file()

    def get_cluster_port(self, version: str, cluster: str) -> int:
        raw = read_conf_file(self._conf_path(version, cluster)).get("port")
        if raw is None:
            return DEFAULT_PORT
        try:
            return int(raw)
        except ValueError:
            logger.debug("ignoring malformed port %r for %s/%s", raw, version, cluster)
            return DEFAULT_PORT

    def get_cluster_socketdir(self, version: str, cluster: str) -> str:
        conf = read_conf_file(self._conf_path(version, cluster))
        raw = conf.get("unix_socket_directories", conf.get("unix_socket_directory", ""))
        for directory in raw.split(","):
            directory = directory.strip()
            if directory:
                return directory
        return DEFAULT_SOCKET_DIR

    # ------------------------------------------------------------------
    # Default cluster maps
    # ------------------------------------------------------------------

    def user_cluster_map(self) -> tuple[str | None, str | None, str | None]:
        """Return this user's default ``(version, cluster, database)``.

        Sources, first hit wins:

        1. ``~/.postgresqlrc`` — ``version cluster [database]``
        2. ``user_clusters`` — ``user group version cluster database``
           with ``*`` wildcards
        3. the only configured cluster, if there is exactly one
        4. the cluster on the default port
        """
        mapped = self._read_user_map()
        if mapped is not None:
            return mapped

        version: str | None = None
        cluster: str | None = None
        database: str | None = None
        system = self._read_system_map()
        if system is not None:
            version, cluster, database = system
            if version and cluster:
                return version, cluster, database

        fallback_version, fallback_cluster = self._default_cluster()
        return fallback_version, fallback_cluster, database

    def _read_user_map(self) -> tuple[str | None, str | None, str | None] | None:
        home = self.home if self.home is not None else Path.home()
        path = home / USER_MAP_FILE
        for fields in _map_lines(path):
            if len(fields) < 2:
                logger.debug("skipping malformed line in %s: %s", path, fields)
                continue
            database = fields[2] if len(fields) > 2 else None
            return fields[0], fields[1], _wild(database)
        return None

    def _read_system_map(self) -> tuple[str | None, str | None, str | None] | None:
        path = self.sysconf_dir / SYSTEM_MAP_FILE
        user = self._user if self._user is not None else _current_user()
        groups = self._groups if self._groups is not None else _current_groups()
        for fields in _map_lines(path):
            if len(fields) < 5:
                logger.debug("skipping malformed line in %s: %s", path, fields)
                continue
            map_user, map_group, version, cluster, database = fields[:5]
            if map_user not in (WILDCARD, user):
                continue
            if map_group != WILDCARD and map_group not in groups:
                continue
            return _wild(version), _wild(cluster), _wild(database)
        return None

    def _default_cluster(self) -> tuple[str | None, str | None]:
        """The only cluster, else the one on the default port, else nothing."""
        clusters = [
            (version, cluster)
            for version in self.get_versions()
            for cluster in self.get_version_clusters(version)
        ]
        if len(clusters) == 1:
            return clusters[0]
        for version, cluster in clusters:
            if self.get_cluster_port(version, cluster) == DEFAULT_PORT:
                return version, cluster
        return None, None


def _wild(value: str | None) -> str | None:
    """Map the ``*`` placeholder to ``None``."""
    if value is None or value == WILDCARD:
        return None
    return value


def _map_lines(path: Path) -> list[list[str]]:
    """Return whitespace-split, non-comment lines of a cluster map file."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    rows: list[list[str]] = []
    for line in text.splitlines():
        fields = line.split("#", 1)[0].split()
        if fields:
            rows.append(fields)
    return rows
