"""The cluster/version precedence chain.

Each rule is a pure function ``(state, request, inventory) -> state``.
:data:`DEFAULT_RULES` lists them in the order they must run; a rule
either leaves the state unchanged or fixes specific fields, and later
rules check those fields instead of re-deriving them.

Pipeline order
--------------
0. Require at least one installed version.
1. Seed explicit host/port/service from the environment.
2. ``PGCLUSTER`` hint (ignored when a host is explicit).
3. Command-line scan (``--cluster``, host, port, service).
4. Port-only match against local clusters.
5. ``~/.postgresqlrc`` / ``user_clusters`` / single-cluster fallback.
6. No-target advisory.
7. Cluster materialization (remote ``host:port`` or local lookup).
8. Binary version selection.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace

from pgwrap.core.arguments import scan_arguments, without_token
from pgwrap.core.models import (
    DEFAULT_PORT,
    RemoteCluster,
    ResolutionRequest,
    ResolutionResult,
    version_key,
)
from pgwrap.core.protocols import ClusterInventory
from pgwrap.exceptions import (
    CLUSTER_FORMAT_HINT,
    InvalidVersionError,
    MissingClusterNameError,
    NoVersionsInstalledError,
    ProgramNotFoundError,
    UnknownClusterError,
    VersionNotInstalledError,
)

logger = logging.getLogger(__name__)

VERSION_AGNOSTIC_COMMANDS: frozenset[str] = frozenset(
    {"psql", "pg_archivecleanup", "pg_isready"},
)
"""Clients that always run from the newest installed version."""

OLDEST_SERVER_FOR_NEWEST_CLIENTS: str = "9.2"
LAST_CLIENT_FOR_OLD_SERVERS: str = "14"

NO_TARGET_WARNING: str = (
    "No existing cluster is suitable as a default target. "
    "Please see man pg_wrapper(1) how to specify one."
)

_REMOTE_DESIGNATOR = re.compile(r"^(\S+):(\d*)$")


@dataclass(frozen=True, slots=True)
class RuleState:
    """Partial resolution threaded through the rules."""

    result: ResolutionResult
    argv: tuple[str, ...]
    warnings: tuple[str, ...] = ()


Rule = Callable[[RuleState, ResolutionRequest, ClusterInventory], RuleState]


def parse_cluster_designator(
    designator: str,
    inventory: ClusterInventory,
    *,
    source: str,
) -> tuple[str, str]:
    """Split ``<version>/<cluster>`` and validate both halves.

    Raises
    ------
    InvalidVersionError
        If the version segment is not an installed version.
    MissingClusterNameError
        If the cluster segment is empty.
    """
    version, _, cluster = designator.partition("/")
    if version not in inventory.get_versions():
        raise InvalidVersionError(
            f"Invalid version {version} specified {source}",
            hint=CLUSTER_FORMAT_HINT,
        )
    if not cluster:
        raise MissingClusterNameError(
            f"No cluster specified {source}",
            hint=CLUSTER_FORMAT_HINT,
        )
    return version, cluster


# ---------------------------------------------------------------------------
# 0-1. Preconditions and environment seed
# ---------------------------------------------------------------------------

def require_installed_versions(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Fail early when nothing is installed, whatever the flags say."""
    if not inventory.get_versions():
        raise NoVersionsInstalledError(
            "No PostgreSQL versions are installed.",
            hint="You must install at least one postgresql-client-<version> package.",
        )
    return state


def seed_from_environment(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Treat ``PGHOST``, ``PGPORT`` and ``PGSERVICE`` as user-supplied.

    A variable counts only when it is set to a non-empty value.  libpq
    ignores an empty ``PGHOST`` or ``PGPORT`` and falls back to its
    defaults, so an empty value leaves cluster selection to the later
    rules exactly as an unset one does.
    """
    environ = request.environ
    return replace(
        state,
        result=replace(
            state.result,
            explicit_host=bool(environ.get("PGHOST")),
            explicit_port=environ.get("PGPORT") or None,
            explicit_service=bool(environ.get("PGSERVICE")),
        ),
    )


# ---------------------------------------------------------------------------
# 2-3. Cluster hints
# ---------------------------------------------------------------------------

def apply_environment_cluster(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Honour ``PGCLUSTER=<version>/<cluster>`` unless a host is explicit."""
    hint = request.environ.get("PGCLUSTER")
    if not hint or state.result.explicit_host:
        return state

    version, cluster = parse_cluster_designator(hint, inventory, source="in $PGCLUSTER")
    logger.debug("PGCLUSTER selects %s/%s", version, cluster)
    return replace(state, result=replace(state.result, version=version, cluster=cluster))


def scan_command_line(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Apply ``--cluster`` and record explicit host, port and service options."""
    result = state.result
    argv = state.argv

    for token in scan_arguments(argv):
        if token.terminator:
            break

        if token.cluster is not None:
            version, cluster = parse_cluster_designator(
                token.cluster, inventory, source="with --cluster",
            )
            logger.debug("--cluster selects %s/%s", version, cluster)
            result = replace(result, version=version, cluster=cluster)
            argv = without_token(argv, token)
            break

        if token.host:
            # A host always wins over cluster hints seen so far.
            result = replace(
                result,
                explicit_host=True,
                version=None,
                cluster=None,
                clear_cluster_hint=True,
            )
        if token.port is not None:
            result = replace(result, explicit_port=token.port)
        if token.service:
            result = replace(result, explicit_service=True)

    return replace(state, result=result, argv=argv)


# ---------------------------------------------------------------------------
# 4-5. Implicit cluster selection
# ---------------------------------------------------------------------------

def match_cluster_by_port(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Pick the local cluster listening on an explicitly requested port.

    Versions are searched newest first; the first match behaves as if
    ``PGCLUSTER`` had named it.
    """
    result = state.result
    if (
        result.explicit_port is None
        or result.version
        or result.cluster
        or result.explicit_host
        or result.explicit_service
    ):
        return state

    try:
        wanted = int(result.explicit_port)
    except ValueError:
        return state

    for version in reversed(inventory.get_versions()):
        for cluster in sorted(inventory.get_version_clusters(version)):
            if inventory.get_cluster_port(version, cluster) == wanted:
                logger.debug("port %d belongs to %s/%s", wanted, version, cluster)
                return replace(
                    state,
                    result=replace(result, version=version, cluster=cluster),
                )
    return state


def apply_user_cluster_map(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Fall back to the per-user, then system-wide, cluster mapping."""
    result = state.result
    if result.cluster or result.explicit_host or result.explicit_port is not None:
        return state

    version, cluster, database = inventory.user_cluster_map()
    if not (version or cluster or database):
        return state

    logger.debug("cluster map selects %s/%s database=%s", version, cluster, database)
    return replace(
        state,
        result=replace(result, version=version, cluster=cluster, database=database),
    )


def warn_when_no_target(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Add an advisory when nothing points at a server."""
    result = state.result
    if (
        result.version
        or result.explicit_host
        or result.explicit_port is not None
        or result.explicit_service
    ):
        return state
    return replace(state, warnings=(*state.warnings, NO_TARGET_WARNING))


# ---------------------------------------------------------------------------
# 7. Materialization
# ---------------------------------------------------------------------------

def materialize_cluster(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Turn the cluster designator into a host and port.

    A ``host:port`` designator is used as-is without any local check;
    a cluster name must exist locally.
    """
    result = state.result
    if not result.cluster or not result.version:
        return state

    remote_match = _REMOTE_DESIGNATOR.match(result.cluster)
    if remote_match:
        host = remote_match.group(1)
        port = int(remote_match.group(2)) if remote_match.group(2) else DEFAULT_PORT
        return replace(
            state,
            result=replace(
                result,
                remote=RemoteCluster(host=host, port=port),
                host=host,
                port=port,
            ),
        )

    if not inventory.cluster_exists(result.version, result.cluster):
        raise UnknownClusterError(
            f"No existing cluster {result.version}/{result.cluster}",
            hint="Run pg_lsclusters to list the clusters configured on this host.",
        )
    return replace(
        state,
        result=replace(
            result,
            host=inventory.get_cluster_socketdir(result.version, result.cluster),
            port=inventory.get_cluster_port(result.version, result.cluster),
        ),
    )


# ---------------------------------------------------------------------------
# 8. Binary version
# ---------------------------------------------------------------------------

def select_binary_version(
    state: RuleState,
    request: ResolutionRequest,
    inventory: ClusterInventory,
) -> RuleState:
    """Choose the version whose binaries run the client.

    Without a fixed version, or for a version-agnostic client, the newest
    version shipping the program wins.  Servers older than
    :data:`OLDEST_SERVER_FOR_NEWEST_CLIENTS` cap that search at
    :data:`LAST_CLIENT_FOR_OLD_SERVERS`.
    """
    result = state.result
    version = result.version
    binary_version = version

    if version is None or request.command in VERSION_AGNOSTIC_COMMANDS:
        ceiling: str | None = None
        if version is not None and (
            version_key(version) < version_key(OLDEST_SERVER_FOR_NEWEST_CLIENTS)
        ):
            ceiling = LAST_CLIENT_FOR_OLD_SERVERS
        binary_version = inventory.get_newest_version(request.command, ceiling)
        if binary_version is None:
            raise ProgramNotFoundError(
                f"No installed PostgreSQL version provides {request.command}.",
                hint=f"Install a postgresql-client-<version> package that ships {request.command}.",
            )

    if binary_version not in inventory.get_versions():
        raise VersionNotInstalledError(f"PostgreSQL version {binary_version} is not installed")

    logger.debug("running %s from version %s", request.command, binary_version)
    return replace(
        state,
        result=replace(
            result,
            version=version or binary_version,
            binary_version=binary_version,
        ),
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    require_installed_versions,
    seed_from_environment,
    apply_environment_cluster,
    scan_command_line,
    match_cluster_by_port,
    apply_user_cluster_map,
    warn_when_no_target,
    materialize_cluster,
    select_binary_version,
)
