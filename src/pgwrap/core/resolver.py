"""Core resolver service — runs the precedence chain for one invocation.

This is the central service consumed by the CLI layer.  It depends on a
:class:`~pgwrap.core.protocols.ClusterInventory` injected at
construction time, keeping the core free of filesystem access.

Guarantees
----------
* No ``print()`` and no environment mutation; the caller receives a
  complete :class:`~pgwrap.core.models.Resolution` or an exception.
* Only :class:`~pgwrap.exceptions.PgWrapError` subclasses escape.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from pgwrap.core.environment import DEFAULT_SYSCONF_DIR, build_overlay
from pgwrap.core.models import Resolution, ResolutionRequest, ResolutionResult
from pgwrap.core.protocols import ClusterInventory
from pgwrap.core.rules import DEFAULT_RULES, Rule, RuleState
from pgwrap.exceptions import InventoryError, PgWrapError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _GuardedInventory:
    """Delegate to an inventory, mapping foreign exceptions to :class:`InventoryError`."""

    def __init__(self, inventory: ClusterInventory) -> None:
        self._inventory = inventory

    @staticmethod
    def _call(name: str, method: Callable[..., T], *args: Any) -> T:
        try:
            return method(*args)
        except PgWrapError:
            # Already one of ours.
            raise
        except Exception as exc:
            raise InventoryError(
                f"Could not inspect the PostgreSQL installation ({name}): {exc}",
            ) from exc

    def get_versions(self) -> list[str]:
        return self._call("get_versions", self._inventory.get_versions)

    def get_version_clusters(self, version: str) -> list[str]:
        return self._call("get_version_clusters", self._inventory.get_version_clusters, version)

    def get_cluster_port(self, version: str, cluster: str) -> int:
        return self._call("get_cluster_port", self._inventory.get_cluster_port, version, cluster)

    def get_cluster_socketdir(self, version: str, cluster: str) -> str:
        return self._call(
            "get_cluster_socketdir", self._inventory.get_cluster_socketdir, version, cluster,
        )

    def cluster_exists(self, version: str, cluster: str) -> bool:
        return self._call("cluster_exists", self._inventory.cluster_exists, version, cluster)

    def user_cluster_map(self) -> tuple[str | None, str | None, str | None]:
        return self._call("user_cluster_map", self._inventory.user_cluster_map)

    def get_newest_version(self, program: str, max_version: str | None = None) -> str | None:
        return self._call(
            "get_newest_version", self._inventory.get_newest_version, program, max_version,
        )

    def get_program_path(self, program: str, version: str) -> Path | None:
        return self._call("get_program_path", self._inventory.get_program_path, program, version)


class Resolver:
    """Stateless service mapping a request to its resolved target.

    Parameters
    ----------
    inventory:
        Any object satisfying the :class:`ClusterInventory` protocol.
    rules:
        The precedence chain; defaults to
        :data:`~pgwrap.core.rules.DEFAULT_RULES`.
    sysconf_dir:
        Value defaulted into ``PGSYSCONFDIR``.
    """

    def __init__(
        self,
        inventory: ClusterInventory,
        *,
        rules: Sequence[Rule] = DEFAULT_RULES,
        sysconf_dir: str = DEFAULT_SYSCONF_DIR,
    ) -> None:
        self._inventory: ClusterInventory = _GuardedInventory(inventory)
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._sysconf_dir = sysconf_dir

    def resolve(self, request: ResolutionRequest) -> Resolution:
        """Resolve *request* into a version, target and environment overlay.

        Raises
        ------
        InvalidVersionError
            If ``PGCLUSTER`` or ``--cluster`` names an uninstalled version.
        MissingClusterNameError
            If a cluster designator lacks the cluster name.
        UnknownClusterError
            If a local cluster designator names no configured cluster.
        NoVersionsInstalledError
            If nothing usable is installed.
        ProgramNotFoundError
            If no usable installed version ships the requested program.
        VersionNotInstalledError
            If the selected version has no installed binaries.
        InventoryError
            If the inventory fails unexpectedly.
        """
        state = RuleState(result=ResolutionResult(), argv=tuple(request.argv))
        for rule in self._rules:
            state = rule(state, request, self._inventory)

        result = state.result
        logger.debug(
            "resolved %s: version=%s cluster=%s host=%s port=%s database=%s",
            request.command,
            result.version,
            result.cluster,
            result.host,
            result.port,
            result.database,
        )
        return Resolution(
            command=request.command,
            result=result,
            argv=state.argv,
            overlay=build_overlay(result, sysconf_dir=self._sysconf_dir),
            warnings=state.warnings,
        )
