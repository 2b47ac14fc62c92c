"""Protocols (interfaces) consumed by the core layer.

The resolver depends ONLY on :class:`ClusterInventory` — never on the
filesystem-backed implementation in :mod:`pgwrap.infra.installation` —
so every rule can be exercised with an in-memory fake.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ClusterInventory(Protocol):
    """Contract for the installed-versions and configured-clusters backend.

    Any object that implements these methods satisfies the protocol
    structurally (no explicit inheritance required).
    """

    def get_versions(self) -> list[str]:
        """Return installed versions in ascending version order."""
        ...  # pragma: no cover

    def get_version_clusters(self, version: str) -> list[str]:
        """Return the names of clusters configured for *version*."""
        ...  # pragma: no cover

    def get_cluster_port(self, version: str, cluster: str) -> int:
        """Return the port the cluster is configured to listen on."""
        ...  # pragma: no cover

    def get_cluster_socketdir(self, version: str, cluster: str) -> str:
        """Return the cluster's Unix socket directory."""
        ...  # pragma: no cover

    def cluster_exists(self, version: str, cluster: str) -> bool:
        """Return whether *version*/*cluster* is configured locally."""
        ...  # pragma: no cover

    def user_cluster_map(self) -> tuple[str | None, str | None, str | None]:
        """Return the ``(version, cluster, database)`` default for this user.

        Every element may be ``None`` when no mapping applies.
        """
        ...  # pragma: no cover

    def get_newest_version(
        self,
        program: str,
        max_version: str | None = None,
    ) -> str | None:
        """Return the newest version shipping *program*, capped at *max_version*."""
        ...  # pragma: no cover

    def get_program_path(self, program: str, version: str) -> Path | None:
        """Return the executable for *program* in *version*, or ``None``."""
        ...  # pragma: no cover
