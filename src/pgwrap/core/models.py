"""Domain models for pg-wrap.

All models are **frozen** dataclasses — immutable value objects.  The
resolution rules never mutate a result; they return a new one via
:func:`dataclasses.replace`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

DEFAULT_PORT: int = 5432
"""Standard PostgreSQL port, used for remote designators without a port."""

_LEADING_DIGITS = re.compile(r"\d+")


def version_key(version: str) -> tuple[int, ...]:
    """Return a sort key ordering versions numerically.

    ``"9.2"`` sorts before ``"14"``, and ``"9.6"`` before ``"10"``.
    Non-numeric components (``"17beta1"``) use their leading digits.
    """
    key: list[int] = []
    for component in version.split("."):
        match = _LEADING_DIGITS.match(component)
        key.append(int(match.group()) if match else 0)
    return tuple(key)


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return *versions*, deduplicated, in ascending version order."""
    return sorted(set(versions), key=version_key)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ResolutionRequest:
    """Read-only view of a single client invocation."""

    argv: tuple[str, ...]
    """Arguments following the program name."""

    environ: Mapping[str, str]
    """Snapshot of the process environment."""

    command: str
    """Name of the client program being invoked (e.g. ``psql``)."""


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RemoteCluster:
    """Network form of a cluster designator (``host:port``)."""

    host: str
    port: int


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Target selected for one invocation.

    Every field is optional; the precedence chain fills them in as rules
    match.  ``cluster`` is always qualified by ``version``.
    """

    version: str | None = None
    cluster: str | None = None
    """Cluster designator as supplied (local name or ``host:port``)."""

    remote: RemoteCluster | None = None
    """Set when ``cluster`` has network form."""

    host: str | None = None
    port: int | None = None
    database: str | None = None

    explicit_host: bool = False
    explicit_port: str | None = None
    """Port supplied by the user, kept verbatim."""

    explicit_service: bool = False
    clear_cluster_hint: bool = False
    """An explicit host discarded the ``PGCLUSTER`` hint."""

    binary_version: str | None = None
    """Version whose client binary is executed.

    Equal to ``version`` except for version-agnostic clients, which run
    from the newest compatible installation.
    """

    @property
    def cluster_label(self) -> str | None:
        """``"<version>/<cluster>"`` when both are known."""
        if self.version and self.cluster:
            return f"{self.version}/{self.cluster}"
        return None


class OverlayMode(str, Enum):
    """How an overlay entry is applied to the environment."""

    SET = "set"
    DEFAULT = "default"
    """Set only if the variable is absent."""

    UNSET = "unset"


@dataclass(frozen=True, slots=True)
class EnvEntry:
    """One environment variable change."""

    name: str
    value: str | None
    mode: OverlayMode


@dataclass(frozen=True, slots=True)
class Resolution:
    """Everything the exec step consumes, produced in one piece."""

    command: str
    result: ResolutionResult
    argv: tuple[str, ...]
    """Arguments to forward, with ``--cluster`` consumed."""

    overlay: tuple[EnvEntry, ...] = ()
    warnings: tuple[str, ...] = ()
