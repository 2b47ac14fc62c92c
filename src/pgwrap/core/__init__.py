"""Core / service layer — the resolution algorithm and its data model.

Rules
-----
* No ``print()`` calls.
* No filesystem access and no ``os.environ`` reads or writes.
* No imports from ``cli`` or ``infra``.
* All functions must be fully typed and deterministic.
"""

from pgwrap.core.environment import apply_overlay, build_overlay
from pgwrap.core.models import (
    EnvEntry,
    OverlayMode,
    RemoteCluster,
    Resolution,
    ResolutionRequest,
    ResolutionResult,
)
from pgwrap.core.protocols import ClusterInventory
from pgwrap.core.resolver import Resolver

__all__: list[str] = [
    "ClusterInventory",
    "EnvEntry",
    "OverlayMode",
    "RemoteCluster",
    "Resolution",
    "ResolutionRequest",
    "ResolutionResult",
    "Resolver",
    "apply_overlay",
    "build_overlay",
]
