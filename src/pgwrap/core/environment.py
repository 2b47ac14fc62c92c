"""Environment overlay construction and application.

The resolver never touches ``os.environ``.  It describes the changes
the client should see as an ordered overlay, which is applied in one
step to a copy of the environment snapshot just before exec.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pgwrap.core.models import EnvEntry, OverlayMode, ResolutionResult

DEFAULT_SYSCONF_DIR: str = "/etc/postgresql-common"


def build_overlay(
    result: ResolutionResult,
    *,
    sysconf_dir: str = DEFAULT_SYSCONF_DIR,
) -> tuple[EnvEntry, ...]:
    """Describe the environment changes implied by *result*.

    Connection variables are only defaulted: a ``PGHOST``, ``PGPORT`` or
    ``PGDATABASE`` the caller already set always survives.
    """
    entries: list[EnvEntry] = [
        EnvEntry("PGSYSCONFDIR", sysconf_dir, OverlayMode.DEFAULT),
    ]
    if result.host:
        entries.append(EnvEntry("PGHOST", result.host, OverlayMode.DEFAULT))
    if result.port is not None:
        entries.append(EnvEntry("PGPORT", str(result.port), OverlayMode.DEFAULT))
    if result.database:
        entries.append(EnvEntry("PGDATABASE", result.database, OverlayMode.DEFAULT))

    label = result.cluster_label
    if label:
        # Lets a client that re-invokes the wrapper land on the same cluster.
        entries.append(EnvEntry("PGCLUSTER", label, OverlayMode.SET))
    elif result.clear_cluster_hint:
        entries.append(EnvEntry("PGCLUSTER", None, OverlayMode.UNSET))
    return tuple(entries)


def apply_overlay(
    environ: Mapping[str, str],
    overlay: Iterable[EnvEntry],
) -> dict[str, str]:
    """Return a new environment with *overlay* applied to *environ*."""
    env = dict(environ)
    for entry in overlay:
        if entry.mode is OverlayMode.UNSET:
            env.pop(entry.name, None)
        elif entry.mode is OverlayMode.DEFAULT:
            if entry.name not in env and entry.value is not None:
                env[entry.name] = entry.value
        elif entry.value is not None:
            env[entry.name] = entry.value
    return env
