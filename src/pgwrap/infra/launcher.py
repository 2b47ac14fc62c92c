"""Process replacement — the last step of every successful invocation.

This module is the **only** place that calls :func:`os.execve`.  A
failure to exec is mapped to :class:`~pgwrap.exceptions.ExecFailedError`;
on success the call never returns.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from pgwrap.exceptions import ExecFailedError

logger = logging.getLogger(__name__)


def exec_program(
    path: Path,
    argv0: str,
    args: Sequence[str],
    environ: Mapping[str, str],
) -> None:
    """Replace the current process with *path*.

    Parameters
    ----------
    path:
        Executable to run.
    argv0:
        Name the program sees as ``argv[0]``; clients use it in messages.
    args:
        Remaining arguments, forwarded unchanged.
    environ:
        Complete environment for the new process image.

    Raises
    ------
    ExecFailedError
        If the kernel refuses to execute *path*.
    """
    logger.debug("exec %s %s", path, list(args))
    try:
        os.execve(path, [argv0, *args], dict(environ))
    except OSError as exc:
        raise ExecFailedError(
            f"Could not execute {path}: {exc.strerror or exc}",
            hint="Check that the PostgreSQL client package is installed correctly.",
        ) from exc
