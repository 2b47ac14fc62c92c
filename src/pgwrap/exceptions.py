"""Custom exception hierarchy for pg-wrap.

Every resolution failure is a user-configuration error: it is reported
once and aborts before any client program is launched.  All exceptions
that cross layer boundaries must inherit from :class:`PgWrapError`.
Raw exceptions from the installation inventory are wrapped at the
resolver boundary as :class:`InventoryError`.

Hierarchy
---------
PgWrapError
├── InvalidVersionError
├── MissingClusterNameError
├── UnknownClusterError
├── NoVersionsInstalledError
├── VersionNotInstalledError
├── ProgramNotFoundError
├── DispatchError
├── ExecFailedError
├── InventoryError
└── ConfigurationError
"""

from __future__ import annotations


class PgWrapError(Exception):
    """Base exception for all pg-wrap errors.

    The CLI error boundary renders the message (and the optional hint)
    without a stack trace.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Cluster designators ---------------------------------------------------

class InvalidVersionError(PgWrapError):
    """Raised when a cluster designator names a version that is not installed."""


class MissingClusterNameError(PgWrapError):
    """Raised when a cluster designator has an empty cluster segment."""


class UnknownClusterError(PgWrapError):
    """Raised when a local cluster designator names no configured cluster."""


# --- Installed versions ----------------------------------------------------

class NoVersionsInstalledError(PgWrapError):
    """Raised when no PostgreSQL version is installed at all."""


class VersionNotInstalledError(PgWrapError):
    """Raised when the resolved version has no installed binaries."""


class ProgramNotFoundError(PgWrapError):
    """Raised when no usable installed version ships the requested program."""


# --- Invocation / process replacement --------------------------------------

class DispatchError(PgWrapError):
    """Raised when dispatcher mode is used without a program name."""


class ExecFailedError(PgWrapError):
    """Raised when replacing the process image with the client fails."""


class InventoryError(PgWrapError):
    """Raised when the installation inventory fails unexpectedly."""


class ConfigurationError(PgWrapError):
    """Raised when a wrapper setting in the environment is malformed."""


CLUSTER_FORMAT_HINT: str = "Clusters are specified as <version>/<cluster>, e.g. 16/main."
