"""Infrastructure layer — the PostgreSQL installation and the OS.

This layer reads the installed versions and cluster configuration from
disk and performs the final process replacement.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from pgwrap.infra.installation import PgInstallation, read_conf_file
from pgwrap.infra.launcher import exec_program

__all__: list[str] = [
    "PgInstallation",
    "exec_program",
    "read_conf_file",
]
