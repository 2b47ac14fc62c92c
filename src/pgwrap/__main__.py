"""Allow ``python -m pgwrap`` invocation.

Runs in dispatcher mode: the first free argument names the client
program, exactly as when invoked as ``pg_wrapper``.
"""

from __future__ import annotations

from pgwrap.cli.app import cli

if __name__ == "__main__":
    cli(prog="pg_wrapper")
