"""Exit-code constants used by the CLI layer.

Only failures before the client program starts are reported here; once
the process image is replaced, the client's own exit code applies.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Clean exit — help, version, or diagnostics completed without error."""

GENERAL_ERROR: int = 1
"""A known PgWrapError was caught. User-facing message was displayed."""

KEYBOARD_INTERRUPT: int = 130
"""User pressed Ctrl+C.  Follows POSIX convention (128 + SIGINT=2)."""

UNEXPECTED_ERROR: int = 2
"""An unhandled exception escaped all known error boundaries."""
