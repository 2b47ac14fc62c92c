"""pg-wrap — PostgreSQL client dispatch shim.

Resolves which installed server version and which cluster a client
invocation targets, then re-executes the version-specific binary.
"""

from pgwrap.version import __version__

__all__: list[str] = ["__version__"]
