"""Configuration — wrapper settings and logging setup."""

from pgwrap.config.logging import configure_logging
from pgwrap.config.settings import WrapperSettings

__all__: list[str] = ["WrapperSettings", "configure_logging"]
