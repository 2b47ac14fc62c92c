"""Wrapper settings — installation layout and diagnostics switches.

Settings are built from the *request's* environment snapshot rather
than from ``os.environ`` directly, so a resolution can be replayed
against any environment.  Priority chain (highest to lowest):

  1. Init kwargs  — explicit overrides (tests, the doctor command)
  2. Snapshot     — ``PG_CLUSTER_CONF_ROOT``, ``PGSYSCONFDIR``, ``HOME``,
                    ``PGWRAP_DEBUG``, ``PGWRAP_LOG_JSON``
  3. Code defaults — the Debian layout
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from pgwrap.core.environment import DEFAULT_SYSCONF_DIR
from pgwrap.exceptions import ConfigurationError

DEFAULT_BIN_ROOT: Path = Path("/usr/lib/postgresql")
DEFAULT_CLUSTER_CONF_ROOT: Path = Path("/etc/postgresql")

_SNAPSHOT_FIELDS: dict[str, str] = {
    "PG_CLUSTER_CONF_ROOT": "cluster_conf_root",
    "PGSYSCONFDIR": "sysconf_dir",
    "HOME": "home",
    "PGWRAP_DEBUG": "debug",
    "PGWRAP_LOG_JSON": "log_json",
}
"""Environment variable -> field name."""


class WrapperSettings(BaseSettings):
    """Layout of the PostgreSQL installation and logging switches.

    Attributes:
        bin_root: Directory holding ``<version>/bin/<program>``.
        cluster_conf_root: Directory holding
            ``<version>/<cluster>/postgresql.conf``.
        sysconf_dir: postgresql-common configuration directory, home of
            the system-wide ``user_clusters`` map.
        home: Home directory searched for ``.postgresqlrc``.
        debug: Log every resolution decision at DEBUG level.
        log_json: Render log lines as JSON.
    """

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }

    bin_root: Path = DEFAULT_BIN_ROOT
    cluster_conf_root: Path = Field(
        default=DEFAULT_CLUSTER_CONF_ROOT,
        validation_alias="PG_CLUSTER_CONF_ROOT",
    )
    sysconf_dir: Path = Field(
        default=Path(DEFAULT_SYSCONF_DIR),
        validation_alias="PGSYSCONFDIR",
    )
    home: Path | None = Field(default=None, validation_alias="HOME")
    debug: bool = Field(default=False, validation_alias="PGWRAP_DEBUG")
    log_json: bool = Field(default=False, validation_alias="PGWRAP_LOG_JSON")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Only init kwargs; the environment arrives via :meth:`from_environ`."""
        return (init_settings,)

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str],
        **overrides: Any,
    ) -> WrapperSettings:
        """Build settings from an environment snapshot.

        Empty variables count as unset.

        Raises
        ------
        ConfigurationError
            If a variable holds a value that cannot be interpreted.
        """
        values: dict[str, Any] = {
            field: environ[key]
            for key, field in _SNAPSHOT_FIELDS.items()
            if environ.get(key)
        }
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as exc:
            variables = {field: key for key, field in _SNAPSHOT_FIELDS.items()}
            bad = ", ".join(
                variables.get(str(err["loc"][0]), str(err["loc"][0])) for err in exc.errors()
            )
            raise ConfigurationError(
                f"Invalid wrapper configuration: {bad}",
                hint="PGWRAP_DEBUG and PGWRAP_LOG_JSON accept 1/0, true/false, yes/no.",
            ) from exc
