"""Runtime configuration for the sync service.

Every value can be set through ``QAMUS_SYNC_*`` environment variables or a
``.env`` file:

    QAMUS_SYNC_DATA_DIR=~/.local/share/qamus
    QAMUS_SYNC_BACKUP_FOLDER=Backups
    QAMUS_SYNC_CREDENTIALS_FILE=/etc/qamus/service-account.json
    QAMUS_SYNC_RETRY_MAX_ATTEMPTS=3
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from qamus_sync.cloud.base import CHUNK_SIZE_UNIT
from qamus_sync.config.env import EnvLoader
from qamus_sync.exceptions import ConfigurationError

DEFAULT_ENV_PREFIX = "QAMUS_SYNC"

_ENV_FIELDS = {
    "DATA_DIR": "data_dir",
    "DATABASE_NAME": "database_name",
    "SETTINGS_FILE": "settings_file",
    "BACKUP_FOLDER": "backup_folder",
    "CREDENTIALS_FILE": "credentials_file",
    "RETRY_MAX_ATTEMPTS": "retry_max_attempts",
    "RETRY_BASE_DELAY": "retry_base_delay",
    "CHUNK_SIZE": "chunk_size",
    "METERED_NETWORK": "metered_network",
}


class SyncConfig(BaseModel):
    """Sync service configuration with environment variable overrides."""

    data_dir: Path = Field(
        default=Path("~/.local/share/qamus"),
        description="Directory holding the dictionary database and settings",
        validate_default=True,
    )
    database_name: str = Field(
        default="qamus_database.db",
        description="Database file name inside data_dir",
    )
    settings_file: Optional[Path] = Field(
        default=None,
        description="Settings JSON path (default: data_dir/settings.json)",
    )
    backup_folder: str = Field(
        default="Backups",
        description="Drive folder that holds backups",
        min_length=1,
    )
    credentials_file: Optional[Path] = Field(
        default=None,
        description="Service account or authorized-user JSON; ADC when unset",
    )
    retry_max_attempts: int = Field(
        default=3,
        description="Attempts per scheduled job run",
        ge=1,
        le=10,
    )
    retry_base_delay: float = Field(
        default=1.0,
        description="Seconds of linear backoff per failed attempt",
        ge=0,
    )
    chunk_size: int = Field(
        default=4 * CHUNK_SIZE_UNIT,
        description="Transfer chunk size in bytes",
        gt=0,
    )
    metered_network: bool = Field(
        default=False,
        description="Treat the current connection as metered (mobile data)",
    )

    @field_validator("data_dir", "settings_file", "credentials_file")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        """Expand ~ in configured paths"""
        return v.expanduser() if v is not None else None

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Drive resumable uploads need 256 KiB multiples"""
        if v % CHUNK_SIZE_UNIT:
            raise ValueError(f"chunk_size must be a multiple of {CHUNK_SIZE_UNIT} bytes")
        return v

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_name

    @property
    def settings_path(self) -> Path:
        return self.settings_file or self.data_dir / "settings.json"

    @classmethod
    def from_env(
        cls,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        env_file: Optional[Union[Path, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "SyncConfig":
        """Create configuration from the environment.

        Args:
            env_prefix: Variable prefix (e.g. "QAMUS_SYNC")
            env_file: Optional .env path; ./.env is used when present
            overrides: Highest-precedence values, keyed by variable name

        Returns:
            SyncConfig instance

        Raises:
            ConfigurationError: If a value is invalid
        """
        values = EnvLoader(env_prefix, env_file).load(overrides)
        kwargs = {field: values[key] for key, field in _ENV_FIELDS.items() if key in values}
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid {env_prefix} configuration",
                details={
                    "errors": [
                        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                        for err in e.errors()
                    ]
                },
            ) from e
