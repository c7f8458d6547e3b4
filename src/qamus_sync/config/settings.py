"""User-facing backup and reminder settings."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AutomaticBackupFrequency(str, Enum):
    """How often the automatic backup job runs."""

    OFF = "off"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class BackupSettings(BaseModel):
    """Snapshot of the settings the schedulers and jobs react to.

    Instances are immutable; stores hand out a new instance for every change.
    """

    model_config = ConfigDict(frozen=True)

    automatic_backup_frequency: AutomaticBackupFrequency = Field(
        default=AutomaticBackupFrequency.OFF,
        description="Automatic backup cadence",
    )
    reminder_interval_minutes: int = Field(
        default=30,
        description="Minutes between word reminders (clamped to 15..180 when scheduled)",
        ge=1,
    )
    reminder_enabled: bool = Field(
        default=False,
        description="Whether periodic word reminders are shown",
    )
    use_mobile_data: bool = Field(
        default=False,
        description="Allow automatic backups over metered connections",
    )
    last_backup_at: Optional[datetime] = Field(
        default=None,
        description="When the last successful backup finished",
    )
    last_backup_version: int = Field(
        default=0,
        description="Number of successful backups, manual or automatic",
        ge=0,
    )

    @field_validator("automatic_backup_frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v):
        """Accept frequency names in any case"""
        if isinstance(v, str):
            return v.strip().lower()
        return v
