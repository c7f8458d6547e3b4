"""Prefixed environment loading with optional .env support.

Values are merged in a fixed order, later sources winning:
1) .env file (explicit path, or ./.env when present)
2) OS environment variables
3) Explicit overrides
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from dotenv import dotenv_values


class EnvLoader:
    """Collect ``<PREFIX>_*`` settings with the prefix stripped.

    Example:
        values = EnvLoader("QAMUS_SYNC").load()
        values.get("DATA_DIR")  # from QAMUS_SYNC_DATA_DIR
    """

    def __init__(self, prefix: str, env_file: Optional[Union[Path, str]] = None) -> None:
        self.prefix = prefix.rstrip("_") + "_"
        self.env_file = Path(env_file) if env_file else None

    def load(self, overrides: Optional[Mapping[str, object]] = None) -> Dict[str, str]:
        """Return prefixed values keyed by their unprefixed, upper-case name.

        ``overrides`` may use either the prefixed or the bare key.
        """
        merged: Dict[str, str] = {}

        env_path = self.env_file or Path.cwd() / ".env"
        if env_path.exists():
            merged.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})

        merged.update(os.environ)

        if overrides:
            for key, value in overrides.items():
                if value is None:
                    continue
                key = key.upper()
                if not key.startswith(self.prefix):
                    key = self.prefix + key
                merged[key] = str(value)

        return {
            key[len(self.prefix) :]: value
            for key, value in merged.items()
            if key.startswith(self.prefix) and value != ""
        }


__all__ = ["EnvLoader"]
