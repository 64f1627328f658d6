"""Environment-driven settings.

Credentials per role come from ``<ROLE>_KEY_PRIMARY`` / ``<ROLE>_KEY_BACKUP``.
The remediation role borrows the architect keys when its own are unset.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from planforge.config.defaults import (
    CONFIG_DIRNAME,
    DB_FILENAME,
    PLANFORGE_DIR,
    ROLE_ARCHITECT,
    ROLE_MODELS,
    ROLE_REMEDIATION,
    ROLES,
    SANDBOX_DIRNAME,
)

logger = logging.getLogger(__name__)


@dataclass
class RoleCredentials:
    """Primary/backup keys and model pair for one logical role."""
    primary_key: Optional[str] = None
    backup_key: Optional[str] = None
    preferred_model: str = ""
    emergency_model: str = ""

    def has_any_key(self) -> bool:
        return bool(self.primary_key or self.backup_key)


@dataclass
class Settings:
    roles: Dict[str, RoleCredentials] = field(default_factory=dict)
    sandbox_root: Path = field(default_factory=lambda: Path.cwd() / SANDBOX_DIRNAME)
    config_root: Path = field(default_factory=lambda: Path.cwd() / CONFIG_DIRNAME)
    db_path: Path = field(default_factory=lambda: Path.cwd() / PLANFORGE_DIR / DB_FILENAME)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from an environment mapping (``os.environ`` by default)."""
        if env is None:
            load_dotenv(Path.cwd() / ".env")
            env = os.environ

        roles: Dict[str, RoleCredentials] = {}
        for role in ROLES:
            prefix = role.upper()
            models = ROLE_MODELS[role]
            roles[role] = RoleCredentials(
                primary_key=env.get(f"{prefix}_KEY_PRIMARY") or None,
                backup_key=env.get(f"{prefix}_KEY_BACKUP") or None,
                preferred_model=env.get(f"{prefix}_MODEL_PREFERRED") or models["preferred"],
                emergency_model=env.get(f"{prefix}_MODEL_EMERGENCY") or models["emergency"],
            )

        remediation = roles[ROLE_REMEDIATION]
        if not remediation.has_any_key():
            architect = roles[ROLE_ARCHITECT]
            remediation.primary_key = architect.primary_key
            remediation.backup_key = architect.backup_key

        settings = cls(roles=roles)
        if env.get("PLANFORGE_SANDBOX_ROOT"):
            settings.sandbox_root = Path(env["PLANFORGE_SANDBOX_ROOT"])
        if env.get("PLANFORGE_CONFIG_ROOT"):
            settings.config_root = Path(env["PLANFORGE_CONFIG_ROOT"])
        if env.get("PLANFORGE_DB_PATH"):
            settings.db_path = Path(env["PLANFORGE_DB_PATH"])

        configured = [r for r, c in roles.items() if c.has_any_key()]
        logger.debug("Loaded settings; roles with credentials: %s", configured or "none")
        return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (tests change the environment between cases)."""
    global _settings
    _settings = None
