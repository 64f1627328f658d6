"""Credential pools - one per logical role.

Provides:
- Tier: a single credential + model combination
- RolePool: primary/backup keys and preferred/emergency models for a role
- build_pools(): construct pools from Settings
- get_pool_status(): which tiers are usable per role (no key material)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from planforge.config.defaults import ROLE_MAX_TOKENS
from planforge.config.settings import Settings, get_settings

TIER_PRIMARY = "primary"
TIER_BACKUP = "backup"
TIER_EMERGENCY = "emergency"


@dataclass(frozen=True)
class Tier:
    """One attempt in the fallback chain."""
    name: str
    api_key: str
    model: str


@dataclass
class RolePool:
    role: str
    preferred_model: str
    emergency_model: str
    primary_key: Optional[str] = None
    backup_key: Optional[str] = None
    max_tokens: int = 8192

    def has_keys(self) -> bool:
        return bool(self.primary_key or self.backup_key)

    def tiers(self) -> List[Tier]:
        """Ordered tiers; tiers without credentials are left out."""
        chain: List[Tier] = []
        if self.primary_key:
            chain.append(Tier(TIER_PRIMARY, self.primary_key, self.preferred_model))
        if self.backup_key:
            chain.append(Tier(TIER_BACKUP, self.backup_key, self.preferred_model))
            chain.append(Tier(TIER_EMERGENCY, self.backup_key, self.emergency_model))
        return chain


def build_pools(settings: Optional[Settings] = None) -> Dict[str, RolePool]:
    settings = settings or get_settings()
    pools: Dict[str, RolePool] = {}
    for role, creds in settings.roles.items():
        pools[role] = RolePool(
            role=role,
            preferred_model=creds.preferred_model,
            emergency_model=creds.emergency_model,
            primary_key=creds.primary_key,
            backup_key=creds.backup_key,
            max_tokens=ROLE_MAX_TOKENS.get(role, 8192),
        )
    return pools


def get_pool_status(pools: Dict[str, RolePool]) -> Dict[str, dict]:
    """Configuration status for debugging."""
    status = {}
    for role, pool in pools.items():
        status[role] = {
            "primary": bool(pool.primary_key),
            "backup": bool(pool.backup_key),
            "models": {
                "preferred": pool.preferred_model,
                "emergency": pool.emergency_model,
            },
            "tiers": [t.name for t in pool.tiers()],
        }
    return status
