"""Provider Failover Client.

Sends one generation request through an ordered chain of tiers per role:

1. primary key + preferred model
2. backup key + preferred model (independent rate-limit bucket)
3. backup key + emergency model (preferred model saturated account-wide)

Only rate-limit (429) and overloaded (529) responses fall through to the next
tier. Anything else propagates from the tier that raised it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from planforge.config.defaults import TRANSIENT_STATUS_CODES
from planforge.errors import (
    NoCredentialsError,
    NoTextContentError,
    ProviderExhausted,
    ProviderHTTPError,
)
from planforge.llm.anthropic import AnthropicTransport
from planforge.llm.pools import RolePool, build_pools

logger = logging.getLogger(__name__)


class MessageTransport(Protocol):
    async def create_message(
        self,
        *,
        api_key: str,
        model: str,
        system: str,
        messages: List[Dict[str, Any]],
        max_tokens: int,
    ) -> Dict[str, Any]:
        ...


@dataclass
class CompletionResult:
    """A completion plus the tier that produced it."""
    content: List[Dict[str, Any]]
    model: str
    tier: str
    role: str = ""
    usage: Dict[str, Any] = field(default_factory=dict)
    stop_reason: Optional[str] = None

    def text_blocks(self) -> List[str]:
        return [
            block.get("text", "")
            for block in self.content
            if isinstance(block, dict) and block.get("type") == "text"
        ]

    def text(self) -> str:
        """All text blocks joined; empty string when there are none."""
        return "".join(self.text_blocks())

    def first_text(self) -> str:
        """First text block.

        Raises:
            NoTextContentError: If the response has no text block
        """
        blocks = self.text_blocks()
        if not blocks:
            raise NoTextContentError(f"No text content in {self.role or 'provider'} response")
        return blocks[0]


def is_transient_error(error: BaseException) -> bool:
    """Rate-limited or overloaded upstream."""
    return isinstance(error, ProviderHTTPError) and error.status in TRANSIENT_STATUS_CODES


class FailoverClient:
    """Routes generation requests through per-role tier chains."""

    def __init__(
        self,
        pools: Optional[Dict[str, RolePool]] = None,
        transport: Optional[MessageTransport] = None,
    ):
        self.pools = pools if pools is not None else build_pools()
        self.transport = transport or AnthropicTransport()

    async def generate(
        self,
        role: str,
        system_prompt: str,
        messages: List[Dict[str, Any]],
    ) -> CompletionResult:
        """
        Execute a generation request with tier rotation.

        Raises:
            NoCredentialsError: Role has no keys at all (no network I/O made)
            ProviderExhausted: Every configured tier was transiently unavailable
            ProviderHTTPError: A non-transient upstream error from any tier
        """
        pool = self.pools.get(role)
        if pool is None or not pool.has_keys():
            prefix = role.upper()
            raise NoCredentialsError(
                f"[{role}] No API keys configured. Set {prefix}_KEY_PRIMARY or {prefix}_KEY_BACKUP in .env"
            )

        attempted: List[str] = []
        last_error: Optional[BaseException] = None

        for tier in pool.tiers():
            attempted.append(tier.name)
            logger.info("[%s] Attempting %s tier with %s", role, tier.name, tier.model)
            try:
                body = await self.transport.create_message(
                    api_key=tier.api_key,
                    model=tier.model,
                    system=system_prompt,
                    messages=messages,
                    max_tokens=pool.max_tokens,
                )
            except Exception as e:
                if not is_transient_error(e):
                    raise
                last_error = e
                logger.warning(
                    "provider_tier_fallback",
                    extra={
                        "event": "provider_tier_fallback",
                        "role": role,
                        "tier": tier.name,
                        "model": tier.model,
                        "status": getattr(e, "status", None),
                    },
                )
                continue

            if tier.name != attempted[0]:
                logger.info(
                    "provider_fallback_success",
                    extra={"event": "provider_fallback_success", "role": role, "tier": tier.name},
                )
            return CompletionResult(
                content=list(body.get("content") or []),
                model=body.get("model") or tier.model,
                tier=tier.name,
                role=role,
                usage=dict(body.get("usage") or {}),
                stop_reason=body.get("stop_reason"),
            )

        raise ProviderExhausted(role, attempted, last_error)
