"""LLM package - credential pools, transport and the failover client."""

from planforge.llm.failover import CompletionResult, FailoverClient, is_transient_error
from planforge.llm.pools import RolePool, Tier, build_pools, get_pool_status

__all__ = [
    "CompletionResult",
    "FailoverClient",
    "is_transient_error",
    "RolePool",
    "Tier",
    "build_pools",
    "get_pool_status",
]
