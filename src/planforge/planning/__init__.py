"""Plan generation."""

from planforge.planning.generator import ARCHITECT_SYSTEM_PROMPT, PlanGenerator, build_user_message

__all__ = ["ARCHITECT_SYSTEM_PROMPT", "PlanGenerator", "build_user_message"]
