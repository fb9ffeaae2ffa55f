"""Character replies."""

from .orchestrator import (
    ChatOrchestrator,
    ReplyConfig,
    ReplyOutcome,
    check_access,
    fallback_reply_text,
)
from .prompt import PERSONA_TOKEN, build_system_prompt, clean_reply, select_history

__all__ = [
    "ChatOrchestrator",
    "PERSONA_TOKEN",
    "ReplyConfig",
    "ReplyOutcome",
    "build_system_prompt",
    "check_access",
    "clean_reply",
    "fallback_reply_text",
    "select_history",
]
