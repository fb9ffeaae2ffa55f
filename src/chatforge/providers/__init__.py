"""Clients for the external generation providers."""

from .llm import GroqChatClient, LLMClientFactory, display_message_from_body
from .runpod import JobStatus, RunPodClient

__all__ = [
    "GroqChatClient",
    "JobStatus",
    "LLMClientFactory",
    "RunPodClient",
    "display_message_from_body",
]
