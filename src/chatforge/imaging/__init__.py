"""Metered image generation on a remote compute endpoint."""

from .artifacts import Artifact, extract_artifact
from .generator import CLARIFY_TEXT, IMAGE_FAILED_TEXT, ImageGenerator, ImageOutcome
from .poller import JobPoller, classify
from .rewriter import PromptRewriter
from .workflow import REALISM_SUFFIX, build_workflow, compose_prompt, extract_lora_name

__all__ = [
    "Artifact",
    "CLARIFY_TEXT",
    "IMAGE_FAILED_TEXT",
    "ImageGenerator",
    "ImageOutcome",
    "JobPoller",
    "PromptRewriter",
    "REALISM_SUFFIX",
    "build_workflow",
    "classify",
    "compose_prompt",
    "extract_artifact",
    "extract_lora_name",
]
