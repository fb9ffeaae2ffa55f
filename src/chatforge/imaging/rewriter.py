"""Turns a chat request for a picture into an image-model prompt."""

import logging

from ..providers.llm import LLMClientFactory
from ..results import Err, ErrorKind, Ok, Result
from ..store.models import Character, Message

logger = logging.getLogger(__name__)

REWRITE_CONTEXT = 10

REWRITE_PROMPT = """You write prompts for a photorealistic image model.
The user is chatting with {name} and asked for a picture. Using the conversation and the request, describe the picture of {name} in one detailed paragraph: subject, setting, clothing, pose, lighting and camera framing.
If the request is not asking for a picture, reply with NONE.
Reply with the prompt only.

Conversation:
{conversation}

Request: {request}"""

NOT_AN_IMAGE_REPLIES = {"", "NONE"}


class PromptRewriter:
    """Rewrites free-text picture requests with the LLM."""

    def __init__(
        self,
        llm_factory: LLMClientFactory,
        model: str = "llama-3.1-70b-versatile",
        max_tokens: int = 300,
    ) -> None:
        self.llm_factory = llm_factory
        self.model = model
        self.max_tokens = max_tokens

    async def rewrite(
        self, request: str, character: Character, recent: list[Message]
    ) -> Result:
        """Rewrite ``request`` using the recent conversation as context.

        Returns:
            ``Ok`` with the prompt, ``Err(NOT_AN_IMAGE_REQUEST)`` when the
            model finds no picture to draw, or the provider's ``Err``.
        """
        conversation = "\n".join(
            f"{character.name if m.from_character else 'User'}: {m.text}"
            for m in recent[-REWRITE_CONTEXT:]
            if m.text
        )
        async with self.llm_factory.for_model(self.model) as llm:
            result = await llm.complete(
                REWRITE_PROMPT.format(
                    name=character.name,
                    conversation=conversation or "(no messages yet)",
                    request=request,
                ),
                max_tokens=self.max_tokens,
            )
        if not result.ok:
            return result

        prompt = result.value.strip().strip('"').strip()
        if prompt.upper().rstrip(".") in NOT_AN_IMAGE_REPLIES:
            logger.info("Request is not an image request: %r", request[:80])
            return Err(ErrorKind.NOT_AN_IMAGE_REQUEST, detail="rewrite was empty")
        return Ok(prompt)
