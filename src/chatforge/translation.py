"""Post-reply translation into the user's language."""

import logging
from typing import Protocol

from .providers.llm import LLMClientFactory
from .store.conversations import ConversationStore
from .store.models import User
from .tasks import BackgroundQueue

logger = logging.getLogger(__name__)

# Bare language tags that map to a specific regional variant
LANGUAGE_VARIANTS = {"pt": "pt-PT"}

TRANSLATION_PROMPT = """Translate the following chat message into the language with tag {language}.
Keep the tone, slang and emoji. Reply with the translation only.

{text}"""


class Translator(Protocol):
    """Anything that can translate a stored message."""

    async def translate(self, message_id: int, target_language: str, user_id: str) -> None:
        ...


class TranslationTrigger:
    """Decides whether a finished reply is translated and queues the work."""

    def __init__(self, translator: Translator, queue: BackgroundQueue) -> None:
        self.translator = translator
        self.queue = queue

    @staticmethod
    def target_language(user: User) -> str | None:
        """The language a user's replies are translated into, or None."""
        tag = (user.language_tag or "").strip()
        if not tag or tag == "en" or not user.auto_translate:
            return None
        return LANGUAGE_VARIANTS.get(tag, tag)

    def schedule(self, user: User, message_id: int) -> bool:
        """Queue a translation of ``message_id`` if the user wants one.

        Returns:
            True if a translation was queued.
        """
        language = self.target_language(user)
        if language is None:
            return False
        return self.queue.submit(
            f"translate:{message_id}",
            lambda: self.translator.translate(message_id, language, user.id),
        )


class LLMTranslator:
    """Translates messages with the chat model and stores the result."""

    def __init__(
        self,
        llm_factory: LLMClientFactory,
        conversations: ConversationStore,
        model: str = "llama-3.1-70b-versatile",
    ) -> None:
        self.llm_factory = llm_factory
        self.conversations = conversations
        self.model = model

    async def translate(self, message_id: int, target_language: str, user_id: str) -> None:
        """Translate a message in place. Failures are logged, never raised."""
        message = self.conversations.get_message(message_id)
        if message is None or not message.text.strip():
            return

        async with self.llm_factory.for_model(self.model) as llm:
            result = await llm.complete(
                TRANSLATION_PROMPT.format(language=target_language, text=message.text),
                max_tokens=1024,
            )
        if not result.ok:
            logger.warning(
                "Translation of message %s for %s failed: %s", message_id, user_id, result.detail
            )
            return

        translation = result.value.strip()
        if translation:
            self.conversations.patch_message(message_id, translation=translation)
