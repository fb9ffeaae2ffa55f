"""Metered image generation, in a chat or standalone."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..chat.orchestrator import check_access
from ..errors import InsufficientBalance, JobTimedOut, ProviderError
from ..ledger import Charge, CreditLedger, image_cost
from ..results import Err, ErrorKind, Ok, Result
from ..store.models import Character, Media
from .workflow import build_workflow, compose_prompt, extract_lora_name, random_seed

if TYPE_CHECKING:
    from ..store.blobs import BlobStore
    from ..store.conversations import ConversationStore
    from ..store.media import MediaStore
    from .poller import JobPoller
    from .rewriter import PromptRewriter

logger = logging.getLogger(__name__)

IMAGE_FAILED_TEXT = "Sorry, I couldn't send you that picture right now. Please try again later."
CLARIFY_TEXT = "I'm not sure what picture you want. Can you describe it?"


@dataclass
class ImageOutcome:
    """Result of one image request.

    Attributes:
        result: ``Ok`` with the image URL, or ``Err``.
        message_id: Placeholder that was written, in chat mode.
        media: The collection entry recorded for the image.
        charged: Whether crystals were debited for this attempt.
    """

    result: Result
    message_id: int | None = None
    media: Media | None = None
    charged: bool = False

    @property
    def ok(self) -> bool:
        return self.result.ok


class ImageGenerator:
    """Charges for an image, runs the job and delivers or refunds.

    In chat mode the request is rewritten into a prompt from the recent
    conversation and the image lands in a placeholder message. Both modes
    record the image in the user's media collection.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        ledger: CreditLedger,
        media: MediaStore,
        blobs: BlobStore,
        poller: JobPoller,
        rewriter: PromptRewriter | None = None,
    ) -> None:
        self.conversations = conversations
        self.ledger = ledger
        self.media = media
        self.blobs = blobs
        self.poller = poller
        self.rewriter = rewriter

    async def generate_in_chat(
        self, user_id: str, character_id: str, chat_id: str, user_message: str
    ) -> ImageOutcome:
        """Generate a picture requested in a chat message.

        Raises:
            LookupError: If the user, character or chat does not exist.
        """
        user, character = self._resolve(user_id, character_id)
        chat = self.conversations.get_chat(chat_id)
        if chat is None or chat.user_id != user_id:
            raise LookupError(f"Chat {chat_id} not found")

        placeholder = self.conversations.insert_placeholder(chat_id, character_id)
        message_id = placeholder.id

        denied = check_access(user, character)
        if denied is not None:
            self.conversations.patch_message(message_id, text=denied.display_message)
            return ImageOutcome(denied, message_id)

        if self.rewriter is None:
            raise RuntimeError("generate_in_chat needs a PromptRewriter")

        recent = self.conversations.recent_messages(chat_id, 10, before_id=message_id)
        try:
            rewritten = await self.rewriter.rewrite(user_message, character, recent)
        except Exception as e:
            logger.exception("Prompt rewrite for message %s failed", message_id)
            rewritten = Err(ErrorKind.PROVIDER, detail=repr(e))

        if not rewritten.ok:
            text = CLARIFY_TEXT
            if rewritten.kind is not ErrorKind.NOT_AN_IMAGE_REQUEST:
                text = rewritten.display_message or IMAGE_FAILED_TEXT
            self.conversations.patch_message(message_id, text=text)
            return ImageOutcome(rewritten, message_id)

        return await self._charge_and_run(
            user_id, character, rewritten.value, request=user_message, message_id=message_id
        )

    async def generate(self, user_id: str, character_id: str, prompt: str) -> ImageOutcome:
        """Generate a picture from a direct prompt, outside any chat.

        Raises:
            LookupError: If the user or character does not exist.
        """
        user, character = self._resolve(user_id, character_id)
        denied = check_access(user, character)
        if denied is not None:
            return ImageOutcome(denied)
        return await self._charge_and_run(user_id, character, prompt, request=prompt)

    def _resolve(self, user_id: str, character_id: str):
        user = self.conversations.get_user(user_id)
        if user is None:
            raise LookupError(f"User {user_id} not found")
        character = self.conversations.get_character(character_id)
        if character is None:
            raise LookupError(f"Character {character_id} not found")
        return user, character

    async def _charge_and_run(
        self,
        user_id: str,
        character: Character,
        prompt: str,
        *,
        request: str,
        message_id: int | None = None,
    ) -> ImageOutcome:
        try:
            charge = self.ledger.debit(user_id, image_cost(), f"image:{character.id}")
        except InsufficientBalance as e:
            if message_id is not None:
                self.conversations.patch_message(message_id, text=e.display_message)
            return ImageOutcome(
                Err(ErrorKind.INSUFFICIENT_BALANCE, e.display_message, str(e)), message_id
            )

        try:
            url, media = await self._run(user_id, character, prompt, request, charge, message_id)
        except Exception as e:
            if isinstance(e, ProviderError):
                logger.warning("Image for %s failed: %s", user_id, e)
            else:
                logger.exception("Image for %s failed", user_id)
            self.ledger.refund(charge)
            if message_id is not None:
                self.conversations.patch_message(
                    message_id, text=IMAGE_FAILED_TEXT, image_url=None
                )
            kind = ErrorKind.TIMEOUT if isinstance(e, JobTimedOut) else ErrorKind.PROVIDER
            return ImageOutcome(
                Err(kind, IMAGE_FAILED_TEXT, str(e)), message_id, charged=True
            )

        return ImageOutcome(Ok(url), message_id, media=media, charged=True)

    async def _run(
        self,
        user_id: str,
        character: Character,
        prompt: str,
        request: str,
        charge: Charge,
        message_id: int | None,
    ) -> tuple[str, Media]:
        instructions = character.image_prompt_instructions
        workflow = build_workflow(
            lora_name=extract_lora_name(instructions),
            prompt_text=compose_prompt(instructions, prompt),
            seed=random_seed(),
        )
        data = await self.poller.run(workflow, user_id=user_id)

        storage_id = self.blobs.store(data)
        media: Media | None = None
        try:
            url = self.blobs.get_url(storage_id)
            if not url:
                raise ProviderError(f"Stored image {storage_id} has no URL")
            media = self.media.save_media(
                user_id,
                character.id,
                url,
                storage_id=storage_id,
                media_type="image",
                prompt=request,
            )
            if message_id is not None:
                self.conversations.patch_message(message_id, image_url=url)
            self.ledger.settle(charge)
        except Exception:
            # Nothing may keep pointing at a blob for a refunded image
            if media is not None:
                self.media.delete_media(media.id, user_id)
            else:
                self.blobs.delete(storage_id)
            raise

        logger.info("Delivered image %s to %s", storage_id, user_id)
        return url, media
