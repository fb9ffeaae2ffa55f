"""Metered character replies: charge, generate, deliver or refund."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import InsufficientBalance
from ..ledger import CreditLedger, text_cost
from ..logging import JSONLLogger
from ..results import Err, ErrorKind, Ok, Result
from ..store.models import Character, Message, Persona, User
from .prompt import build_system_prompt, clean_reply, select_history, to_provider_messages

if TYPE_CHECKING:
    from ..memory import MemoryManager
    from ..providers.llm import LLMClientFactory
    from ..store.conversations import ConversationStore
    from ..tasks import BackgroundQueue, TaskRunner
    from ..translation import TranslationTrigger

logger = logging.getLogger(__name__)

PRIVATE_CHARACTER_TEXT = "You can't interact with other people's character."
ARCHIVED_CHARACTER_TEXT = "Sorry, the character is archived by the creator."
BLACKLISTED_CHARACTER_TEXT = (
    "This character is automatically classified as violating our community "
    "guidelines and content policy. You can ask questions on our Discord if "
    "this classification is a false positive."
)


def fallback_reply_text(model: str | None) -> str:
    """Generic failure text written when a provider gives no usable message."""
    return f"{model or 'I'} cannot reply at this time. Try different model or try again later."


def check_access(user: User, character: Character) -> Err | None:
    """Return the guard failure that stops ``user`` chatting with ``character``."""
    if character.visibility == "private" and character.creator_id != user.id:
        return Err(ErrorKind.ACCESS_DENIED, PRIVATE_CHARACTER_TEXT)
    if character.is_archived:
        return Err(ErrorKind.ARCHIVED, ARCHIVED_CHARACTER_TEXT)
    if character.is_blacklisted:
        return Err(ErrorKind.BLACKLISTED, BLACKLISTED_CHARACTER_TEXT)
    return None


@dataclass
class ReplyConfig:
    """Configuration for character replies."""

    default_model: str = "llama-3.1-70b-versatile"
    context_window: int = 16
    premium_tier: str = "plus"
    max_tokens: int = 512

    def window_for(self, subscription_tier: str | None) -> int:
        """Number of past messages sent for a subscription tier."""
        if subscription_tier == self.premium_tier:
            return self.context_window * 2
        return self.context_window


@dataclass
class ReplyRequest:
    """Everything resolved up front for one reply."""

    user: User
    character: Character
    chat_id: str
    persona: Persona | None
    target: Message
    regenerate: bool

    @property
    def user_role(self) -> str:
        """How the user is addressed: persona name, else user name."""
        if self.persona and self.persona.name:
            return self.persona.name
        return self.user.name or "You"


@dataclass
class ReplyOutcome:
    """Result of one reply.

    Attributes:
        message_id: The placeholder (or regenerated message) that was written.
        result: ``Ok`` with the reply text, or ``Err``.
        charged: Whether crystals were debited for this attempt.
    """

    message_id: int
    result: Result
    charged: bool = False

    @property
    def ok(self) -> bool:
        return self.result.ok


class ChatOrchestrator:
    """Produces character replies.

    A reply inserts a placeholder, checks access, charges the user, asks the
    model and writes the reply into the placeholder. Any failure after the
    charge refunds it and writes a user-facing error instead. Memory
    extraction and translation run afterwards as background work.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        ledger: CreditLedger,
        memory: MemoryManager,
        llm_factory: LLMClientFactory,
        tasks: TaskRunner,
        background: BackgroundQueue,
        translation: TranslationTrigger | None = None,
        config: ReplyConfig | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.conversations = conversations
        self.ledger = ledger
        self.memory = memory
        self.llm_factory = llm_factory
        self.tasks = tasks
        self.background = background
        self.translation = translation
        self.config = config or ReplyConfig()
        self.event_log = event_log

    async def request_reply(
        self,
        user_id: str,
        chat_id: str,
        character_id: str,
        persona_id: str | None = None,
        message_id: int | None = None,
    ) -> Message:
        """Start a reply and return its placeholder without waiting.

        Args:
            user_id: Verified id of the requesting user.
            chat_id: Chat to reply in.
            character_id: Character replying.
            persona_id: Persona to address the user as; defaults to the
                user's primary persona.
            message_id: Existing character message to regenerate.

        Raises:
            LookupError: If any id does not resolve.
        """
        request = self._prepare(user_id, chat_id, character_id, persona_id, message_id)
        self.tasks.spawn(f"reply:{request.target.id}", self._generate(request))
        return request.target

    async def answer(
        self,
        user_id: str,
        chat_id: str,
        character_id: str,
        persona_id: str | None = None,
        message_id: int | None = None,
    ) -> ReplyOutcome:
        """Produce a reply and wait for it. Same arguments as ``request_reply``."""
        request = self._prepare(user_id, chat_id, character_id, persona_id, message_id)
        return await self._generate(request)

    def _prepare(
        self,
        user_id: str,
        chat_id: str,
        character_id: str,
        persona_id: str | None,
        message_id: int | None,
    ) -> ReplyRequest:
        user = self.conversations.get_user(user_id)
        if user is None:
            raise LookupError(f"User {user_id} not found")
        character = self.conversations.get_character(character_id)
        if character is None:
            raise LookupError(f"Character {character_id} not found")
        chat = self.conversations.get_chat(chat_id)
        if chat is None or chat.user_id != user_id:
            raise LookupError(f"Chat {chat_id} not found")

        persona_id = persona_id or user.primary_persona_id
        persona = self.conversations.get_persona(persona_id) if persona_id else None

        if message_id is not None:
            target = self.conversations.get_message(message_id)
            if target is None or target.chat_id != chat_id:
                raise LookupError(f"Message {message_id} not found in chat {chat_id}")
            if not target.from_character:
                raise LookupError(f"Message {message_id} is not a character reply")
        else:
            target = self.conversations.insert_placeholder(chat_id, character_id)

        return ReplyRequest(
            user=user,
            character=character,
            chat_id=chat_id,
            persona=persona,
            target=target,
            regenerate=message_id is not None,
        )

    async def _generate(self, request: ReplyRequest) -> ReplyOutcome:
        started = time.monotonic()
        user, character = request.user, request.character
        message_id = request.target.id

        denied = check_access(user, character)
        if denied is not None:
            self.conversations.patch_message(message_id, text=denied.display_message)
            return ReplyOutcome(message_id, denied)

        model = character.model or self.config.default_model
        try:
            charge = self.ledger.debit(user.id, text_cost(model), f"chat:{model}")
        except InsufficientBalance as e:
            self.conversations.patch_message(message_id, text=e.display_message)
            return ReplyOutcome(
                message_id, Err(ErrorKind.INSUFFICIENT_BALANCE, e.display_message, str(e))
            )

        try:
            result = await self._complete(request, model)
            if result.ok:
                self.conversations.patch_message(message_id, text=result.value)
                self.ledger.settle(charge)
        except Exception as e:
            logger.exception("Reply %s with %s failed", message_id, model)
            result = Err(ErrorKind.PROVIDER, detail=repr(e))

        if not result.ok:
            self.ledger.refund(charge)
            self.conversations.patch_message(
                message_id, text=result.display_message or fallback_reply_text(model)
            )

        if result.ok:
            self._schedule_background(request)

        duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            "Reply %s in chat %s with %s: %s (%.0fms)",
            message_id,
            request.chat_id,
            model,
            "ok" if result.ok else result.kind.value,
            duration_ms,
        )
        if self.event_log:
            self.event_log.log_reply(
                user.id,
                request.chat_id,
                message_id,
                model=model,
                success=result.ok,
                duration_ms=duration_ms,
                error=None if result.ok else result.detail,
            )
        return ReplyOutcome(message_id, result, charged=True)

    async def _complete(self, request: ReplyRequest, model: str) -> Result:
        user_role = request.user_role

        facts = self.memory.load_facts(request.user.id, request.character.id)
        memory_block = self.memory.format_for_prompt(facts, user_role)
        system_prompt = build_system_prompt(request.character, user_role, memory_block)

        recent = self.conversations.recent_messages(
            request.chat_id,
            self.config.window_for(request.user.subscription_tier),
            before_id=request.target.id,
        )
        messages = to_provider_messages(system_prompt, select_history(recent), user_role)

        async with self.llm_factory.for_model(model) as llm:
            result = await llm.chat(messages, max_tokens=self.config.max_tokens)
        if not result.ok:
            return result

        text = clean_reply(result.value, user_role)
        if not text:
            return Err(ErrorKind.PROVIDER, detail="model returned an empty reply")
        return Ok(text)

    def _schedule_background(self, request: ReplyRequest) -> None:
        user_id, character_id, chat_id = request.user.id, request.character.id, request.chat_id
        self.background.submit(
            f"memory:{chat_id}",
            lambda: self.memory.extract_for_chat(user_id, character_id, chat_id),
        )
        if self.translation is not None:
            self.translation.schedule(request.user, request.target.id)
