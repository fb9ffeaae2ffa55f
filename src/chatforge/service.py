"""Builds the generation pipelines from settings."""

import logging
from typing import Any, Callable

import httpx

from .chat import ChatOrchestrator, ReplyConfig, ReplyOutcome
from .config import Settings, load_settings
from .imaging import ImageGenerator, ImageOutcome, JobPoller, PromptRewriter
from .ledger import CreditLedger
from .logging import JSONLLogger, get_logger
from .memory import FactExtractor, FactStore, MemoryManager
from .polling import PollPolicy
from .providers import LLMClientFactory, RunPodClient
from .store import BlobStore, ConversationStore, Database, Message, MediaStore
from .tasks import BackgroundQueue, TaskRunner
from .translation import LLMTranslator, TranslationTrigger

logger = logging.getLogger(__name__)


class GenerationService:
    """Owns the database, stores, ledger and pipelines for one process.

    Example:
        async with GenerationService(load_settings()) as service:
            placeholder = await service.request_reply(user_id, chat_id, character_id)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        llm_factory: LLMClientFactory | None = None,
        runpod_transport: httpx.AsyncBaseTransport | None = None,
        event_log: JSONLLogger | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        """Wire every component.

        Args:
            settings: Configuration; loaded from the environment when omitted.
            llm_factory: Overrides the Groq client factory.
            runpod_transport: httpx transport for the compute provider (tests).
            event_log: JSONL event log; the global one when omitted.
            clock: Monotonic clock for image polling (tests).
            sleep: Sleep used between polls (tests).
        """
        self.settings = settings or load_settings()
        s = self.settings
        self.event_log = event_log or get_logger()

        self.db = Database(s.db_path)
        self.db.init_db()
        self.conversations = ConversationStore(self.db)
        self.blobs = BlobStore(s.blob_dir, s.blob_base_url or s.blob_dir.as_uri())
        self.media = MediaStore(self.db, self.blobs)
        self.ledger = CreditLedger(self.db, event_log=self.event_log)

        self.llm_factory = llm_factory or LLMClientFactory(
            api_key=s.groq_api_key,
            base_url=s.groq_base_url,
            timeout=s.llm_timeout,
        )

        self.tasks = TaskRunner(event_log=self.event_log)
        self.background = BackgroundQueue(
            workers=s.background_workers,
            maxsize=s.background_queue_size,
            event_log=self.event_log,
        )

        self.memory = MemoryManager(
            FactStore(self.db),
            self.conversations,
            FactExtractor(self.llm_factory, model=s.default_model),
        )
        self.translation = TranslationTrigger(
            LLMTranslator(self.llm_factory, self.conversations, model=s.default_model),
            self.background,
        )
        self.chat = ChatOrchestrator(
            self.conversations,
            self.ledger,
            self.memory,
            self.llm_factory,
            self.tasks,
            self.background,
            translation=self.translation,
            config=ReplyConfig(
                default_model=s.default_model,
                context_window=s.default_context_window,
                premium_tier=s.premium_tier,
            ),
            event_log=self.event_log,
        )

        self._runpod_transport = runpod_transport
        poller = JobPoller(
            self._runpod_client,
            PollPolicy(interval=s.image_poll_interval, timeout=s.image_poll_timeout),
            event_log=self.event_log,
            clock=clock,
            sleep=sleep,
        )
        self.images = ImageGenerator(
            self.conversations,
            self.ledger,
            self.media,
            self.blobs,
            poller,
            rewriter=PromptRewriter(self.llm_factory, model=s.default_model),
        )

    async def __aenter__(self) -> "GenerationService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        """Start background workers and refund charges left by a crash."""
        self.background.start()
        refunded = self.ledger.reconcile(self.settings.charge_reconcile_age)
        if refunded:
            logger.warning("Refunded %d charges left pending by a previous run", refunded)

    async def close(self) -> None:
        """Finish in-flight requests and background work, then close the database."""
        await self.tasks.join()
        await self.background.join()
        await self.background.close()
        self.db.close()

    async def request_reply(
        self,
        user_id: str,
        chat_id: str,
        character_id: str,
        persona_id: str | None = None,
        message_id: int | None = None,
    ) -> Message:
        """Start a character reply and return its placeholder at once."""
        return await self.chat.request_reply(
            user_id, chat_id, character_id, persona_id=persona_id, message_id=message_id
        )

    async def answer(
        self,
        user_id: str,
        chat_id: str,
        character_id: str,
        persona_id: str | None = None,
        message_id: int | None = None,
    ) -> ReplyOutcome:
        """Produce a character reply and wait for it."""
        return await self.chat.answer(
            user_id, chat_id, character_id, persona_id=persona_id, message_id=message_id
        )

    async def generate_image(self, user_id: str, character_id: str, prompt: str) -> ImageOutcome:
        return await self.images.generate(user_id, character_id, prompt)

    async def generate_image_in_chat(
        self, user_id: str, character_id: str, chat_id: str, user_message: str
    ) -> ImageOutcome:
        return await self.images.generate_in_chat(user_id, character_id, chat_id, user_message)

    def _runpod_client(self) -> RunPodClient:
        s = self.settings
        if not s.runpod_api_key or not s.runpod_endpoint_id:
            raise ValueError("RUNPOD_API_KEY and RUNPOD_ENDPOINT_ID must be set")
        return RunPodClient(
            s.runpod_api_key,
            s.runpod_endpoint_id,
            base_url=s.runpod_base_url,
            transport=self._runpod_transport,
        )
