"""Tests for GenerationService wiring."""

import base64
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock

import httpx
import pytest

from chatforge.config import Settings
from chatforge.ledger import ChargeStatus, image_cost
from chatforge.logging import JSONLLogger
from chatforge.providers import LLMClientFactory
from chatforge.service import GenerationService
from chatforge.store import Character, Chat, User

PNG = b"\x89PNG\r\n\x1a\nfake-image"


def make_response(content: str) -> Mock:
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    return response


def runpod_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/run"):
        return httpx.Response(200, json={"id": "job-1"})
    return httpx.Response(
        200,
        json={"status": "COMPLETED", "output": {"images": [{"data": base64.b64encode(PNG).decode()}]}},
    )


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def groq() -> MagicMock:
    client = MagicMock()
    client.close = AsyncMock()
    client.chat.completions.create = AsyncMock(return_value=make_response("hey Sam"))
    return client


@pytest.fixture
def service(tmp_path: Path, groq: MagicMock) -> GenerationService:
    settings = Settings(
        groq_api_key="k",
        runpod_api_key="rp",
        runpod_endpoint_id="ep",
        data_dir=tmp_path,
        blob_base_url="https://cdn.test/blobs",
        background_workers=1,
        charge_reconcile_age=0,
    )
    service = GenerationService(
        settings,
        llm_factory=LLMClientFactory(api_key="k", client_builder=lambda: groq),
        runpod_transport=httpx.MockTransport(runpod_handler),
        event_log=JSONLLogger(log_dir=tmp_path / "logs"),
        sleep=no_sleep,
    )
    service.conversations.add_user(User(id="u1", name="Sam", crystals=20))
    service.conversations.add_character(
        Character(id="c1", creator_id="x", name="Mia", image_prompt_instructions="miastyle")
    )
    service.conversations.add_chat(Chat(id="chat1", user_id="u1", character_id="c1"))
    return service


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_refunds_stale_charges(self, service: GenerationService):
        """Charges left pending by a crashed run are refunded on start."""
        charge = service.ledger.debit("u1", 3, "chat:crashed")

        async with service:
            assert service.background.running
            _, status = service.ledger.get_charge(charge.id)
            assert status is ChargeStatus.REFUNDED
            assert service.ledger.balance("u1") == 20

    @pytest.mark.asyncio
    async def test_close_releases_database(self, service: GenerationService):
        await service.start()
        await service.close()

        assert not service.background.running
        assert service.db._conn is None


class TestPipelines:
    """End-to-end runs through the wired service."""

    @pytest.mark.asyncio
    async def test_request_reply(self, service: GenerationService):
        async with service:
            service.conversations.add_user_message("chat1", "hi Mia")
            placeholder = await service.request_reply("u1", "chat1", "c1")
            await service.tasks.join()

            assert service.conversations.get_message(placeholder.id).text == "hey Sam"
            assert service.ledger.balance("u1") == 18

    @pytest.mark.asyncio
    async def test_generate_image(self, service: GenerationService):
        async with service:
            outcome = await service.generate_image("u1", "c1", "portrait")

            assert outcome.ok
            assert outcome.result.value.startswith("https://cdn.test/blobs/")
            assert service.ledger.balance("u1") == 20 - image_cost()

    @pytest.mark.asyncio
    async def test_missing_runpod_credentials(self, tmp_path: Path, groq: MagicMock):
        service = GenerationService(
            Settings(data_dir=tmp_path, groq_api_key="k"),
            llm_factory=LLMClientFactory(api_key="k", client_builder=lambda: groq),
            event_log=JSONLLogger(log_dir=tmp_path / "logs"),
        )
        service.conversations.add_user(User(id="u1", name="Sam", crystals=20))
        service.conversations.add_character(Character(id="c1", creator_id="x", name="Mia"))

        async with service:
            outcome = await service.generate_image("u1", "c1", "portrait")

            assert not outcome.ok
            assert service.ledger.balance("u1") == 20
