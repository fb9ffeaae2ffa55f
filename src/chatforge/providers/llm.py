"""Chat completion client for the Groq API.

Clients are built per request through ``LLMClientFactory`` so concurrent
requests never share provider state, and credentials are always explicit.
"""

import asyncio
import logging
from typing import Any, Callable

from groq import APIError, APIStatusError, AsyncGroq

from ..results import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)


def display_message_from_body(body: object) -> str | None:
    """Find a user-displayable message in a provider error body.

    The message may sit at the top level or under ``error``.
    """
    if not isinstance(body, dict):
        return None
    candidates = [body]
    if isinstance(body.get("error"), dict):
        candidates.append(body["error"])
    for candidate in candidates:
        message = candidate.get("display_message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class GroqChatClient:
    """Sends chat completions for one model.

    Example:
        factory = LLMClientFactory(api_key="...")
        async with factory.for_model("llama-3.1-70b-versatile") as llm:
            result = await llm.chat([{"role": "user", "content": "hi"}])
    """

    def __init__(self, client: AsyncGroq, model: str, timeout: float = 60.0) -> None:
        """Initialize the client.

        Args:
            client: The AsyncGroq client to send requests with.
            model: The model to use for completions.
            timeout: Seconds before a request is abandoned.
        """
        self._client = client
        self._model = model
        self._timeout = timeout

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    async def __aenter__(self) -> "GroqChatClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client and its connection pool."""
        await self._client.close()

    async def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int = 512,
        temperature: float | None = None,
    ) -> Result:
        """Run a chat completion.

        Provider errors and timeouts come back as ``Err``; anything else
        propagates to the caller's error boundary.

        Returns:
            ``Ok`` with the response text (possibly empty) or ``Err``.
        """
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Completion with %s timed out after %ss", self._model, self._timeout)
            return Err(ErrorKind.TIMEOUT, detail=f"timed out after {self._timeout}s")
        except APIStatusError as e:
            logger.warning("Completion with %s failed: %s", self._model, e)
            return Err(
                ErrorKind.PROVIDER,
                display_message=display_message_from_body(e.body),
                detail=str(e),
            )
        except APIError as e:
            logger.warning("Completion with %s failed: %s", self._model, e)
            return Err(ErrorKind.PROVIDER, detail=str(e))

        if not response.choices:
            return Err(ErrorKind.PROVIDER, detail="response has no choices")
        return Ok(response.choices[0].message.content or "")

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        *,
        max_tokens: int = 512,
        temperature: float | None = None,
    ) -> Result:
        """Complete a single prompt with an optional system prompt."""
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        return await self.chat(messages, max_tokens=max_tokens, temperature=temperature)


class LLMClientFactory:
    """Builds a fresh ``GroqChatClient`` for each request."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client_builder: Callable[[], AsyncGroq] | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            api_key: Provider API key.
            base_url: Optional override of the provider URL.
            timeout: Per-request timeout in seconds.
            client_builder: Replaces AsyncGroq construction (tests).
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client_builder = client_builder

    def for_model(self, model: str) -> GroqChatClient:
        """Create a client bound to ``model``."""
        if self._client_builder is not None:
            client = self._client_builder()
        else:
            client = AsyncGroq(api_key=self.api_key, base_url=self.base_url)
        return GroqChatClient(client, model, timeout=self.timeout)
