"""Fact extraction from recent chat messages using the LLM."""

import json
import logging
import re
from typing import Any

from ..providers.llm import LLMClientFactory
from .models import FactCandidate

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """Read the user's messages below and list concrete personal facts about the user worth remembering in later conversations (name, age, job, likes, dislikes, pets, hobbies, relationships, location).

Return ONLY a JSON array. Each item is an object:
  {"fact": "<short fact in third person>", "category": "<one-word label>"}
Return [] if there are no new facts. Do not include questions, guesses or temporary moods.
"""

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_NUMBERED = re.compile(r"^\d+[.)]\s*")


class FactExtractor:
    """Asks the LLM for new facts about a user."""

    def __init__(
        self,
        llm_factory: LLMClientFactory,
        model: str = "llama-3.1-70b-versatile",
        max_tokens: int = 200,
    ) -> None:
        """Initialize the extractor.

        Args:
            llm_factory: Builds the client for each extraction.
            model: The model to use for extraction.
            max_tokens: Completion budget for the fact list.
        """
        self.llm_factory = llm_factory
        self.model = model
        self.max_tokens = max_tokens

    async def extract(
        self, user_text: str, known_facts: list[str] | None = None
    ) -> list[FactCandidate]:
        """Extract candidate facts from the user's recent text.

        Args:
            user_text: The user's messages, newline separated.
            known_facts: Facts already stored, listed so the model skips them.

        Returns:
            Candidate facts, empty if none were found or the call failed.
        """
        if not user_text.strip():
            return []

        prompt = EXTRACTION_PROMPT
        if known_facts:
            known = "\n".join(f"- {fact}" for fact in known_facts)
            prompt += f"\nAlready known (skip these):\n{known}\n"
        prompt += f"\nUser's messages:\n{user_text}"

        async with self.llm_factory.for_model(self.model) as llm:
            result = await llm.complete(prompt, max_tokens=self.max_tokens, temperature=0.1)
        if not result.ok:
            logger.warning("Fact extraction failed: %s", result.detail)
            return []

        return self._parse_response(result.value)

    def _parse_response(self, content: str) -> list[FactCandidate]:
        """Parse the LLM response into candidates.

        Accepts a JSON array of strings or objects, or an object with a
        ``facts`` array. Models that ignore the format and answer with a
        ``FACT:`` or bulleted list are read line by line.
        """
        text = _FENCE.sub("", content.strip()).strip()
        if not text:
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return self._parse_lines(text)

        if isinstance(data, dict):
            data = data.get("facts")
        if not isinstance(data, list):
            logger.warning("Invalid extraction response structure: %s", type(data).__name__)
            return []

        candidates = []
        for item in data:
            candidate = self._to_candidate(item)
            if candidate is None:
                logger.debug("Skipping invalid fact item: %r", item)
                continue
            candidates.append(candidate)
        return candidates

    def _to_candidate(self, item: Any) -> FactCandidate | None:
        if isinstance(item, str):
            return FactCandidate(fact=item)
        if isinstance(item, dict) and isinstance(item.get("fact"), str):
            category = item.get("category")
            return FactCandidate(
                fact=item["fact"],
                category=str(category) if category else None,
            )
        return None

    def _parse_lines(self, text: str) -> list[FactCandidate]:
        if text.upper() == "NONE":
            return []

        candidates = []
        for line in text.splitlines():
            line = line.strip()
            if line.upper().startswith("FACT:"):
                fact = line[5:]
            elif line.startswith("- "):
                fact = line[2:]
            elif _NUMBERED.match(line):
                fact = _NUMBERED.sub("", line)
            else:
                continue
            if fact.strip():
                candidates.append(FactCandidate(fact=fact.strip()))
        return candidates
