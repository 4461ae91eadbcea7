from __future__ import annotations

from typing import Any

from loguru import logger

from search_answer import llm_client
from search_answer.config import settings
from search_answer.errors import GenerationError
from search_answer.services.prompt_store import query_messages

_QUOTE_CHARS = "\"'`“”‘’"


def clean_query(raw: str) -> str:
    """First non-empty line of the reply, without wrapping quotes."""
    for line in raw.splitlines():
        line = line.strip().strip(_QUOTE_CHARS).strip()
        if line:
            return line
    return ""


class QueryAgent:
    """Derives a single search-engine query from a question."""

    name = "query"

    def __init__(self, model: str | None = None):
        self.model = model or settings.effective_query_model
        self.client: Any | None = None

    async def derive(self, question: str) -> str:
        system, user = query_messages(question)
        reply = await llm_client.complete(
            system,
            user,
            model=self.model,
            caller=self.name,
            active_client=self.client,
        )
        query = clean_query(reply)
        if not query:
            raise GenerationError(f"Model returned no search query for question: {question[:100]}")
        logger.info(f"Derived search query: {query}")
        return query


async def derive_query(question: str) -> str:
    return await QueryAgent().derive(question)
