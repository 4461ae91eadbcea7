from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from search_answer.agents.query_agent import QueryAgent, clean_query
from search_answer.errors import GenerationError


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("mount everest height", "mount everest height"),
        ('"mount everest height"', "mount everest height"),
        ("\n  `everest height`  \nbecause it is tall", "everest height"),
        ("   \n\n", ""),
    ],
)
def test_clean_query(raw, expected):
    assert clean_query(raw) == expected


@pytest.mark.asyncio
async def test_derive_uses_query_model_and_prompts():
    agent = QueryAgent(model="query-model")
    with patch(
        "search_answer.agents.query_agent.llm_client.complete",
        new=AsyncMock(return_value='"tallest mountain on earth"'),
    ) as mock_complete:
        query = await agent.derive("What is the tallest mountain?")

    assert query == "tallest mountain on earth"
    system, user = mock_complete.await_args.args
    assert "search engine query" in system
    assert user.endswith("What is the tallest mountain?")
    assert mock_complete.await_args.kwargs["model"] == "query-model"
    assert mock_complete.await_args.kwargs["caller"] == "query"


@pytest.mark.asyncio
async def test_derive_raises_on_empty_reply():
    agent = QueryAgent(model="query-model")
    with patch(
        "search_answer.agents.query_agent.llm_client.complete",
        new=AsyncMock(return_value="  \n"),
    ):
        with pytest.raises(GenerationError, match="no search query"):
            await agent.derive("???")
