"""Tests for the OpenAI-compatible LLM client."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from search_answer.errors import GenerationError
from search_answer.llm_client import AnswerStream, complete, generate_answer, get_client


def delta_chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))], usage=None)


def usage_chunk(prompt_tokens, completion_tokens):
    return SimpleNamespace(
        choices=[],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


def connection_error():
    return APIConnectionError(request=httpx.Request("POST", "https://api.example.test/v1/chat/completions"))


class TestAnswerStream:
    @pytest.mark.asyncio
    async def test_snapshots_are_cumulative(self):
        fake = FakeStream([delta_chunk("### "), delta_chunk(None), delta_chunk("Answer"), usage_chunk(12, 3)])
        stream = AnswerStream(fake, model="gpt-4o")

        snapshots = [snapshot async for snapshot in stream.snapshots()]

        assert snapshots == ["### ", "### Answer"]
        assert await stream.text() == "### Answer"
        assert stream.usage.input_tokens == 12
        assert stream.usage.output_tokens == 3
        assert fake.closed

    @pytest.mark.asyncio
    async def test_text_drains_unconsumed_stream(self):
        stream = AnswerStream(FakeStream([delta_chunk("a"), delta_chunk("b")]), model="gpt-4o")

        assert await stream.text() == "ab"

    @pytest.mark.asyncio
    async def test_backend_error_becomes_generation_error(self):
        fake = FakeStream([delta_chunk("partial")], error=connection_error())
        stream = AnswerStream(fake, model="gpt-4o")

        with pytest.raises(GenerationError, match="Answer stream failed"):
            async for _ in stream.snapshots():
                pass
        assert fake.closed


class TestGenerateAnswer:
    @pytest.mark.asyncio
    async def test_requests_streaming_completion(self):
        fake_client = MagicMock()
        fake_client.chat.completions.create = AsyncMock(return_value=FakeStream([delta_chunk("hi")]))

        stream = await generate_answer("prompt text", model="test-model", active_client=fake_client)

        kwargs = fake_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["stream"] is True
        assert kwargs["messages"] == [{"role": "user", "content": "prompt text"}]
        assert kwargs["temperature"] == pytest.approx(0.2)
        assert await stream.text() == "hi"

    @pytest.mark.asyncio
    async def test_request_failure_becomes_generation_error(self):
        fake_client = MagicMock()
        fake_client.chat.completions.create = AsyncMock(side_effect=connection_error())

        with pytest.raises(GenerationError):
            await generate_answer("prompt", active_client=fake_client)


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_reply_text(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="everest height"))],
            usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2),
        )
        fake_client = MagicMock()
        fake_client.chat.completions.create = AsyncMock(return_value=response)

        reply = await complete("sys", "user", model="m", active_client=fake_client)

        assert reply == "everest height"
        messages = fake_client.chat.completions.create.await_args.kwargs["messages"]
        assert messages == [{"role": "system", "content": "sys"}, {"role": "user", "content": "user"}]

    @pytest.mark.asyncio
    async def test_failure_becomes_generation_error(self):
        fake_client = MagicMock()
        fake_client.chat.completions.create = AsyncMock(side_effect=connection_error())

        with pytest.raises(GenerationError, match="query failed"):
            await complete("sys", "user", caller="query", active_client=fake_client)


def test_get_client_uses_configured_backend():
    with patch("search_answer.llm_client.settings") as mock_settings, patch(
        "search_answer.llm_client.AsyncOpenAI"
    ) as mock_openai:
        mock_settings.openai_api_key = "sk-test"
        mock_settings.openai_base_url = "https://llm.example.test/v1"

        get_client()

    mock_openai.assert_called_once_with(api_key="sk-test", base_url="https://llm.example.test/v1")
