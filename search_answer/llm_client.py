"""OpenAI-compatible client for query derivation and streamed answers."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from search_answer.config import settings
from search_answer.errors import GenerationError
from search_answer.services import logger as log_service
from search_answer.services.env_safety import sanitize_ssl_keylogfile


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


class AnswerStream:
    """A streamed completion seen as cumulative snapshots.

    ``snapshots()`` yields the whole text generated so far after every delta;
    ``text()`` drains whatever is left and returns the final text.
    """

    def __init__(self, stream: Any, *, model: str, caller: str = "answer"):
        self._stream = stream
        self._model = model
        self._caller = caller
        self._text = ""
        self._usage = Usage()
        self._finished = False
        self._started = time.monotonic()

    @property
    def usage(self) -> Usage:
        return self._usage

    async def snapshots(self) -> AsyncIterator[str]:
        if self._finished:
            return
        try:
            async for chunk in self._stream:
                usage = getattr(chunk, "usage", None)
                if usage:
                    self._usage = Usage(
                        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                    )

                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None) if delta else None
                if text:
                    self._text += text
                    yield self._text
        except OpenAIError as exc:
            self._log(error=str(exc))
            raise GenerationError(f"Answer stream failed: {exc}") from exc
        finally:
            await self._close()
        self._finished = True
        self._log()

    async def text(self) -> str:
        if not self._finished:
            async for _ in self.snapshots():
                pass
        return self._text

    async def _close(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is not None:
            await close()

    def _log(self, error: str | None = None) -> None:
        log_service.log_llm_call(
            model=self._model,
            caller=self._caller,
            input_tokens=self._usage.input_tokens,
            output_tokens=self._usage.output_tokens,
            duration_ms=int((time.monotonic() - self._started) * 1000),
            status="error" if error else "success",
            error=error,
        )


def get_client() -> AsyncOpenAI:
    sanitize_ssl_keylogfile()
    base_url = settings.openai_base_url.strip() or "https://api.openai.com/v1"
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=base_url,
    )


_client: AsyncOpenAI | None = None


def client() -> AsyncOpenAI:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def complete(
    system: str,
    user: str,
    *,
    model: str | None = None,
    caller: str = "completion",
    active_client: Any | None = None,
) -> str:
    """Single non-streaming completion returning the reply text."""
    model = model or settings.answer_model
    t0 = time.monotonic()
    try:
        active_client = active_client or client()
        response = await active_client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0,
            max_tokens=256,
        )
    except OpenAIError as exc:
        log_service.log_llm_call(model=model, caller=caller, status="error", error=str(exc))
        raise GenerationError(f"{caller} failed: {exc}") from exc

    usage = getattr(response, "usage", None)
    log_service.log_llm_call(
        model=model,
        caller=caller,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


async def generate_answer(
    prompt: str,
    *,
    model: str | None = None,
    active_client: Any | None = None,
) -> AnswerStream:
    """Start streaming an answer for ``prompt``."""
    model = model or settings.answer_model
    try:
        active_client = active_client or client()
        stream = await active_client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=settings.answer_temperature,
            max_tokens=settings.answer_max_tokens,
            stream=True,
            stream_options={"include_usage": True},
        )
    except OpenAIError as exc:
        log_service.log_llm_call(model=model, caller="answer", status="error", error=str(exc))
        raise GenerationError(f"Answer generation failed: {exc}") from exc
    return AnswerStream(stream, model=model)
