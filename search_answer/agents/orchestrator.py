from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from search_answer.config import RunConfig
from search_answer.errors import ReleaseWarning
from search_answer.services import logger as log_service
from search_answer.services.prompt_store import answer_prompt
from search_answer.services.streaming import IncrementalOutputFilter, Writer

DeriveQuery = Callable[[str], Awaitable[str]]
AcquireContext = Callable[[str, str, bool], Awaitable[Any]]
Search = Callable[[str, Any, Any, str], Awaitable[str]]
GenerateAnswer = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class SetupResult:
    """Outcome of the setup join: all three values, or the first error."""

    query: str | None = None
    context: Any = None
    no_js_context: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AnswerOrchestrator:
    """Runs one question through query, search and answer generation.

    Flow:
      1. Derive the query and launch both browser contexts concurrently
      2. Search with both contexts, then release them in the background
      3. Compose the prompt from the question and the scraped pages
      4. Stream the answer through the incremental output filter

    Collaborators are injectable so the flow can run without a browser or a
    model backend.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        derive_query: DeriveQuery | None = None,
        acquire_context: AcquireContext | None = None,
        search: Search | None = None,
        generate_answer: GenerateAnswer | None = None,
        writer: Writer | None = None,
    ):
        self.config = config
        self._derive_query = derive_query or _default_derive_query
        self._acquire_context = acquire_context or _default_acquire_context
        self._search = search or _default_search
        self._generate_answer = generate_answer or _default_generate_answer
        self.output_filter = IncrementalOutputFilter(writer)
        self.release_warnings: list[ReleaseWarning] = []
        self._release_tasks: list[asyncio.Task] = []

    async def run(self) -> str:
        """Answer the configured question and return the final answer text."""
        started = time.monotonic()
        logger.info(f"Answering question: {self.config.question[:100]}")

        setup = await self.setup()
        if not setup.ok:
            raise setup.error

        try:
            try:
                page_contents = await self._search(
                    self.config.browser_name,
                    setup.context,
                    setup.no_js_context,
                    setup.query,
                )
            finally:
                self._schedule_release(setup.context, "javascript")
                self._schedule_release(setup.no_js_context, "no-javascript")

            answer = await self.stream_answer(self.compose_prompt(page_contents))
        finally:
            await self.wait_for_releases()

        log_service.log_pipeline_stage(
            "run",
            "completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            data={"answer_chars": len(answer), "release_warnings": len(self.release_warnings)},
        )
        return answer

    async def setup(self) -> SetupResult:
        """Derive the query and acquire both contexts; wait for all three.

        The reported error is the first one to happen, not the first by
        position.
        """
        t0 = time.monotonic()
        failures: list[BaseException] = []

        def record_failure(task: asyncio.Task) -> None:
            if not task.cancelled() and task.exception() is not None:
                failures.append(task.exception())

        query_task = asyncio.create_task(self._derive_query(self.config.question))
        context_task = asyncio.create_task(
            self._acquire_context(self.config.browser_name, self.config.session_dir, True)
        )
        no_js_task = asyncio.create_task(
            self._acquire_context(self.config.browser_name, self.config.no_js_session_dir, False)
        )
        tasks = (query_task, context_task, no_js_task)
        for task in tasks:
            task.add_done_callback(record_failure)
        await asyncio.wait(tasks)

        if failures:
            logger.error(f"Setup failed: {failures[0]!r}")
            log_service.log_event(
                "setup_failed", str(failures[0]), level="ERROR", failures=len(failures)
            )
            # Contexts that did come up must not outlive a failed setup.
            for task, label in ((context_task, "javascript"), (no_js_task, "no-javascript")):
                if not task.cancelled() and task.exception() is None:
                    self._schedule_release(task.result(), label)
            await self.wait_for_releases()
            return SetupResult(error=failures[0])

        query = query_task.result()
        log_service.log_pipeline_stage(
            "setup",
            "completed",
            duration_ms=int((time.monotonic() - t0) * 1000),
            data={"query": query, "browser": self.config.browser_name},
        )
        return SetupResult(query=query, context=context_task.result(), no_js_context=no_js_task.result())

    def compose_prompt(self, page_contents: str) -> str:
        return answer_prompt(self.config.question, page_contents)

    async def stream_answer(self, prompt: str) -> str:
        stream = await self._generate_answer(prompt)
        async for chunk in stream.snapshots():
            self.output_filter.feed(chunk)
        final_text = await stream.text()
        self.output_filter.finish(final_text)
        return final_text

    def _schedule_release(self, handle: Any, label: str) -> None:
        self._release_tasks.append(asyncio.create_task(self._release(handle, label)))

    async def _release(self, handle: Any, label: str) -> None:
        try:
            await handle.close()
        except Exception as exc:
            warning = ReleaseWarning(f"Failed to close {label} browser context: {exc}")
            self.release_warnings.append(warning)
            logger.warning(str(warning))
            log_service.log_event("context_release_failed", str(warning), level="WARNING", label=label)

    async def wait_for_releases(self) -> None:
        tasks, self._release_tasks = self._release_tasks, []
        if tasks:
            await asyncio.gather(*tasks)


async def _default_derive_query(question: str) -> str:
    from search_answer.agents.query_agent import derive_query

    return await derive_query(question)


async def _default_acquire_context(browser_name: str, session_dir: str, script_enabled: bool) -> Any:
    from search_answer.tools.browser_context import get_new_context

    return await get_new_context(browser_name, session_dir, script_enabled)


async def _default_search(browser_name: str, context: Any, no_js_context: Any, query: str) -> str:
    from search_answer.tools.web_search import search

    return await search(browser_name, context, no_js_context, query)


async def _default_generate_answer(prompt: str) -> Any:
    from search_answer.llm_client import generate_answer

    return await generate_answer(prompt)
