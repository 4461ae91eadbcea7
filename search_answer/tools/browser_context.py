from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from playwright.async_api import BrowserContext, Playwright, async_playwright

from search_answer.config import settings
from search_answer.errors import ContextError


@dataclass(frozen=True, slots=True)
class BrowserLaunchSpec:
    engine: str
    channel: str | None


BROWSER_LAUNCH_SPECS = {
    "chrome": BrowserLaunchSpec(engine="chromium", channel="chrome"),
    "edge": BrowserLaunchSpec(engine="chromium", channel="msedge"),
    "firefox": BrowserLaunchSpec(engine="firefox", channel=None),
}

CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
]


@dataclass
class BrowserContextHandle:
    """A persistent browser context plus the driver that launched it."""

    context: BrowserContext
    playwright: Playwright
    session_dir: str
    script_enabled: bool
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def new_page(self) -> Any:
        return await self.context.new_page()

    async def close(self) -> None:
        """Close the context and stop the driver. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.context.close()
        finally:
            await self.playwright.stop()


def launch_options(browser_name: str, session_dir: str, script_enabled: bool) -> dict[str, Any]:
    spec = BROWSER_LAUNCH_SPECS[browser_name]
    options: dict[str, Any] = {
        "user_data_dir": session_dir,
        "headless": settings.browser_headless,
        "java_script_enabled": script_enabled,
        "viewport": {"width": 1280, "height": 900},
    }
    if spec.channel:
        options["channel"] = spec.channel
    if spec.engine == "chromium":
        options["args"] = list(CHROMIUM_ARGS)
    return options


async def get_new_context(browser_name: str, session_dir: str, script_enabled: bool) -> BrowserContextHandle:
    """Launch a context bound to the persisted session in ``session_dir``."""
    spec = BROWSER_LAUNCH_SPECS.get(browser_name)
    if spec is None:
        raise ContextError(f"Unsupported browser: {browser_name}")

    Path(session_dir).mkdir(parents=True, exist_ok=True)
    try:
        playwright = await async_playwright().start()
    except Exception as exc:
        raise ContextError(f"Failed to start the browser driver: {exc}") from exc

    try:
        launcher = getattr(playwright, spec.engine)
        context = await launcher.launch_persistent_context(
            **launch_options(browser_name, session_dir, script_enabled)
        )
    except Exception as exc:
        await playwright.stop()
        raise ContextError(
            f"Failed to launch {browser_name} context at {session_dir}: {exc}"
        ) from exc

    context.set_default_timeout(settings.browser_timeout_ms)
    logger.debug(
        f"Launched {browser_name} context (javascript={'on' if script_enabled else 'off'}) at {session_dir}"
    )
    return BrowserContextHandle(
        context=context,
        playwright=playwright,
        session_dir=session_dir,
        script_enabled=script_enabled,
    )
