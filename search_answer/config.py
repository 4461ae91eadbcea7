from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, MutableMapping

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from search_answer.errors import ValidationError
from search_answer.services.env_safety import take_env

VALID_BROWSERS = ("chrome", "firefox", "edge")
DEFAULT_BROWSER = "chrome"

INPUT_ENV = "GPTSCRIPT_INPUT"
WORKSPACE_ID_ENV = "GPTSCRIPT_WORKSPACE_ID"
WORKSPACE_DIR_ENV = "GPTSCRIPT_WORKSPACE_DIR"
BROWSER_ENV = "GPTSCRIPT_INSTALLED_BROWSER"


class Settings(BaseSettings):
    # Model backend (OpenAI-compatible)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    answer_model: str = "gpt-4o"
    query_model: str = ""  # optional override for query derivation only
    answer_temperature: float = 0.2
    answer_max_tokens: int = 4096

    # Browser
    browser_headless: bool = True
    browser_timeout_ms: int = 20000

    # Search
    search_max_results: int = 5
    search_max_parallel_pages: int = 4
    search_min_page_chars: int = 400
    search_max_page_chars: int = 12000

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = ""  # empty disables the file sink

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def effective_query_model(self) -> str:
        return self.query_model or self.answer_model


settings = Settings()


class ToolInput(BaseModel):
    question: str | None = None


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs from the process, captured once at startup."""

    question: str
    workspace_id: str
    workspace_dir: str
    browser_name: str = DEFAULT_BROWSER

    @property
    def session_dir(self) -> str:
        return str(Path(self.workspace_dir).resolve() / "browser_session")

    @property
    def no_js_session_dir(self) -> str:
        return self.session_dir + "_no_js"


def parse_tool_input(raw: str | None) -> ToolInput:
    if raw is None:
        raise ValidationError("no input provided")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"input is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValidationError("input must be a JSON object")
    try:
        return ToolInput.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid input: {exc.errors()[0]['msg']}") from exc


def normalize_browser_name(name: str | None) -> str:
    browser_name = (name or DEFAULT_BROWSER).strip().lower()
    if browser_name not in VALID_BROWSERS:
        raise ValidationError(f"invalid browser name {browser_name}", choices=VALID_BROWSERS)
    return browser_name


def load_run_config(
    environ: MutableMapping[str, str] | None = None,
    *,
    question: str | None = None,
    browser_name: str | None = None,
) -> RunConfig:
    """Validate process input and build the immutable run configuration.

    ``question`` and ``browser_name`` override the environment when given.
    Raises ``ValidationError`` before any pipeline work can start.
    """
    env: MutableMapping[str, str] = os.environ if environ is None else environ

    raw_input = take_env(INPUT_ENV, env)
    if question is None:
        question = parse_tool_input(raw_input).question or ""
    if not question.strip():
        raise ValidationError("no question provided")

    workspace_id = env.get(WORKSPACE_ID_ENV)
    workspace_dir = env.get(WORKSPACE_DIR_ENV)
    if workspace_id is None or workspace_dir is None:
        raise ValidationError("GPTScript workspace ID and directory are not set")

    return RunConfig(
        question=question,
        workspace_id=workspace_id,
        workspace_dir=workspace_dir,
        browser_name=normalize_browser_name(browser_name or _lookup(env, BROWSER_ENV)),
    )


def _lookup(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    return value if value else None
