"""search-answer - answer a question from live search results.

Runs as a GPTScript tool: the question arrives as JSON in GPTSCRIPT_INPUT and
the answer is streamed to stdout.
"""

import argparse
import asyncio
import sys

from loguru import logger

from search_answer.config import load_run_config
from search_answer.errors import ValidationError


async def run_answer(config) -> str:
    """Run the pipeline for one validated run configuration."""
    from search_answer.agents.orchestrator import AnswerOrchestrator

    orchestrator = AnswerOrchestrator(config)
    try:
        return await orchestrator.run()
    except Exception as e:
        logger.exception(f"Answer pipeline failed with error: {e}")
        raise


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Answer a question from live search results")
    parser.add_argument("--question", "-q", help="Question to answer (default: from GPTSCRIPT_INPUT)")
    parser.add_argument("--browser", "-b", help="Browser to use: chrome, firefox or edge")

    args = parser.parse_args(argv)

    try:
        config = load_run_config(question=args.question, browser_name=args.browser)
    except ValidationError as e:
        print(f"error: {e.message}")
        if e.choices:
            print(f"valid browsers: {', '.join(e.choices)}")
        return 1

    try:
        asyncio.run(run_answer(config))
    except Exception:
        return 1
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
