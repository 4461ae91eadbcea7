from __future__ import annotations

from typing import Sequence


class SearchAnswerError(Exception):
    """Base class for errors raised by the answer pipeline."""


class ValidationError(SearchAnswerError):
    """Bad or missing process input. Raised before any pipeline work starts."""

    def __init__(self, message: str, *, choices: Sequence[str] = ()):
        super().__init__(message)
        self.message = message
        self.choices = tuple(choices)


class ContextError(SearchAnswerError):
    """A browser context could not be launched or bound to its session."""


class SearchError(SearchAnswerError):
    """The search page or its results could not be scraped."""


class GenerationError(SearchAnswerError):
    """The language model failed to produce a query or an answer."""


class ReleaseWarning(RuntimeWarning):
    """A browser context failed to close. Logged, never raised."""
