"""Incremental display of a cumulative answer stream.

The answer generator reports progress as snapshots of everything generated so
far, not as deltas. Snapshots occasionally lose a character that was already
shown, so each one is checked against what has been written before any new
text goes out.
"""
from __future__ import annotations

import sys
from typing import Callable, Optional

HEADING_MARKER = "###"

Writer = Callable[[str], None]


def stdout_writer(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class IncrementalOutputFilter:
    """Append-only writer for cumulative snapshots.

    Nothing is written until a snapshot contains the first Markdown heading.
    A snapshot that no longer contains the already-written text is dropped.
    Not reentrant: feed snapshots one at a time in arrival order.
    """

    def __init__(self, writer: Writer | None = None):
        self._write = writer or stdout_writer
        self.emitted_prefix = ""

    def accepts(self, chunk: Optional[str]) -> bool:
        if not chunk:
            return False
        if HEADING_MARKER not in chunk:
            return False
        return self.emitted_prefix in chunk

    def feed(self, chunk: Optional[str]) -> str:
        """Write the unseen part of ``chunk`` and return it ("" when dropped)."""
        if not self.accepts(chunk):
            return ""
        suffix = chunk[len(self.emitted_prefix):]
        if suffix:
            self._write(suffix)
        self.emitted_prefix = chunk
        return suffix

    def finish(self, final_text: str) -> str:
        """Write whatever part of the final text was never shown.

        The final text is the complete answer, so the heading rule that gates
        ``feed`` does not apply here: when no chunk was accepted, the whole
        final text is written even if it has no ``###`` heading.
        """
        if not self.emitted_prefix:
            remainder = final_text
        elif final_text.startswith(self.emitted_prefix):
            remainder = final_text[len(self.emitted_prefix):]
        else:
            # Final text diverged from what was shown; appending would corrupt it.
            return ""
        if remainder:
            self._write(remainder)
            self.emitted_prefix += remainder
        return remainder
