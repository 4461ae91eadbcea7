"""Tests for the incremental output filter."""
from search_answer.services.streaming import IncrementalOutputFilter


def make_filter():
    writes: list[str] = []
    return IncrementalOutputFilter(writes.append), writes


class TestIncrementalOutputFilter:
    def test_writes_only_after_heading_then_appends_suffix(self):
        output_filter, writes = make_filter()
        chunks = [
            "",
            "no heading yet",
            "### Sources\n- [A](url)\n### Answer\nPart",
            "### Sources\n- [A](url)\n### Answer\nPart one done.",
        ]

        for chunk in chunks:
            output_filter.feed(chunk)

        assert writes == ["### Sources\n- [A](url)\n### Answer\nPart", " one done."]
        assert "".join(writes) == "### Sources\n- [A](url)\n### Answer\nPart one done."

    def test_chunk_that_dropped_a_character_is_rejected(self):
        output_filter, writes = make_filter()

        output_filter.feed("### Answer\nHel")
        output_filter.feed("### Answer\nHello")
        written = output_filter.feed("### Answer\nHelo world")

        assert written == ""
        assert writes == ["### Answer\nHel", "lo"]
        assert output_filter.emitted_prefix == "### Answer\nHello"

    def test_identical_chunk_twice_writes_once(self):
        output_filter, writes = make_filter()

        first = output_filter.feed("### Sources\n")
        second = output_filter.feed("### Sources\n")

        assert first == "### Sources\n"
        assert second == ""
        assert writes == ["### Sources\n"]

    def test_chunks_without_heading_never_write_at_any_position(self):
        output_filter, writes = make_filter()

        output_filter.feed("### Sources\n- [A](url)")
        output_filter.feed("- [A](url) and more")
        output_filter.feed("### Sources\n- [A](url)\n- [B](url)")
        output_filter.feed("[B](url) trailing text")

        assert writes == ["### Sources\n- [A](url)", "\n- [B](url)"]

    def test_marker_alone_is_not_enough_without_prefix(self):
        output_filter, writes = make_filter()

        output_filter.feed("### Sources\n- [A](url)")
        output_filter.feed("### Sources\n- [B](url)")

        assert writes == ["### Sources\n- [A](url)"]
        assert output_filter.emitted_prefix == "### Sources\n- [A](url)"

    def test_none_chunk_is_ignored(self):
        output_filter, writes = make_filter()

        assert output_filter.feed(None) == ""
        assert writes == []
        assert output_filter.emitted_prefix == ""

    def test_emitted_prefix_never_shrinks(self):
        output_filter, _ = make_filter()
        chunks = [
            "### A",
            "### AB",
            "### A",
            "### ABC",
            "",
            "### AXC",
            "### ABCD",
        ]
        lengths = []
        for chunk in chunks:
            output_filter.feed(chunk)
            lengths.append(len(output_filter.emitted_prefix))

        assert lengths == sorted(lengths)
        assert output_filter.emitted_prefix == "### ABCD"

    def test_finish_writes_unseen_tail_of_final_text(self):
        output_filter, writes = make_filter()
        output_filter.feed("### Answer\nPart")

        remainder = output_filter.finish("### Answer\nPart one done.")

        assert remainder == " one done."
        assert writes == ["### Answer\nPart", " one done."]

    def test_finish_writes_whole_text_when_nothing_was_shown(self):
        output_filter, writes = make_filter()
        output_filter.feed("no heading")

        output_filter.finish("### Answer\nComplete.")

        assert writes == ["### Answer\nComplete."]

    def test_finish_writes_final_text_without_heading(self):
        output_filter, writes = make_filter()
        output_filter.feed("Plain answer")

        remainder = output_filter.finish("Plain answer with no headings.")

        assert remainder == "Plain answer with no headings."
        assert writes == ["Plain answer with no headings."]

    def test_finish_does_not_append_to_diverged_output(self):
        output_filter, writes = make_filter()
        output_filter.feed("### Answer\nHello")

        assert output_filter.finish("### Answer\nHelo world") == ""
        assert writes == ["### Answer\nHello"]
