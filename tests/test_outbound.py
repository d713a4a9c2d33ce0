"""Tests for outbound text processing."""

from wagate.communication.outbound import process_outbound, split_message, strip_narration


class TestStripNarration:
    def test_english(self):
        assert strip_narration("Let me check that for you.\nThe answer is 42.") == "The answer is 42."

    def test_indonesian(self):
        text = "Baik, saya akan cek dulu.\nIbu kota Indonesia adalah Jakarta."
        assert strip_narration(text) == "Ibu kota Indonesia adalah Jakarta."

    def test_keeps_text_that_would_vanish(self):
        assert strip_narration("Let me think.") == "Let me think."

    def test_untouched(self):
        assert strip_narration("Jakarta.") == "Jakarta."
        assert strip_narration("") == ""


class TestSplitMessage:
    def test_short(self):
        assert split_message("halo") == ["halo"]

    def test_prefers_newlines(self):
        text = "a" * 30 + "\n" + "b" * 30
        assert split_message(text, max_length=40) == ["a" * 30, "b" * 30]

    def test_hard_cut(self):
        chunks = split_message("x" * 100, max_length=40)
        assert chunks == ["x" * 40, "x" * 40, "x" * 20]


class TestProcessOutbound:
    def test_collapses_blank_lines(self):
        assert process_outbound("a\n\n\n\nb\n") == "a\n\nb"
