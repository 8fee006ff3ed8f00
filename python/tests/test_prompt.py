"""Tests for the Terms-of-Service system instruction."""

from termsmith.services.llm import build_system_prompt, compose_first_message
from termsmith.services.llm.prompt import HTML_MARKER, MARKDOWN_MARKER, SECTIONS


class TestBuildSystemPrompt:
    def test_deterministic(self):
        assert build_system_prompt() == build_system_prompt()

    def test_contains_every_section(self):
        prompt = build_system_prompt()
        for section in SECTIONS:
            assert section.strip("\n") in prompt

    def test_instructs_dual_format_markers(self):
        prompt = build_system_prompt()
        assert MARKDOWN_MARKER in prompt
        assert HTML_MARKER in prompt

    def test_no_surrounding_blank_lines(self):
        prompt = build_system_prompt()
        assert prompt == prompt.strip("\n")


class TestComposeFirstMessage:
    def test_instruction_blank_line_then_message(self):
        assert compose_first_message("SYSTEM", "Write terms") == "SYSTEM\n\nWrite terms"

    def test_user_message_kept_verbatim(self):
        message = "  spaced\nmulti-line  "
        assert compose_first_message("S", message).endswith("\n\n" + message)
