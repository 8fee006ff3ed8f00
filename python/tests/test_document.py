"""Tests for splitting a generated answer into markdown and HTML."""

from termsmith.services.document import DualFormatDocument, split_dual_format


class TestSplitDualFormat:
    def test_both_markers(self):
        text = "[MARKDOWN]\n# Terms\n\nBe nice.\n[HTML]\n<div><h1>Terms</h1></div>"

        assert split_dual_format(text) == DualFormatDocument(
            markdown="# Terms\n\nBe nice.", html="<div><h1>Terms</h1></div>"
        )

    def test_preamble_before_markdown_marker_dropped(self):
        doc = split_dual_format("Sure! Here you go.\n[MARKDOWN]# T\n[HTML]<div>T</div>")
        assert doc.markdown == "# T"
        assert doc.html == "<div>T</div>"

    def test_no_html_marker(self):
        assert split_dual_format("[MARKDOWN]\n# Only markdown\n") == DualFormatDocument(
            markdown="# Only markdown", html=None
        )

    def test_no_markers_at_all(self):
        doc = split_dual_format("I'm sorry, I couldn't understand that.")
        assert doc.markdown == "I'm sorry, I couldn't understand that."
        assert doc.html is None

    def test_code_fence_around_html_stripped(self):
        text = "[MARKDOWN]# T\n[HTML]\n```html\n<div>T</div>\n```\n"
        assert split_dual_format(text).html == "<div>T</div>"

    def test_empty_html_section_is_none(self):
        assert split_dual_format("[MARKDOWN]# T\n[HTML]\n  ").html is None
