"""Split a generated Terms-of-Service answer into its two renderings.

The model is instructed to answer as ``[MARKDOWN] ... [HTML] ...``. Models do
not always comply exactly, so parsing is lenient:

- no ``[MARKDOWN]`` marker: markdown starts at the beginning of the text
- no ``[HTML]`` marker: the whole remainder is markdown and html is None
- code fences wrapped around the HTML (```html ... ```) are removed
"""

import re
from dataclasses import dataclass

from termsmith.services.llm.prompt import HTML_MARKER, MARKDOWN_MARKER

_LEADING_FENCE = re.compile(r"^```[A-Za-z]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```\s*$")


@dataclass(frozen=True)
class DualFormatDocument:
    markdown: str
    html: str | None


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def split_dual_format(text: str) -> DualFormatDocument:
    """Split model output on the [MARKDOWN] / [HTML] markers."""
    markdown_start = text.find(MARKDOWN_MARKER)
    body = text[markdown_start + len(MARKDOWN_MARKER) :] if markdown_start != -1 else text

    html_start = body.find(HTML_MARKER)
    if html_start == -1:
        return DualFormatDocument(markdown=body.strip(), html=None)

    markdown = body[:html_start].strip()
    html = _strip_code_fences(body[html_start + len(HTML_MARKER) :])
    return DualFormatDocument(markdown=markdown, html=html or None)
