"""Markdown rendering for question and option text served to learners.

Question text is authored as markdown (inline ``$...$`` math is passed
through untouched for MathJax on the client). Raw HTML in the source is
escaped, since generated questions come from an untrusted source.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class QuestionMarkdownRenderer:
    """Converts question markdown into HTML fragments."""

    enable_html: bool = False
    placeholder: str = "<p><em>(No question text)</em></p>"
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_question(self, markdown_text: str) -> str:
        cleaned = markdown_text.strip()
        if not cleaned:
            return self.placeholder
        return self._markdown.render(cleaned)

    def render_option(self, markdown_text: str) -> str:
        """Render option text without a wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())


renderer = QuestionMarkdownRenderer()
