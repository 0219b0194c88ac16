"""HTML main-content extraction and markdown conversion.

Both steps are best-effort. The reader wraps them in fallback chains: a failed
or empty extraction falls back to the full page HTML, and a failed conversion
falls back to the HTML itself. Neither failure is ever surfaced to the agent.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from bs4 import BeautifulSoup
from markdownify import ATX
from markdownify import MarkdownConverter as _Markdownify
from readability import Document

if TYPE_CHECKING:
    from websift.protocols import ContentExtractor, MarkdownConverter

log = structlog.get_logger()

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


class ReadabilityExtractor:
    """Main-content extraction via readability-lxml."""

    def extract_main_content(self, html: str) -> str:
        return Document(html).summary(html_partial=True)


class MarkdownifyConverter:
    """HTML → markdown via markdownify, with ATX (``#``) headings."""

    def __init__(self) -> None:
        self._converter = _Markdownify(heading_style=ATX, bullets="-")

    def to_markdown(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(_NON_CONTENT_TAGS):
            tag.decompose()
        markdown = self._converter.convert_soup(soup)
        return _EXCESS_BLANK_LINES.sub("\n\n", markdown).strip()


def extract_with_fallback(extractor: ContentExtractor, html: str, url: str) -> str:
    """Return the extracted main content, or ``html`` when extraction fails or has no text."""
    try:
        extracted = extractor.extract_main_content(html)
    except Exception as exc:
        log.warning("extraction_failed", url=url, error=str(exc), fallback="full_html")
        return html

    # readability may return a bare wrapper such as <body id="readabilityBody"></body>
    if not extracted or not BeautifulSoup(extracted, "html.parser").get_text(strip=True):
        log.warning("extraction_empty", url=url, fallback="full_html")
        return html

    log.debug("extraction_complete", url=url, length=len(extracted))
    return extracted


def convert_with_fallback(converter: MarkdownConverter, html: str, url: str) -> str:
    """Return markdown for ``html``, or ``html`` itself when conversion raises."""
    try:
        return converter.to_markdown(html)
    except Exception as exc:
        log.warning("conversion_failed", url=url, error=str(exc), fallback="raw_html")
        return html
