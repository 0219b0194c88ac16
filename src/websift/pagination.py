"""Pagination engine for converted page content.

Pure functions that narrow markdown down to what the agent asked for. They are
applied in a fixed order, each working on the previous layer's output:

  read_headings → section → paragraph_range → start_char/max_length

A heading listing short-circuits every later layer; a missing section or bad
paragraph range returns a notice instead of content and stops there.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_RANGE_RE = re.compile(r"^(\d+)(?:-(\d*))?$")

NO_HEADINGS_NOTICE = "No headings found in the content."


@dataclass(frozen=True)
class PaginationOptions:
    start_char: int = 0
    max_length: int | None = None
    section: str | None = None
    paragraph_range: str | None = None
    read_headings: bool = False


@dataclass(frozen=True)
class PaginatedText:
    text: str
    # Length of the text the character window was taken from
    total_length: int
    # Where the next window starts when max_length cut the text short
    next_start: int | None = None

    @property
    def remaining(self) -> int:
        return 0 if self.next_start is None else self.total_length - self.next_start


def section_not_found_notice(section: str) -> str:
    return f'Section "{section}" not found in the content.'


def invalid_range_notice(paragraph_range: str) -> str:
    return f'Paragraph range "{paragraph_range}" is invalid or out of bounds.'


def extract_headings(content: str) -> str:
    """Return only the heading lines of ``content``, one per line."""
    headings = [line for line in content.split("\n") if _HEADING_RE.match(line)]
    if not headings:
        return NO_HEADINGS_NOTICE
    return "\n".join(headings)


def extract_section(content: str, section: str) -> str:
    """Return the first section whose heading contains ``section`` (case-insensitive).

    The section runs up to the next heading of equal or shallower depth.
    Returns an empty string when no heading matches.
    """
    lines = content.split("\n")
    needle = section.lower()

    start_index = -1
    depth = 0
    for i, line in enumerate(lines):
        match = _HEADING_RE.match(line)
        if match and needle in match.group(2).lower():
            start_index = i
            depth = len(match.group(1))
            break

    if start_index == -1:
        return ""

    end_index = len(lines)
    for i in range(start_index + 1, len(lines)):
        match = _HEADING_RE.match(lines[i])
        if match and len(match.group(1)) <= depth:
            end_index = i
            break

    return "\n".join(lines[start_index:end_index])


def extract_paragraph_range(content: str, paragraph_range: str) -> str:
    """Return paragraphs selected by ``"N"``, ``"N-"`` or ``"N-M"`` (1-based, inclusive).

    Paragraphs are non-empty blocks separated by blank lines. Returns an empty
    string for malformed or out-of-range selections.
    """
    paragraphs = [p for p in _PARAGRAPH_SPLIT_RE.split(content) if p.strip()]

    match = _RANGE_RE.match(paragraph_range.strip())
    if not match:
        return ""

    start = int(match.group(1)) - 1
    end_str = match.group(2)

    if start < 0 or start >= len(paragraphs):
        return ""

    if end_str is None:
        return paragraphs[start]
    if end_str == "":
        return "\n\n".join(paragraphs[start:])
    return "\n\n".join(paragraphs[start : int(end_str)])


def apply_character_pagination(
    content: str, start_char: int = 0, max_length: int | None = None
) -> str:
    if start_char >= len(content):
        return ""
    start = max(0, start_char)
    end = min(len(content), start + max_length) if max_length else len(content)
    return content[start:end]


def paginate(content: str, options: PaginationOptions) -> PaginatedText:
    """Apply every requested layer and report where the next window would start."""
    if options.read_headings:
        headings = extract_headings(content)
        return PaginatedText(text=headings, total_length=len(headings))

    result = content

    if options.section:
        result = extract_section(result, options.section)
        if result == "":
            notice = section_not_found_notice(options.section)
            return PaginatedText(text=notice, total_length=len(notice))

    if options.paragraph_range:
        result = extract_paragraph_range(result, options.paragraph_range)
        if result == "":
            notice = invalid_range_notice(options.paragraph_range)
            return PaginatedText(text=notice, total_length=len(notice))

    window = apply_character_pagination(result, options.start_char, options.max_length)

    next_start = None
    if options.max_length:
        end = max(0, options.start_char) + options.max_length
        if end < len(result):
            next_start = end

    return PaginatedText(text=window, total_length=len(result), next_start=next_start)
