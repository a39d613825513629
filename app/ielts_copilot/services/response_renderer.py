"""
Line-local rendering of the examiner's markdown response.

The model is asked for a small, fixed markdown subset. Each line is classified
on its prefix alone; nothing here raises on unexpected input, unknown shapes
simply become paragraphs.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Union

SECTION_SEPARATOR = '---'
_SEPARATOR_LINE = re.compile(r'^[ \t\r]*---[ \t\r]*$', re.MULTILINE)

ANALYSIS_HEADING = 'IELTS Writing Analysis'
EXAMPLES_HEADING = 'Example Responses by Band Level'
BAND_LEVELS = (6, 7, 8, 9)


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    kind: str = 'heading'


@dataclass(frozen=True)
class Emphasis:
    text: str
    kind: str = 'emphasis'


@dataclass(frozen=True)
class ListItem:
    text: str
    kind: str = 'list_item'


@dataclass(frozen=True)
class Blank:
    kind: str = 'blank'


@dataclass(frozen=True)
class Paragraph:
    text: str
    kind: str = 'paragraph'


RenderToken = Union[Heading, Emphasis, ListItem, Blank, Paragraph]


def token_to_dict(token: RenderToken) -> Dict[str, Any]:
    return asdict(token)


def classify_line(line: str) -> RenderToken:
    if line.startswith('### '):
        return Heading(3, line[4:])
    if line.startswith('#### '):
        return Heading(4, line[5:])
    if line.startswith('**'):
        return Emphasis(line.replace('**', ''))
    if line.startswith('- '):
        return ListItem(line[2:])
    if not line.strip():
        return Blank()
    return Paragraph(line)


@dataclass(frozen=True)
class Section:
    """One block of the response between separator lines."""

    text: str

    def __iter__(self) -> Iterator[RenderToken]:
        return self.tokens()

    def tokens(self) -> Iterator[RenderToken]:
        """Lazily classify each line; every call starts a fresh pass."""
        for line in self.text.split('\n'):
            yield classify_line(line.rstrip('\r'))

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [token_to_dict(token) for token in self.tokens()]


def split_sections(text: str) -> List[Section]:
    """Split on lines holding only '---'; text without separators is a single section."""
    return [Section(chunk) for chunk in _SEPARATOR_LINE.split(text or '')]


def render_response(text: str) -> List[Section]:
    return split_sections(text)


def render_response_dicts(text: str) -> List[List[Dict[str, Any]]]:
    return [section.to_dicts() for section in split_sections(text)]


def _heading_texts(text: str) -> List[str]:
    headings = []
    for section in split_sections(text):
        for token in section:
            if isinstance(token, Heading):
                headings.append(token.text)
    return headings


def contract_satisfied(text: str, essay_provided: bool) -> bool:
    """
    Check that the response has the headings the examiner instruction asks for.

    With an essay the analysis heading must be present; without one it must be
    absent. The examples heading and one heading per band level are always
    required. Decorations such as emoji around heading text are ignored.
    """
    headings = _heading_texts(text)

    has_analysis = any(ANALYSIS_HEADING in heading for heading in headings)
    if has_analysis != essay_provided:
        return False
    if not any(EXAMPLES_HEADING in heading for heading in headings):
        return False
    for band in BAND_LEVELS:
        if not any(re.search(rf'\bBand {band}\b', heading) for heading in headings):
            return False
    return True
