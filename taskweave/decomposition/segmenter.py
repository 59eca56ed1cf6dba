"""
Document segmenter - splits a PRD into titled sections.

Two boundary mechanisms are recognized, in priority order:

1. Marker comments::

       <!-- TASK-SECTION: Authentication START -->
       ...
       <!-- TASK-SECTION: Authentication END -->

   A marked section is never subdivided; headers inside it are content.

2. Markdown headers of level 1 or 2 accepted by the header predicate.
   Rejected headers and level-3 headers are folded into the open section.

Text before the first section becomes the "Project Overview" section,
always returned first.
"""

import re
from typing import Protocol

from loguru import logger

from taskweave.decomposition.models import Section

OVERVIEW_TITLE = "Project Overview"

MARKER_START_PATTERN = re.compile(r"<!-- TASK-SECTION:\s*(.+?)\s*START -->")
MARKER_TAG = "<!-- TASK-SECTION:"
MARKER_END_SUFFIX = "END -->"
HEADER_PATTERN = re.compile(r"^(#{1,3})\s+(.+)$")

CODE_LIKE_PREFIXES = ("!", "/")
CODE_LIKE_SUBSTRINGS = (".py", ".sh", ".yml", ".json")
SETUP_STEP_PATTERN = re.compile(
    r"^(Install|Setup|Enable|Run|Start|Make|Build|Clone)\s", re.IGNORECASE
)


class HeaderPredicate(Protocol):
    """Decides whether a level 1-2 header opens a new section."""

    def __call__(self, title: str, level: int) -> bool: ...


class DefaultHeaderPredicate:
    """
    Reject headers that annotate code samples or setup steps.

    Titles that start with ``!`` or ``/``, mention a script/config file
    extension, or begin with an imperative setup verb do not open sections.

    Example:
        >>> predicate = DefaultHeaderPredicate()
        >>> predicate("Authentication", 2)
        True
        >>> predicate("Install dependencies", 2)
        False
    """

    def __init__(
        self,
        prefixes: tuple[str, ...] = CODE_LIKE_PREFIXES,
        substrings: tuple[str, ...] = CODE_LIKE_SUBSTRINGS,
        step_pattern: re.Pattern[str] | None = SETUP_STEP_PATTERN,
    ) -> None:
        self.prefixes = prefixes
        self.substrings = substrings
        self.step_pattern = step_pattern

    def __call__(self, title: str, level: int) -> bool:
        if level > 2:
            return False
        if title.startswith(self.prefixes):
            return False
        if any(s in title for s in self.substrings):
            return False
        if self.step_pattern is not None and self.step_pattern.match(title):
            return False
        return True


class _OpenSection:
    """Mutable accumulator for the section being scanned."""

    def __init__(self, title: str, level: int, is_marked: bool) -> None:
        self.title = title
        self.level = level
        self.is_marked = is_marked
        self.lines: list[str] = []

    def add(self, line: str) -> None:
        self.lines.append(line)

    def freeze(self) -> Section:
        return Section(
            title=self.title,
            level=self.level,
            content="".join(f"{line}\n" for line in self.lines),
            line_count=len(self.lines),
            is_marked=self.is_marked,
        )


class DocumentSegmenter:
    """
    Split PRD text into sections.

    Attributes:
        header_predicate: Decides which level 1-2 headers open sections.

    Example:
        >>> sections = DocumentSegmenter().segment("Intro\\n# Auth\\nLogin flow")
        >>> [s.title for s in sections]
        ['Project Overview', 'Auth']
    """

    def __init__(self, header_predicate: HeaderPredicate | None = None) -> None:
        self.header_predicate = header_predicate or DefaultHeaderPredicate()

    def segment(self, text: str) -> list[Section]:
        """
        Segment a document.

        Args:
            text: Raw document text.

        Returns:
            Sections in document order, with the overview (if any) first.
        """
        sections: list[Section] = []
        current: _OpenSection | None = None
        overview_lines: list[str] = []
        in_overview = True
        dropped = 0

        for line in text.split("\n"):
            if MARKER_TAG in line:
                start = MARKER_START_PATTERN.search(line)
                if start:
                    if current:
                        sections.append(current.freeze())
                    current = _OpenSection(start.group(1), level=0, is_marked=True)
                    in_overview = False
                    continue
                if MARKER_END_SUFFIX in line:
                    if current:
                        sections.append(current.freeze())
                        current = None
                    continue

            header = HEADER_PATTERN.match(line)
            if header and not (current and current.is_marked):
                level = len(header.group(1))
                title = header.group(2).strip()
                if level <= 2 and self.header_predicate(title, level):
                    if current:
                        sections.append(current.freeze())
                    current = _OpenSection(title, level=level, is_marked=False)
                    current.add(line)
                    in_overview = False
                    continue

            if current:
                current.add(line)
            elif in_overview:
                overview_lines.append(line)
            elif line.strip():
                dropped += 1

        if current:
            sections.append(current.freeze())

        if dropped:
            logger.debug(f"Ignored {dropped} line(s) outside any section after an END marker")

        overview = "".join(f"{line}\n" for line in overview_lines)
        if overview.strip():
            sections.insert(
                0,
                Section(
                    title=OVERVIEW_TITLE,
                    level=0,
                    content=overview,
                    line_count=len(overview.split("\n")),
                    is_overview=True,
                ),
            )

        return sections
