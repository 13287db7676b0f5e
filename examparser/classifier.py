"""
Line Classifier
===============
Assigns each trimmed paragraph line a structural role.

Matchers are evaluated in a fixed priority order and the first one that
accepts the line wins. The result is a LineClassification tagged with a
LineRole, carrying whatever the matcher parsed out of the line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .models import SectionInfo

if TYPE_CHECKING:
    from .state_machine import ParserContext


# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# "SECTION A. GRAMMAR: 2.0 POINTS"
SECTION_PATTERN = re.compile(
    r"SECTION\s+([A-Z])\.\s*([^:]+):\s*(.*?POINTS?)", re.IGNORECASE
)

# "I. Circle the word ...", "IV. Read the passage ..."
PART_PATTERN = re.compile(r"^([IVX]+)\.\s*(.+)", re.IGNORECASE)

# "Câu 12. ...", "Câu 3: ..."
QUESTION_PATTERN = re.compile(r"^Câu\s*(\d+)[.\s:]+(.*)$", re.IGNORECASE)

# Any line opening with "Câu <n>", used to end a reading passage
QUESTION_PREFIX_PATTERN = re.compile(r"^Câu\s*\d+", re.IGNORECASE)

# Option line opening with "A." / "B)" ...
OPTION_LINE_PATTERN = re.compile(r"^\s*[A-D][.)]")

# "Đáp án: <value>"
ANSWER_PATTERN = re.compile(r"Đáp án:\s*(.+)", re.IGNORECASE)

DEFAULT_PART_KEYWORDS = ("circle", "read", "complete", "rewrite", "put")

# Titles of the reading passages in the current exam template
DEFAULT_PASSAGE_TITLE_PATTERNS = (
    r"^(A surprising gift|Stewart the Dragon)",
)


class LineRole(Enum):
    """Structural role of a single line."""
    SECTION_HEADER = "section_header"
    PART_HEADER = "part_header"
    PASSAGE_START = "passage_start"
    PASSAGE_LINE = "passage_line"
    QUESTION_START = "question_start"
    OPTION_LINE = "option_line"
    ANSWER_LINE = "answer_line"
    CONTINUATION = "continuation"
    IGNORED = "ignored"


@dataclass(frozen=True)
class LineClassification:
    role: LineRole
    line: str
    section: Optional[SectionInfo] = None
    question_number: Optional[int] = None
    content: str = ""


Matcher = Callable[[str, "ParserContext"], Optional[LineClassification]]


class LineClassifier:
    """
    Ordered set of matcher predicates over a single trimmed line.

    Priority: section, part, passage start, passage continuation,
    question start, option line, answer line, continuation.
    """

    def __init__(
        self,
        part_keywords: Iterable[str] = DEFAULT_PART_KEYWORDS,
        passage_title_patterns: Iterable[str] = DEFAULT_PASSAGE_TITLE_PATTERNS,
    ):
        self.part_keywords = tuple(k.lower() for k in part_keywords)
        self.passage_patterns = [
            re.compile(p, re.IGNORECASE) for p in passage_title_patterns
        ]
        self.matchers: tuple[Matcher, ...] = (
            self._match_section,
            self._match_part,
            self._match_passage_start,
            self._match_passage_line,
            self._match_question,
            self._match_option,
            self._match_answer,
            self._match_continuation,
        )

    def classify(self, line: str, context: ParserContext) -> LineClassification:
        for matcher in self.matchers:
            result = matcher(line, context)
            if result is not None:
                return result
        return LineClassification(LineRole.IGNORED, line)

    # ─── Matchers ─────────────────────────────────────────────────────────

    def _match_section(self, line, context):
        m = SECTION_PATTERN.search(line)
        if not m:
            return None
        return LineClassification(
            LineRole.SECTION_HEADER,
            line,
            section=SectionInfo(
                letter=m.group(1),
                name=m.group(2).strip(),
                points=m.group(3),
            ),
        )

    def _match_part(self, line, context):
        if not PART_PATTERN.match(line):
            return None
        lowered = line.lower()
        if not any(k in lowered for k in self.part_keywords):
            return None
        return LineClassification(LineRole.PART_HEADER, line, content=line)

    def _match_passage_start(self, line, context):
        if not any(p.match(line) for p in self.passage_patterns):
            return None
        return LineClassification(LineRole.PASSAGE_START, line, content=line)

    def _match_passage_line(self, line, context):
        if not context.in_reading_passage or QUESTION_PREFIX_PATTERN.match(line):
            return None
        return LineClassification(LineRole.PASSAGE_LINE, line, content=line)

    def _match_question(self, line, context):
        m = QUESTION_PATTERN.match(line)
        if not m:
            return None
        return LineClassification(
            LineRole.QUESTION_START,
            line,
            question_number=int(m.group(1)),
            content=m.group(2).strip(),
        )

    def _match_option(self, line, context):
        if context.current_question is None or not OPTION_LINE_PATTERN.match(line):
            return None
        return LineClassification(LineRole.OPTION_LINE, line)

    def _match_answer(self, line, context):
        if context.current_question is None:
            return None
        m = ANSWER_PATTERN.search(line)
        if not m:
            return None
        return LineClassification(
            LineRole.ANSWER_LINE, line, content=m.group(1).strip()
        )

    def _match_continuation(self, line, context):
        if context.current_question is None:
            return None
        return LineClassification(LineRole.CONTINUATION, line, content=line)
