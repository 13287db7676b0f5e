"""
Option Extractor
================
Splits a paragraph into lettered options (A-D), infers the correct option
from highlighting, and renders each option's underline/bold formatting.

All spans are half-open intervals [start, end) in the paragraph's offset
space, shared with the runs produced by the run extractor.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass

from .models import Paragraph, Question, QuestionOption, QuestionType, Run

logger = logging.getLogger(__name__)

# "A." "B)" ... markers; trailing whitespace belongs to the marker
OPTION_MARKER_PATTERN = re.compile(r"([A-D])[.)]\s*")

WHITESPACE_PATTERN = re.compile(r"\s+")

UNDERLINE_CLASS = "underlined-part"


@dataclass(frozen=True)
class OptionMarker:
    letter: str
    start: int
    content_start: int


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True if half-open intervals [a_start, a_end) and [b_start, b_end) intersect."""
    return max(a_start, b_start) < min(a_end, b_end)


def normalize_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def find_option_markers(text: str) -> list[OptionMarker]:
    return [
        OptionMarker(letter=m.group(1), start=m.start(), content_start=m.end())
        for m in OPTION_MARKER_PATTERN.finditer(text)
    ]


def is_span_highlighted(runs: list[Run], start: int, end: int) -> bool:
    """True if any highlighted run overlaps [start, end)."""
    return any(
        run.highlighted and overlaps(run.start, run.end, start, end)
        for run in runs
    )


def _wrap(text: str, underlined: bool, bold: bool) -> str:
    if underlined and bold:
        return f'<span class="{UNDERLINE_CLASS}"><strong>{text}</strong></span>'
    if underlined:
        return f'<span class="{UNDERLINE_CLASS}">{text}</span>'
    if bold:
        return f"<strong>{text}</strong>"
    return text


def build_formatted_text(runs: list[Run], start: int, end: int) -> str:
    """
    Render [start, end) with underline/bold markup.

    Text is HTML-escaped before wrapping, so the output is safe to insert
    into a page as-is. Whitespace is collapsed across run boundaries and
    trimmed, so the visible text equals normalize_whitespace() of the range.
    """
    pieces: list[tuple[str, Run]] = []
    for run in runs:
        if not overlaps(run.start, run.end, start, end):
            continue
        portion = run.text[max(run.start, start) - run.start:min(run.end, end) - run.start]
        portion = WHITESPACE_PATTERN.sub(" ", portion)
        if portion.startswith(" ") and (not pieces or pieces[-1][0].endswith(" ")):
            portion = portion[1:]
        if portion:
            pieces.append((portion, run))

    while pieces and pieces[-1][0].endswith(" "):
        text, run = pieces.pop()
        if text.rstrip():
            pieces.append((text.rstrip(), run))
            break

    return "".join(
        _wrap(html.escape(text, quote=False), run.underlined, run.bold)
        for text, run in pieces
    )


def extract_options(paragraph: Paragraph, question: Question) -> int:
    """
    Add the options found in `paragraph` to `question`.

    Options whose letter is already present, or whose text is empty, are
    skipped, so re-scanning a line never duplicates an option.

    Returns:
        Number of options added.
    """
    text = paragraph.text
    markers = find_option_markers(text)
    if not markers:
        return 0

    existing = question.option_letters()
    added = 0

    for i, marker in enumerate(markers):
        next_start = markers[i + 1].start if i + 1 < len(markers) else len(text)

        option_text = normalize_whitespace(text[marker.content_start:next_start])
        if marker.letter in existing or not option_text:
            continue

        # The marker itself counts: a highlighted "B." marks B as correct
        is_correct = is_span_highlighted(paragraph.runs, marker.start, next_start)

        question.options.append(QuestionOption(
            letter=marker.letter,
            text=option_text,
            text_with_formatting=build_formatted_text(
                paragraph.runs, marker.content_start, next_start
            ),
            is_correct=is_correct,
        ))
        existing.add(marker.letter)
        added += 1

        if is_correct:
            logger.debug(
                f"Q{question.number}: option {marker.letter} is highlighted"
            )

    if len(question.options) >= 2 and question.type != QuestionType.WRITING:
        question.type = QuestionType.MULTIPLE_CHOICE

    question.options.sort(key=lambda opt: opt.letter)
    return added
