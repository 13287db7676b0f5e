"""
Section Grouper
===============
Buckets finalized questions into display sections keyed by their
section header, preserving the order in which sections first appear.
"""

from __future__ import annotations

from .models import ExamSection, Question

DEFAULT_SECTION_NAME = "Tất cả câu hỏi"
DEFAULT_SECTION_KEY = "default"


def section_key(question: Question) -> str:
    if question.section is None:
        return DEFAULT_SECTION_KEY
    return f"{question.section.letter}-{question.section.name}"


def group_sections(
    questions: list[Question],
    default_name: str = DEFAULT_SECTION_NAME,
) -> list[ExamSection]:
    """Group questions into sections; the first question of each supplies its metadata."""
    buckets: dict[str, list[Question]] = {}
    for q in questions:
        buckets.setdefault(section_key(q), []).append(q)

    sections: list[ExamSection] = []
    for grouped in buckets.values():
        first = grouped[0]
        if first.section is not None:
            name = f"SECTION {first.section.letter}. {first.section.name}"
            points = first.section.points
        else:
            name = default_name
            points = ""

        sections.append(ExamSection(
            name=name,
            description=first.part or "",
            points=points,
            questions=grouped,
            reading_passage=first.passage,
        ))
    return sections
