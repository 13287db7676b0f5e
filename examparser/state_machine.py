"""
State Machine Parser
====================
Deterministic state machine that turns ordered paragraphs into Questions,
tracking the current section, part, reading passage and question.

All parse state lives in a ParserContext created per call, so a single
StateMachineParser can be shared between threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .classifier import (
    DEFAULT_PART_KEYWORDS,
    DEFAULT_PASSAGE_TITLE_PATTERNS,
    LineClassification,
    LineClassifier,
    LineRole,
)
from .models import Paragraph, Question, QuestionType, SectionInfo
from .options import extract_options

logger = logging.getLogger(__name__)


@dataclass
class ParserContext:
    """Current-position state while walking one document."""
    current_section: Optional[SectionInfo] = None
    current_part: Optional[str] = None
    current_question: Optional[Question] = None
    reading_passage: str = ""
    in_reading_passage: bool = False
    questions: list[Question] = field(default_factory=list)


class StateMachineParser:
    """
    Finite state machine over classified lines.

    Produces questions sorted by number with types resolved and
    highlight-inferred answers filled in.
    """

    def __init__(
        self,
        part_keywords: Iterable[str] = DEFAULT_PART_KEYWORDS,
        passage_title_patterns: Iterable[str] = DEFAULT_PASSAGE_TITLE_PATTERNS,
    ):
        self.classifier = LineClassifier(
            part_keywords=part_keywords,
            passage_title_patterns=passage_title_patterns,
        )

    def parse(self, paragraphs: list[Paragraph]) -> list[Question]:
        """Parse paragraphs into questions."""
        context = ParserContext()

        for paragraph in paragraphs:
            line = paragraph.text.strip()
            if not line:
                continue
            classification = self.classifier.classify(line, context)
            self._apply(context, classification, paragraph)

        # Finalize the last question
        self._finalize_question(context)

        questions = context.questions
        self._infer_answers(questions)

        # Stable: duplicate numbers keep document order
        questions.sort(key=lambda q: q.number)
        return questions

    def _apply(
        self,
        context: ParserContext,
        classification: LineClassification,
        paragraph: Paragraph,
    ) -> None:
        """Update the context for one classified line."""
        role = classification.role

        if role == LineRole.SECTION_HEADER:
            context.current_section = classification.section
            logger.info(
                f"Detected section {classification.section.letter}: "
                f"{classification.section.name}"
            )
            return

        if role == LineRole.PART_HEADER:
            context.current_part = classification.content
            return

        if role == LineRole.PASSAGE_START:
            context.in_reading_passage = True
            context.reading_passage = classification.content + "\n"
            logger.debug(f"Reading passage started: {classification.content!r}")
            return

        if role == LineRole.PASSAGE_LINE:
            context.reading_passage += classification.content + "\n"
            return

        # Anything else past a passage closes it
        context.in_reading_passage = False

        if role == LineRole.QUESTION_START:
            self._start_new_question(context, classification)
            extract_options(paragraph, context.current_question)

        elif role == LineRole.OPTION_LINE:
            extract_options(paragraph, context.current_question)

        elif role == LineRole.ANSWER_LINE:
            self._apply_answer(context.current_question, classification.content)

        elif role == LineRole.CONTINUATION:
            q = context.current_question
            q.text = f"{q.text}\n{classification.content}" if q.text else classification.content

        else:
            logger.debug(f"Ignoring line outside any question: {classification.line!r}")

    def _start_new_question(
        self,
        context: ParserContext,
        classification: LineClassification,
    ) -> None:
        """Finalize previous and start fresh question."""
        self._finalize_question(context)

        q_num = classification.question_number
        logger.info(f"Detected Question {q_num}")

        context.current_question = Question(
            number=q_num,
            text=classification.content,
            section=context.current_section,
            part=context.current_part,
            passage=context.reading_passage or None,
        )

    def _apply_answer(self, question: Question, value: str) -> None:
        """
        Handle an explicit 'Đáp án:' line.

        Only free-response items carry printed answers; on a question that
        already has its options the value is kept as a fallback for when
        nothing is highlighted.
        """
        if value:
            question.correct_answer = value
        if question.type != QuestionType.MULTIPLE_CHOICE:
            question.type = QuestionType.WRITING

    def _finalize_question(self, context: ParserContext) -> None:
        """Resolve the current question's type and store it."""
        q = context.current_question
        if q is None:
            return

        if q.type == QuestionType.UNKNOWN:
            q.type = (
                QuestionType.MULTIPLE_CHOICE
                if len(q.options) >= 2
                else QuestionType.WRITING
            )

        context.questions.append(q)
        context.current_question = None

    def _infer_answers(self, questions: list[Question]) -> None:
        """Take each multiple-choice answer from its highlighted option."""
        for q in questions:
            if q.type != QuestionType.MULTIPLE_CHOICE:
                continue
            correct = next((opt for opt in q.options if opt.is_correct), None)
            if correct is not None:
                q.correct_answer = correct.letter
            elif q.correct_answer is None:
                logger.warning(f"Q{q.number}: no highlighted option found")


def build_answer_key(questions: list[Question]) -> dict[int, str]:
    """Map question number to correct answer for every answered question."""
    return {
        q.number: q.correct_answer
        for q in questions
        if q.correct_answer is not None
    }
