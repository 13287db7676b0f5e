"""
Validation Engine
=================
Post-parse validation and reporting.

Checks a completed ExamData for structural shortfalls:
    - No questions at all
    - Questions with neither text nor options
    - Multiple-choice questions without options
    - Questions with no resolved correct answer
    - Duplicate or non-positive question numbers

Problems are reported, never raised; the caller decides whether to
accept the exam, reject it, or ask for manual correction.
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import ExamData, QuestionType, ValidationReport

logger = logging.getLogger(__name__)


class ValidationEngine:
    """
    Validates a parsed exam and produces a report. Never mutates its input.
    """

    def validate(self, exam: ExamData) -> ValidationReport:
        """
        Run full validation on a parsed exam.

        Args:
            exam: The exam to check.

        Returns:
            ValidationReport listing every problem found.
        """
        report = ValidationReport()
        questions = exam.questions

        if not questions:
            logger.warning("No questions to validate")
            report.problems.append("No questions found in document")
            return report

        report.total_questions = len(questions)

        number_counts = Counter(q.number for q in questions)
        report.duplicate_question_numbers = sorted(
            num for num, count in number_counts.items() if count > 1
        )

        # Gaps are informational only
        expected = set(range(min(number_counts), max(number_counts) + 1))
        report.missing_question_numbers = sorted(expected - set(number_counts))

        for q in questions:
            if q.type == QuestionType.MULTIPLE_CHOICE:
                report.multiple_choice_count += 1
            elif q.type == QuestionType.WRITING:
                report.writing_count += 1

            if q.number < 1:
                report.problems.append(f"Question {q.number}: number must be positive")

            if not q.text.strip() and not q.options:
                report.problems.append(f"Question {q.number}: missing question text")

            if q.type == QuestionType.MULTIPLE_CHOICE and not q.options:
                report.problems.append(f"Question {q.number}: multiple-choice question has no options")

            if not q.correct_answer:
                report.questions_missing_answer.append(q.number)
                report.problems.append(
                    f"Question {q.number}: no correct answer marked (highlight the answer)"
                )

        for num in report.duplicate_question_numbers:
            report.problems.append(
                f"Question {num}: number appears {number_counts[num]} times"
            )

        # Log summary
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Total Questions: {report.total_questions}")
        logger.info(
            f"Multiple Choice / Writing: "
            f"{report.multiple_choice_count} / {report.writing_count}"
        )
        logger.info(
            f"Questions Missing Answer: {len(report.questions_missing_answer)}"
        )
        logger.info(
            f"Duplicate Question Numbers: {len(report.duplicate_question_numbers)}"
        )
        logger.info(
            f"Missing Question Numbers: {len(report.missing_question_numbers)}"
        )
        if report.problems:
            logger.info(f"Problems ({len(report.problems)}):")
            for problem in report.problems:
                logger.info(f"  • {problem}")
        logger.info("=" * 60)

        return report
