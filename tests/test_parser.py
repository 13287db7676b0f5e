"""
Test Suite for the Exam Parser Core
===================================
Unit tests for models, line classification, option extraction,
the state machine, section grouping and validation.
"""

from __future__ import annotations

import html
import re

import pytest
from pydantic import ValidationError

from examparser.classifier import (
    ANSWER_PATTERN,
    OPTION_LINE_PATTERN,
    PART_PATTERN,
    QUESTION_PATTERN,
    SECTION_PATTERN,
    LineClassifier,
    LineRole,
)
from examparser.grouping import DEFAULT_SECTION_NAME, group_sections
from examparser.models import (
    ExamData,
    Paragraph,
    Question,
    QuestionOption,
    QuestionType,
    Run,
    SectionInfo,
)
from examparser.options import (
    build_formatted_text,
    extract_options,
    find_option_markers,
    normalize_whitespace,
    overlaps,
)
from examparser.run_extractor import build_paragraph
from examparser.state_machine import (
    ParserContext,
    StateMachineParser,
    build_answer_key,
)
from examparser.validator import ValidationEngine


def _para(text: str) -> Paragraph:
    return build_paragraph([(text, False, False, False)])


def _seg(text, highlighted=False, underlined=False, bold=False):
    return (text, highlighted, underlined, bold)


def _strip_markup(rendered: str) -> str:
    return html.unescape(re.sub(r"<[^>]+>", "", rendered))


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestRunAndParagraph:
    """Test Run / Paragraph offset invariants."""

    def test_build_paragraph_assigns_offsets(self):
        p = build_paragraph([_seg("Hello "), _seg(""), _seg("world", bold=True)])
        assert p.text == "Hello world"
        assert [(r.start, r.end) for r in p.runs] == [(0, 6), (6, 11)]
        assert p.runs[1].bold is True

    def test_run_span_must_match_text(self):
        with pytest.raises(ValidationError):
            Run(text="abc", start=0, end=5)

    def test_overlapping_runs_rejected(self):
        with pytest.raises(ValidationError):
            Paragraph(
                text="abcdef",
                runs=[
                    Run(text="abcd", start=0, end=4),
                    Run(text="cdef", start=2, end=6),
                ],
            )

    def test_gaps_between_runs_allowed(self):
        p = Paragraph(
            text="ab  cd",
            runs=[
                Run(text="ab", start=0, end=2),
                Run(text="cd", start=4, end=6),
            ],
        )
        assert len(p.runs) == 2


class TestQuestionModel:
    """Test Question model defaults."""

    def test_defaults(self):
        q = Question(number=1)
        assert q.type == QuestionType.UNKNOWN
        assert q.options == []
        assert q.correct_answer is None
        assert q.has_text is False

    def test_non_positive_number_is_kept_for_validation(self):
        q = Question(number=0, text="Warm-up item")
        assert q.number == 0

    def test_serialization_uses_wire_values(self):
        q = Question(number=3, text="x", type=QuestionType.MULTIPLE_CHOICE)
        data = q.model_dump(mode="json")
        assert data["type"] == "multiple_choice"
        assert data["has_text"] is True


# ═══════════════════════════════════════════════════════════════════════════════
# REGEX PATTERN TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAnchorPatterns:
    """Test regex patterns for structural anchors."""

    def test_section_pattern(self):
        m = SECTION_PATTERN.search("SECTION A. GRAMMAR: 2.0 POINTS")
        assert m.groups() == ("A", "GRAMMAR", "2.0 POINTS")

        m = SECTION_PATTERN.search("Section b. Reading comprehension: 1.5 point")
        assert m.group(1) == "b"
        assert m.group(3) == "1.5 point"

        assert not SECTION_PATTERN.search("SECTION A GRAMMAR 2.0 POINTS")

    def test_question_patterns(self):
        # Should match
        assert QUESTION_PATTERN.match("Câu 1. Choose the best answer.")
        assert QUESTION_PATTERN.match("câu 12: Fill in the blank")
        assert QUESTION_PATTERN.match("Câu 3 No punctuation")
        assert QUESTION_PATTERN.match("Câu 4.").group(2) == ""

        # Should NOT match
        assert not QUESTION_PATTERN.match("Câu 5")
        assert not QUESTION_PATTERN.match("Question 1. Hello")
        assert not QUESTION_PATTERN.match("Xem Câu 1. ở trên")

    def test_part_pattern(self):
        assert PART_PATTERN.match("IV. Read the passage")
        assert PART_PATTERN.match("II.Complete the sentences")
        assert not PART_PATTERN.match("A. Read the passage")

    def test_option_line_pattern(self):
        assert OPTION_LINE_PATTERN.match("A. cat")
        assert OPTION_LINE_PATTERN.match("  B) dog")
        assert not OPTION_LINE_PATTERN.match("E. elephant")
        assert not OPTION_LINE_PATTERN.match("a. lowercase")

    def test_answer_pattern(self):
        assert ANSWER_PATTERN.search("Đáp án: B").group(1) == "B"
        assert ANSWER_PATTERN.search("đáp án:   He has been here").group(1) == "He has been here"
        assert not ANSWER_PATTERN.search("Đáp án B")


# ═══════════════════════════════════════════════════════════════════════════════
# LINE CLASSIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestLineClassifier:
    """Test the priority-ordered line classifier."""

    def setup_method(self):
        self.classifier = LineClassifier()

    def _context(self, with_question=False, in_passage=False) -> ParserContext:
        ctx = ParserContext(in_reading_passage=in_passage)
        if with_question:
            ctx.current_question = Question(number=1)
        return ctx

    def test_section_header(self):
        result = self.classifier.classify(
            "SECTION A. GRAMMAR: 2.0 POINTS", self._context()
        )
        assert result.role == LineRole.SECTION_HEADER
        assert result.section == SectionInfo(
            letter="A", name="GRAMMAR", points="2.0 POINTS"
        )

    def test_part_header_requires_keyword(self):
        ctx = self._context()
        assert self.classifier.classify(
            "II. Put the verbs in brackets into the correct form.", ctx
        ).role == LineRole.PART_HEADER
        assert self.classifier.classify(
            "II. Vocabulary", ctx
        ).role == LineRole.IGNORED

    def test_roman_line_without_keyword_is_continuation(self):
        result = self.classifier.classify(
            "II. Vocabulary", self._context(with_question=True)
        )
        assert result.role == LineRole.CONTINUATION

    def test_passage_start(self):
        result = self.classifier.classify(
            "Stewart the Dragon", self._context(with_question=True)
        )
        assert result.role == LineRole.PASSAGE_START

    def test_passage_line_only_inside_passage(self):
        line = "Stewart lived in a cave near the village."
        assert self.classifier.classify(
            line, self._context(in_passage=True)
        ).role == LineRole.PASSAGE_LINE
        assert self.classifier.classify(
            line, self._context()
        ).role == LineRole.IGNORED

    def test_question_line_ends_passage(self):
        result = self.classifier.classify(
            "Câu 7. Where did Stewart live?", self._context(in_passage=True)
        )
        assert result.role == LineRole.QUESTION_START
        assert result.question_number == 7
        assert result.content == "Where did Stewart live?"

    def test_option_line_needs_question(self):
        assert self.classifier.classify(
            "A. cat B. dog", self._context(with_question=True)
        ).role == LineRole.OPTION_LINE
        assert self.classifier.classify(
            "A. cat B. dog", self._context()
        ).role == LineRole.IGNORED

    def test_answer_line(self):
        result = self.classifier.classify(
            "Đáp án: She has lived here since 2010.",
            self._context(with_question=True),
        )
        assert result.role == LineRole.ANSWER_LINE
        assert result.content == "She has lived here since 2010."

    def test_custom_passage_titles(self):
        classifier = LineClassifier(passage_title_patterns=[r"^Passage \d+"])
        assert classifier.classify(
            "Passage 2", self._context()
        ).role == LineRole.PASSAGE_START
        assert classifier.classify(
            "A surprising gift", self._context()
        ).role == LineRole.IGNORED


# ═══════════════════════════════════════════════════════════════════════════════
# OPTION EXTRACTOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestOptionExtractor:
    """Test option splitting, highlight inference and formatting."""

    def test_overlaps_is_half_open(self):
        assert overlaps(0, 5, 4, 10)
        assert not overlaps(0, 5, 5, 10)
        assert not overlaps(5, 10, 0, 5)
        assert not overlaps(3, 3, 0, 10)

    def test_find_markers(self):
        markers = find_option_markers("A. cat B) dog")
        assert [(m.letter, m.start, m.content_start) for m in markers] == [
            ("A", 0, 3),
            ("B", 7, 10),
        ]

    def test_inline_options_with_tabs(self):
        q = Question(number=1)
        added = extract_options(_para("A. apple\tB. banana\tC. cherry\tD. grape"), q)
        assert added == 4
        assert [(o.letter, o.text) for o in q.options] == [
            ("A", "apple"),
            ("B", "banana"),
            ("C", "cherry"),
            ("D", "grape"),
        ]
        assert q.type == QuestionType.MULTIPLE_CHOICE

    def test_highlighted_marker_marks_option_correct(self):
        p = build_paragraph([
            _seg("A. cat "),
            _seg("B.", highlighted=True),
            _seg(" dog"),
        ])
        q = Question(number=1)
        extract_options(p, q)
        assert [o.is_correct for o in q.options] == [False, True]

    def test_highlight_on_boundary_does_not_leak(self):
        # Highlight starts exactly where option B's span starts
        p = build_paragraph([
            _seg("A. first "),
            _seg("B. second", highlighted=True),
        ])
        q = Question(number=1)
        extract_options(p, q)
        assert q.options[0].is_correct is False
        assert q.options[1].is_correct is True

    def test_rescan_is_idempotent(self):
        p = _para("A. cat B. dog")
        q = Question(number=1)
        assert extract_options(p, q) == 2
        assert extract_options(p, q) == 0
        assert [o.letter for o in q.options] == ["A", "B"]

    def test_empty_option_skipped(self):
        q = Question(number=1)
        extract_options(_para("A.   B. dog"), q)
        assert [o.letter for o in q.options] == ["B"]
        # One option is not enough for multiple choice
        assert q.type == QuestionType.UNKNOWN

    def test_options_sorted_across_lines(self):
        q = Question(number=1)
        extract_options(_para("C. three D. four"), q)
        extract_options(_para("A. one B. two"), q)
        assert [o.letter for o in q.options] == ["A", "B", "C", "D"]

    def test_writing_type_not_upgraded(self):
        q = Question(number=1, type=QuestionType.WRITING)
        extract_options(_para("A. cat B. dog"), q)
        assert len(q.options) == 2
        assert q.type == QuestionType.WRITING

    def test_formatted_text_wrappers(self):
        p = build_paragraph([
            _seg("A. "),
            _seg("th", underlined=True),
            _seg("ink"),
        ])
        q = Question(number=1)
        extract_options(p, q)
        assert q.options[0].text == "think"
        assert q.options[0].text_with_formatting == (
            '<span class="underlined-part">th</span>ink'
        )

    def test_formatted_text_escapes_and_combines(self):
        p = build_paragraph([
            _seg("A. "),
            _seg("x < y", underlined=True),
            _seg(" & ", bold=True),
            _seg("z", underlined=True, bold=True),
        ])
        rendered = build_formatted_text(p.runs, 3, len(p.text))
        assert rendered == (
            '<span class="underlined-part">x &lt; y</span>'
            "<strong> &amp; </strong>"
            '<span class="underlined-part"><strong>z</strong></span>'
        )

    def test_formatted_text_visible_text_matches_plain(self):
        p = build_paragraph([
            _seg("Câu 2. "),
            _seg("A. w", bold=True),
            _seg("a", underlined=True),
            _seg("ter  <b>\t"),
            _seg("B. ", highlighted=True),
            _seg("fire & ice", underlined=True, bold=True),
        ])
        for start, end in [(7, len(p.text)), (10, 20), (0, 9), (12, 13)]:
            rendered = build_formatted_text(p.runs, start, end)
            assert _strip_markup(rendered) == normalize_whitespace(p.text[start:end])


# ═══════════════════════════════════════════════════════════════════════════════
# STATE MACHINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStateMachineParser:
    """Test the state machine parser."""

    def _parse(self, *paragraphs) -> list[Question]:
        paras = [p if isinstance(p, Paragraph) else _para(p) for p in paragraphs]
        return StateMachineParser().parse(paras)

    def test_highlighted_answer_scenario(self):
        questions = self._parse(
            "SECTION A. GRAMMAR: 2.0 POINTS",
            build_paragraph([
                _seg("Câu 1. Choose the best answer. A. cat "),
                _seg("B.", highlighted=True),
                _seg(" dog"),
            ]),
            "Đáp án: ...",
        )

        assert len(questions) == 1
        q = questions[0]
        assert q.number == 1
        assert q.type == QuestionType.MULTIPLE_CHOICE
        assert [(o.letter, o.text) for o in q.options] == [("A", "cat"), ("B", "dog")]
        assert q.correct_answer == "B"
        assert q.section.letter == "A"
        assert build_answer_key(questions) == {1: "B"}

    def test_question_without_options_is_writing(self):
        questions = self._parse(
            "Câu 5. I wish I ___ taller.",
            "Câu 6. If I were you, I ___ harder.",
        )
        q5 = questions[0]
        assert q5.number == 5
        assert q5.options == []
        assert q5.type == QuestionType.WRITING

    def test_options_on_separate_lines(self):
        questions = self._parse(
            "Câu 2. Choose the word that has a different stress pattern.",
            "A. happy\tB. begin",
            build_paragraph([
                _seg("C. "),
                _seg("open", highlighted=True),
                _seg("\tD. river"),
            ]),
        )
        q = questions[0]
        assert [o.letter for o in q.options] == ["A", "B", "C", "D"]
        assert q.correct_answer == "C"
        assert q.text == "Choose the word that has a different stress pattern."

    def test_continuation_and_explicit_answer(self):
        questions = self._parse(
            "Câu 9. Rewrite the sentence without changing its meaning.",
            "→ Last night, there ...",
            "Đáp án: Last night, there was a party.",
        )
        q = questions[0]
        assert q.text == (
            "Rewrite the sentence without changing its meaning.\n"
            "→ Last night, there ..."
        )
        assert q.type == QuestionType.WRITING
        assert q.correct_answer == "Last night, there was a party."
        assert build_answer_key(questions) == {9: "Last night, there was a party."}

    def test_explicit_answer_is_fallback_for_unhighlighted_mcq(self):
        questions = self._parse(
            "Câu 1. Pick one. A. red B. blue C. green",
            "Đáp án: C",
        )
        q = questions[0]
        assert q.type == QuestionType.MULTIPLE_CHOICE
        assert q.correct_answer == "C"

    def test_mcq_without_highlight_has_no_answer(self):
        questions = self._parse("Câu 1. Pick one. A. red B. blue")
        assert questions[0].correct_answer is None
        assert build_answer_key(questions) == {}

    def test_answer_line_before_options_keeps_writing(self):
        questions = self._parse(
            "Câu 4. Write the word.",
            "Đáp án: apple",
            "A. apple B. pear",
        )
        q = questions[0]
        assert q.type == QuestionType.WRITING
        assert len(q.options) == 2
        assert q.correct_answer == "apple"

    def test_reading_passage_shared_by_following_questions(self):
        questions = self._parse(
            "A surprising gift",
            "Last week, Mai received a parcel from her aunt.",
            "It contained a small red kite.",
            "Câu 7. Who sent the parcel? A. Her aunt B. Her uncle",
            "Câu 8. What was inside? A. A kite B. A book",
        )
        passage = (
            "A surprising gift\n"
            "Last week, Mai received a parcel from her aunt.\n"
            "It contained a small red kite.\n"
        )
        assert questions[0].passage == passage
        assert questions[1].passage == passage
        assert questions[0].text.startswith("Who sent the parcel?")

        sections = group_sections(questions)
        assert sections[0].reading_passage == passage

    def test_questions_before_passage_have_none(self):
        questions = self._parse(
            "Câu 1. Intro question.",
            "Stewart the Dragon",
            "Stewart was a kind dragon.",
            "Câu 2. Was Stewart kind?",
        )
        assert questions[0].passage is None
        assert questions[1].passage == "Stewart the Dragon\nStewart was a kind dragon.\n"

    def test_part_and_section_references(self):
        questions = self._parse(
            "SECTION B. VOCABULARY: 3.0 POINTS",
            "I. Circle the letter A, B, C or D to indicate the correct answer.",
            "Câu 3. She is good ___ maths. A. at B. in",
            "SECTION C. WRITING: 2.0 POINTS",
            "Câu 4. Write about your family.",
        )
        q3, q4 = questions
        assert q3.section.name == "VOCABULARY"
        assert q3.part == "I. Circle the letter A, B, C or D to indicate the correct answer."
        assert q4.section.letter == "C"
        # Part persists until the next part header
        assert q4.part == q3.part

    def test_lines_before_first_question_ignored(self):
        questions = self._parse(
            "TRƯỜNG THCS NGUYỄN DU",
            "ĐỀ KIỂM TRA HỌC KỲ I",
            "Câu 1. Actual question",
        )
        assert len(questions) == 1
        assert questions[0].text == "Actual question"

    def test_sorted_by_number(self):
        questions = self._parse(
            "Câu 3. third",
            "Câu 1. first",
            "Câu 2. second",
        )
        assert [q.number for q in questions] == [1, 2, 3]

    def test_duplicate_numbers_preserved_in_order(self):
        questions = self._parse(
            "Câu 2. second",
            "Câu 1. first copy",
            "Câu 1. second copy",
        )
        assert [q.number for q in questions] == [1, 1, 2]
        assert questions[0].text == "first copy"
        assert questions[1].text == "second copy"

    def test_parser_is_reentrant(self):
        parser = StateMachineParser()
        first = parser.parse([_para("Câu 1. one A. x B. y")])
        second = parser.parse([_para("Câu 9. nine")])
        assert [q.number for q in first] == [1]
        assert [q.number for q in second] == [9]

    def test_every_unknown_resolved(self):
        questions = self._parse(
            "Câu 1. A. only one option",
            "Câu 2. A. x B. y",
            "Câu 3. nothing",
        )
        assert all(q.type != QuestionType.UNKNOWN for q in questions)
        for q in questions:
            if q.type == QuestionType.MULTIPLE_CHOICE:
                assert len(q.options) >= 2


# ═══════════════════════════════════════════════════════════════════════════════
# SECTION GROUPER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSectionGrouper:
    """Test grouping questions into display sections."""

    def test_groups_in_first_seen_order(self):
        a = SectionInfo(letter="A", name="GRAMMAR", points="2.0 POINTS")
        b = SectionInfo(letter="B", name="READING", points="3.0 POINTS")
        questions = [
            Question(number=1, section=a, part="I. Circle"),
            Question(number=2, section=a, part="II. Put"),
            Question(number=3, section=b, passage="Text\n"),
        ]
        sections = group_sections(questions)

        assert [s.name for s in sections] == [
            "SECTION A. GRAMMAR",
            "SECTION B. READING",
        ]
        assert sections[0].description == "I. Circle"
        assert sections[0].points == "2.0 POINTS"
        assert [q.number for q in sections[0].questions] == [1, 2]
        assert sections[1].reading_passage == "Text\n"
        assert sections[1].description == ""

    def test_questions_without_section_use_default(self):
        sections = group_sections([Question(number=1), Question(number=2)])
        assert len(sections) == 1
        assert sections[0].name == DEFAULT_SECTION_NAME
        assert sections[0].points == ""

    def test_custom_default_name(self):
        sections = group_sections([Question(number=1)], default_name="All questions")
        assert sections[0].name == "All questions"


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


def _mcq(number: int, answer="A") -> Question:
    return Question(
        number=number,
        text=f"Q{number}",
        type=QuestionType.MULTIPLE_CHOICE,
        options=[
            QuestionOption(letter="A", text="x", is_correct=answer == "A"),
            QuestionOption(letter="B", text="y", is_correct=answer == "B"),
        ],
        correct_answer=answer,
    )


class TestValidationEngine:
    """Test the validation engine."""

    def test_empty_exam(self):
        report = ValidationEngine().validate(ExamData())
        assert report.valid is False
        assert report.problems == ["No questions found in document"]

    def test_perfect_exam(self):
        exam = ExamData(questions=[_mcq(i) for i in range(1, 6)])
        report = ValidationEngine().validate(exam)
        assert report.valid is True
        assert report.problems == []
        assert report.total_questions == 5
        assert report.multiple_choice_count == 5

    def test_missing_text_and_options(self):
        exam = ExamData(questions=[
            Question(number=1, type=QuestionType.WRITING, correct_answer="x"),
        ])
        report = ValidationEngine().validate(exam)
        assert report.valid is False
        assert any("Question 1" in p and "text" in p for p in report.problems)

    def test_mcq_without_options(self):
        exam = ExamData(questions=[
            Question(
                number=2,
                text="Pick",
                type=QuestionType.MULTIPLE_CHOICE,
                correct_answer="A",
            ),
        ])
        report = ValidationEngine().validate(exam)
        assert any("no options" in p for p in report.problems)

    def test_missing_answer(self):
        exam = ExamData(questions=[_mcq(1), _mcq(2, answer=None)])
        report = ValidationEngine().validate(exam)
        assert report.questions_missing_answer == [2]
        assert len(report.problems) == 1

    def test_duplicates_reported(self):
        exam = ExamData(questions=[_mcq(1), _mcq(2), _mcq(2)])
        report = ValidationEngine().validate(exam)
        assert report.duplicate_question_numbers == [2]
        assert report.valid is False

    def test_non_positive_number_reported(self):
        exam = ExamData(questions=[_mcq(0), _mcq(1)])
        report = ValidationEngine().validate(exam)
        assert report.valid is False
        assert report.problems == ["Question 0: number must be positive"]
        assert report.missing_question_numbers == []

    def test_gaps_are_informational(self):
        exam = ExamData(questions=[_mcq(1), _mcq(2), _mcq(5)])
        report = ValidationEngine().validate(exam)
        assert report.missing_question_numbers == [3, 4]
        assert report.valid is True

    def test_does_not_mutate_input(self):
        exam = ExamData(questions=[_mcq(1, answer=None), Question(number=3)])
        before = exam.model_dump()
        ValidationEngine().validate(exam)
        assert exam.model_dump() == before


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
