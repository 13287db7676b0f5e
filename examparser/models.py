"""
Data Models
===========
Pydantic models for the structured exam extracted from a .docx file.
All models are serializable to JSON for the exam-taking front end.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from . import __version__


# ─── Enums ────────────────────────────────────────────────────────────────────


class QuestionType(str, Enum):
    """Question formats understood by the exam room."""
    MULTIPLE_CHOICE = "multiple_choice"
    WRITING = "writing"
    UNKNOWN = "unknown"


# ─── Document Models ──────────────────────────────────────────────────────────


class Run(BaseModel):
    """
    A span of text inside one paragraph with uniform formatting.
    Offsets are half-open [start, end) in the paragraph's own text.
    """
    text: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    highlighted: bool = False
    underlined: bool = False
    bold: bool = False

    @model_validator(mode="after")
    def _check_span(self) -> Run:
        if self.end - self.start != len(self.text):
            raise ValueError(
                f"Run span [{self.start}, {self.end}) does not fit "
                f"text of length {len(self.text)}"
            )
        return self


class Paragraph(BaseModel):
    """A paragraph's concatenated text plus its ordered runs."""
    text: str
    runs: list[Run] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_runs(self) -> Paragraph:
        previous_end = 0
        for run in self.runs:
            if run.start < previous_end:
                raise ValueError(
                    f"Run at offset {run.start} overlaps previous run "
                    f"ending at {previous_end}"
                )
            previous_end = run.end
        if previous_end > len(self.text):
            raise ValueError("Runs extend past the end of paragraph text")
        return self


# ─── Exam Models ──────────────────────────────────────────────────────────────


class SectionInfo(BaseModel):
    """A scoring section header such as 'SECTION A. GRAMMAR: 2.0 POINTS'."""
    letter: str
    name: str
    points: str = ""


class QuestionOption(BaseModel):
    """One lettered choice of a multiple-choice question."""
    letter: str
    text: str
    text_with_formatting: str = Field(
        default="",
        description="Escaped text with underline/bold markup for phonetics items",
    )
    is_correct: bool = False


class Question(BaseModel):
    """
    A question as accumulated by the state machine.
    Mutable while it is the current question; left alone once finalized.
    """
    number: int
    text: str = ""
    type: QuestionType = QuestionType.UNKNOWN
    options: list[QuestionOption] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    section: Optional[SectionInfo] = None
    part: Optional[str] = None
    passage: Optional[str] = None

    @computed_field
    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    def option_letters(self) -> set[str]:
        return {opt.letter for opt in self.options}


class ExamSection(BaseModel):
    """Questions sharing one section header, ready for display."""
    name: str
    description: str = ""
    points: str = ""
    questions: list[Question] = Field(default_factory=list)
    reading_passage: Optional[str] = None


class ExamData(BaseModel):
    """
    The parsed exam.
    `answers` maps question number to its correct answer value.
    """
    title: str = ""
    time_limit: Optional[int] = None
    sections: list[ExamSection] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)
    answers: dict[int, str] = Field(default_factory=dict)


# ─── Parse Result Models ─────────────────────────────────────────────────────


class DocumentMetadata(BaseModel):
    """Metadata about the source document and the parse run."""
    source_name: str = ""
    file_hash: str = ""
    file_size_bytes: int = 0
    paragraph_count: int = 0
    parser_version: str = __version__
    parse_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ValidationReport(BaseModel):
    """Post-parse validation report. Problems are never fatal."""
    problems: list[str] = Field(default_factory=list)
    total_questions: int = 0
    multiple_choice_count: int = 0
    writing_count: int = 0
    questions_missing_answer: list[int] = Field(default_factory=list)
    duplicate_question_numbers: list[int] = Field(default_factory=list)
    missing_question_numbers: list[int] = Field(default_factory=list)

    @computed_field
    @property
    def valid(self) -> bool:
        return not self.problems


class ParseResult(BaseModel):
    """
    Complete output of a parse run.
    This is the top-level JSON structure returned by the CLI and HTTP API.
    """
    document: DocumentMetadata
    exam: ExamData
    validation: ValidationReport = Field(default_factory=ValidationReport)
