"""
Exam Parser Engine
==================
Main orchestrator that combines archive reading, run extraction, state
machine parsing, section grouping and validation into one pipeline.

Usage:
    engine = ParserEngine(config)
    result = engine.parse_file("path/to/exam.docx")
    # result is a ParseResult; result.exam is the ExamData

Architecture:
    .docx bytes → Archive Reader → document.xml → Run Extractor →
    Paragraphs → StateMachineParser → Questions → Section Grouper →
    ExamData → ValidationEngine → ParseResult (JSON)
"""

from __future__ import annotations

import hashlib
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import __version__
from .archive import DOCUMENT_ENTRY, read_document_xml
from .classifier import DEFAULT_PART_KEYWORDS, DEFAULT_PASSAGE_TITLE_PATTERNS
from .exceptions import ExamParseError
from .grouping import DEFAULT_SECTION_NAME, group_sections
from .models import DocumentMetadata, ExamData, ParseResult
from .run_extractor import extract_paragraphs
from .state_machine import StateMachineParser, build_answer_key
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ParserConfig:
    """Configuration for the parser engine."""

    # Exam metadata
    title: str = "Đề thi Tiếng Anh"
    time_limit: Optional[int] = 60

    # Document layout
    document_entry: str = DOCUMENT_ENTRY
    part_keywords: tuple[str, ...] = DEFAULT_PART_KEYWORDS
    passage_title_patterns: tuple[str, ...] = DEFAULT_PASSAGE_TITLE_PATTERNS
    default_section_name: str = DEFAULT_SECTION_NAME

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ParserEngine:
    """
    Main .docx exam parsing engine.

    Orchestrates the full pipeline:
        1. Archive reading
        2. Run extraction (text + formatting)
        3. State machine parsing (structure + answers)
        4. Section grouping
        5. Validation

    Thread-safe: every parse builds its own state.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self._setup_logging()
        self.parser = StateMachineParser(
            part_keywords=self.config.part_keywords,
            passage_title_patterns=self.config.passage_title_patterns,
        )
        self.validator = ValidationEngine()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the package
        pkg_logger = logging.getLogger("examparser")
        pkg_logger.setLevel(log_level)

        # Console handler
        if not any(type(h) is logging.StreamHandler for h in pkg_logger.handlers):
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            pkg_logger.addHandler(console)
        for handler in pkg_logger.handlers:
            handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).resolve()
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in pkg_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(
                    logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
                )
                pkg_logger.addHandler(file_handler)

    def parse_exam(self, data: bytes) -> ExamData:
        """
        Parse .docx bytes into ExamData.

        Raises:
            ArchiveFormatError: If the bytes are not a zip archive.
            MissingEntryError: If document.xml is absent.
            MalformedDocumentError: If document.xml is not well-formed.
        """
        return self.parse_bytes(data).exam

    def parse_bytes(self, data: bytes, source_name: str = "") -> ParseResult:
        """
        Parse .docx bytes into a ParseResult.

        Args:
            data: Raw bytes of the .docx archive.
            source_name: Display name of the source, for metadata only.

        Returns:
            ParseResult containing the exam, metadata and validation.
        """
        start_time = time.time()
        logger.info(f"Starting parse of: {source_name or '<bytes>'}")

        try:
            # ── Step 1: Archive ───────────────────────────────────────
            xml_body = read_document_xml(data, self.config.document_entry)

            # ── Step 2: Runs ──────────────────────────────────────────
            logger.info("Phase 1: Run extraction")
            paragraphs = extract_paragraphs(xml_body)
        except ExamParseError as e:
            logger.error(f"Cannot parse {source_name or '<bytes>'}: {e}")
            raise

        # ── Step 3: State machine parsing ─────────────────────────────
        logger.info("Phase 2: State machine parsing")
        questions = self.parser.parse(paragraphs)

        # ── Step 4: Assemble exam ─────────────────────────────────────
        exam = ExamData(
            title=self.config.title,
            time_limit=self.config.time_limit,
            sections=group_sections(questions, self.config.default_section_name),
            questions=questions,
            answers=build_answer_key(questions),
        )

        # ── Step 5: Validation ────────────────────────────────────────
        logger.info("Phase 3: Validation")
        validation = self.validator.validate(exam)

        document = DocumentMetadata(
            source_name=source_name,
            file_hash=hashlib.sha256(data).hexdigest(),
            file_size_bytes=len(data),
            paragraph_count=len(paragraphs),
            parser_version=__version__,
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Parse complete in {elapsed:.2f}s: "
            f"{len(questions)} questions, {len(exam.sections)} sections"
        )

        return ParseResult(document=document, exam=exam, validation=validation)

    def parse_file(self, docx_path: str) -> ParseResult:
        """
        Read and parse a .docx file from disk.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        docx_path = os.path.abspath(docx_path)
        if not os.path.exists(docx_path):
            raise FileNotFoundError(f"DOCX not found: {docx_path}")

        with open(docx_path, "rb") as f:
            data = f.read()
        return self.parse_bytes(data, source_name=os.path.basename(docx_path))


def parse_docx(data: bytes, config: Optional[ParserConfig] = None) -> ExamData:
    """Convenience wrapper: .docx bytes in, ExamData out."""
    return ParserEngine(config).parse_exam(data)
