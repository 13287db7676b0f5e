"""
DOCX Exam Parser
================
Extraction engine that turns Word (.docx) exam papers into structured exam data.

Architecture:
    - Archive Reader: Opens the .docx container and pulls out word/document.xml
    - Run Extractor: Walks paragraphs/runs and records highlight/underline/bold
    - State Machine: Classifies lines into sections, parts, passages, questions
    - Option Extractor: Splits inline options and infers answers from highlighting
    - Section Grouper: Buckets finished questions into exam sections
    - Validator: Reports structural problems without aborting the parse

Version: 1.0.0
"""

__version__ = "1.0.0"
