"""
Run Extractor
=============
Walks the WordprocessingML paragraph/run tree with lxml and produces
Paragraph models whose runs carry character offsets and formatting flags.

Offsets are local to each paragraph and are the coordinate system used by
option detection and formatted-text rendering downstream.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from lxml import etree

from .exceptions import MalformedDocumentError
from .models import Paragraph, Run

logger = logging.getLogger(__name__)

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NSMAP = {"w": W_NS}

W_P = f"{{{W_NS}}}p"
W_R = f"{{{W_NS}}}r"
W_T = f"{{{W_NS}}}t"
W_TAB = f"{{{W_NS}}}tab"
W_VAL = f"{{{W_NS}}}val"
W_FILL = f"{{{W_NS}}}fill"

BOLD_FALSE_VALUES = {"0", "false", "off"}


def _xml_parser() -> etree.XMLParser:
    # lxml parser objects must not be shared between threads
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
    )


# ─── Formatting Predicates ────────────────────────────────────────────────────


def is_highlighted(rpr: Optional[etree._Element]) -> bool:
    """Highlight colour other than 'none', or a non-white background shading."""
    if rpr is None:
        return False

    highlight = rpr.find("w:highlight", NSMAP)
    if highlight is not None and highlight.get(W_VAL) != "none":
        return True

    shd = rpr.find("w:shd", NSMAP)
    if shd is not None:
        fill = shd.get(W_FILL)
        if fill and fill.lower() != "auto" and fill.upper() != "FFFFFF":
            return True

    return False


def is_underlined(rpr: Optional[etree._Element]) -> bool:
    if rpr is None:
        return False
    underline = rpr.find("w:u", NSMAP)
    if underline is None:
        return False
    val = underline.get(W_VAL)
    return not val or val.lower() != "none"


def is_bold(rpr: Optional[etree._Element]) -> bool:
    if rpr is None:
        return False
    bold = rpr.find("w:b", NSMAP)
    if bold is None:
        return False
    val = bold.get(W_VAL)
    return not val or val.lower() not in BOLD_FALSE_VALUES


# ─── Extraction ───────────────────────────────────────────────────────────────


def run_text(run_el: etree._Element) -> str:
    """Concatenate the text-bearing children of a w:r element."""
    parts: list[str] = []
    for node in run_el:
        if node.tag == W_T:
            parts.append(node.text or "")
        elif node.tag == W_TAB:
            parts.append("\t")
    return "".join(parts)


def build_paragraph(segments: Iterable[tuple[str, bool, bool, bool]]) -> Paragraph:
    """
    Build a Paragraph from (text, highlighted, underlined, bold) segments.

    Empty segments are dropped and consume no offset space.
    """
    runs: list[Run] = []
    position = 0
    for text, highlighted, underlined, bold in segments:
        if not text:
            continue
        runs.append(Run(
            text=text,
            start=position,
            end=position + len(text),
            highlighted=highlighted,
            underlined=underlined,
            bold=bold,
        ))
        position += len(text)
    return Paragraph(text="".join(r.text for r in runs), runs=runs)


def _paragraph_segments(p_el: etree._Element):
    for run_el in p_el.iter(W_R):
        rpr = run_el.find("w:rPr", NSMAP)
        yield (
            run_text(run_el),
            is_highlighted(rpr),
            is_underlined(rpr),
            is_bold(rpr),
        )


def parse_xml(xml: Union[bytes, str]) -> etree._Element:
    """
    Parse body XML, mapping syntax and decoding errors to MalformedDocumentError.

    Bytes are handed to lxml untouched so the part's own encoding declaration
    applies. Text is encoded as UTF-8 first.
    """
    if not xml or not xml.strip():
        raise MalformedDocumentError("Document body is empty")
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    try:
        return etree.fromstring(xml, parser=_xml_parser())
    except etree.XMLSyntaxError as e:
        raise MalformedDocumentError(f"Document body is not well-formed XML: {e}") from e


def extract_paragraphs(xml: Union[bytes, str]) -> list[Paragraph]:
    """
    Extract non-blank paragraphs, in document order, from body XML.

    Raises:
        MalformedDocumentError: If the XML cannot be parsed.
    """
    root = parse_xml(xml)

    paragraphs: list[Paragraph] = []
    skipped = 0
    for p_el in root.iter(W_P):
        paragraph = build_paragraph(_paragraph_segments(p_el))
        if not paragraph.text.strip():
            skipped += 1
            continue
        paragraphs.append(paragraph)

    logger.info(
        f"Extracted {len(paragraphs)} paragraphs "
        f"({skipped} blank paragraphs skipped)"
    )
    return paragraphs
