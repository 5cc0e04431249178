"""Raw text extraction for unstructured (PDF) menus.

Text is pulled from the document with pypdf, checked for usable content,
classified as a wine list or a general menu, normalized accordingly and then
handed to the AI extraction orchestrator.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from pypdf import PdfReader

from .converters import extract_menu_name
from .errors import NoItemsFoundError, NoReadableContentError, SourceFileError
from .parsers.base import ParseOutcome, apply_price_and_wine_checks

if TYPE_CHECKING:
    from .ai_extraction import AIExtractionOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_MIN_TEXT_LENGTH = 50
DEFAULT_MAX_TEXT_LENGTH = 500_000

_WINE_VOCABULARY = re.compile(
    r"\b(wine|vintage|bottle|glass|ml|chardonnay|cabernet|merlot|pinot|sauvignon|"
    r"bordeaux|burgundy|champagne|prosecco|sommelier|vineyard|winery|terroir)\b",
    re.IGNORECASE,
)

# Ordered (pattern, replacement) pairs applied to wine lists
_WINE_NORMALIZATIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(\d{4})\s*v(?:intage)?\b", re.IGNORECASE), r"\1"),
    (re.compile(r"(\d+)\s*mls?\b", re.IGNORECASE), r"\1ml"),
    (re.compile(r"(\d+)\s*ozs?\b", re.IGNORECASE), r"\1oz"),
    (re.compile(r"\bD\.O\.C\.G\b\.?", re.IGNORECASE), "DOCG"),
    (re.compile(r"\bA\.O\.C\b\.?", re.IGNORECASE), "AOC"),
    (re.compile(r"\bD\.O\.C\b\.?", re.IGNORECASE), "DOC"),
    (re.compile(r"[“”‘’]"), '"'),
    (re.compile(r"[–—]"), "-"),
    (re.compile(r"\$\s+(\d)"), r"$\1"),
    (re.compile(r"(\d+(?:\.\d+)?)\s*\$"), r"$\1"),
    (re.compile(r",(?=\S)"), ", "),
    (re.compile(r"\s+,"), ","),
    (re.compile(r"\r\n?"), "\n"),
    (re.compile(r"[ \t]+"), " "),
    (re.compile(r"\n\s*\n(\s*\n)+"), "\n\n"),
)


def extract_pdf_text(path: Path) -> str:
    """Concatenate the text layer of every page of a PDF.

    Pages whose text cannot be extracted are skipped with a warning.

    Raises:
        SourceFileError: If the document cannot be opened at all.
    """
    try:
        reader = PdfReader(str(path))
    except Exception as e:
        raise SourceFileError(f"Failed to read PDF file: {e}", file_name=path.name) from e

    chunks: list[str] = []
    for page_number, page in enumerate(reader.pages, start=1):
        try:
            chunks.append(page.extract_text() or "")
        except Exception as e:
            logger.warning("Could not extract text from page %d of %s: %s", page_number, path.name, e)
    return "\n".join(chunks)


def check_text_content(
    text: str,
    file_name: str,
    min_length: int = DEFAULT_MIN_TEXT_LENGTH,
    max_length: int = DEFAULT_MAX_TEXT_LENGTH,
) -> str:
    """Reject empty, near-empty or oversized text before calling the model.

    Returns:
        The stripped text.

    Raises:
        NoReadableContentError: If the text is unusable.
    """
    stripped = text.strip()
    if not stripped:
        raise NoReadableContentError(
            "No text content could be extracted from the PDF. "
            "The file may contain only images or be protected.",
            file_name=file_name,
            text_length=0,
        )
    if len(stripped) < min_length:
        raise NoReadableContentError(
            "Very little text content was found in the PDF. "
            "It may be a scanned document, which is not supported.",
            file_name=file_name,
            text_length=len(stripped),
        )
    if len(stripped) > max_length:
        raise NoReadableContentError(
            "Text content too large for processing. Please reduce file size.",
            file_name=file_name,
            text_length=len(stripped),
        )
    return stripped


def is_wine_document(text: str, file_name: str | None = None) -> bool:
    """Whether a document looks like a wine list (by name or vocabulary)."""
    if file_name and "wine" in file_name.lower():
        return True
    return bool(_WINE_VOCABULARY.search(text))


def preprocess_text(text: str, wine: bool) -> str:
    """Normalize extracted text before it is sent to the model.

    Wine lists keep their line structure (one wine per line is common) and get
    vintage, unit, appellation, punctuation and price-spacing fixes. Other
    menus have all whitespace collapsed.
    """
    if not wine:
        return re.sub(r"\s+", " ", text).strip()
    for pattern, replacement in _WINE_NORMALIZATIONS:
        text = pattern.sub(replacement, text)
    return text.strip()


class TextExtractionEngine:
    """Turns an unstructured document into canonical items via the AI orchestrator."""

    source_format = "pdf"

    def __init__(
        self,
        orchestrator: "AIExtractionOrchestrator",
        min_text_length: int = DEFAULT_MIN_TEXT_LENGTH,
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
    ) -> None:
        self.orchestrator = orchestrator
        self.min_text_length = min_text_length
        self.max_text_length = max_text_length

    async def extract(self, path: Path, original_file_name: str | None = None) -> ParseOutcome:
        """Extract, check, preprocess and structure the text of a document.

        Raises:
            NoReadableContentError: If the document has no usable text layer.
            ExtractionFailedError: If every extraction attempt failed.
            NoItemsFoundError: If extraction produced no named items.
        """
        file_name = original_file_name or path.name
        raw_text = await asyncio.to_thread(extract_pdf_text, path)
        text = check_text_content(raw_text, file_name, self.min_text_length, self.max_text_length)

        wine = is_wine_document(text, file_name)
        processed = preprocess_text(text, wine)
        logger.info(
            "Extracted %d characters from %s (wine list: %s)", len(processed), file_name, wine
        )

        extracted = await self.orchestrator.extract(processed, file_name=file_name, wine=wine)
        if not extracted.items:
            raise NoItemsFoundError(
                f"No menu items found in the {self.source_format.upper()} file",
                file_name=file_name,
            )

        warnings = list(extracted.warnings)
        apply_price_and_wine_checks(extracted.items, warnings)

        return ParseOutcome(
            items=extracted.items,
            warnings=warnings,
            menu_name=extracted.menu_name or extract_menu_name(file_name),
            source_format=self.source_format,
            metadata={
                "is_wine_menu": wine,
                "text_length": len(raw_text),
                "processed_text_length": len(processed),
                "attempts": extracted.attempts,
                "recovered_from_text": extracted.recovered_from_text,
                "raw_text": raw_text,
            },
        )
