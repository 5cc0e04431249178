"""Recovery of structured menu data from free-text model responses."""

import json
import logging
import re
from typing import Any

from .errors import ExtractionFailedError

logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_LENGTH = 500

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)(?:\s*```|$)", re.IGNORECASE)
_BRACED_OBJECT = re.compile(r"\{[\s\S]*\}")

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_]\w*)\s*:")
_SINGLE_QUOTED_KEY = re.compile(r"([{,]\s*)'([^']*)'\s*:")
_SINGLE_QUOTED_VALUE = re.compile(r":\s*'([^']*)'")
_SINGLE_QUOTED_ELEMENT = re.compile(r"([\[,]\s*)'([^']*)'(?=\s*[,\]])")
_NEWLINES = re.compile(r"[\r\n]+")
_WHITESPACE = re.compile(r"\s+")


def repair_json(text: str) -> str:
    """Fix the malformations models commonly produce in hand-written JSON.

    Removes trailing commas, quotes bare and single-quoted keys, converts
    single-quoted values (and list elements) to double quotes and flattens
    newlines and whitespace runs.
    """
    text = _TRAILING_COMMA.sub(r"\1", text)
    text = _SINGLE_QUOTED_KEY.sub(r'\1"\2":', text)
    text = _BARE_KEY.sub(r'\1"\2":', text)
    text = _SINGLE_QUOTED_VALUE.sub(r': "\1"', text)
    text = _SINGLE_QUOTED_ELEMENT.sub(r'\1"\2"', text)
    text = _NEWLINES.sub(" ", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _load_candidate(candidate: str) -> dict[str, Any] | None:
    data = _load_object(candidate)
    if data is None:
        data = _load_object(repair_json(candidate))
    return data


def recover_json(response_text: str) -> dict[str, Any]:
    """Recover a JSON object from a free-text response.

    Strategies are tried in order: a direct parse, the contents of the first
    fenced code block, then the outermost brace-delimited span. Each
    extracted candidate is parsed as it stands first and only repaired with
    :func:`repair_json` when that fails, so valid JSON is never rewritten.

    Args:
        response_text: Raw text returned by the model.

    Returns:
        The recovered JSON object.

    Raises:
        ExtractionFailedError: If no strategy produced a JSON object.
    """
    text = response_text or ""

    data = _load_object(text.strip())
    if data is not None:
        logger.debug("Recovered menu data by direct parse")
        return data

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        data = _load_candidate(fenced.group(1))
        if data is not None:
            logger.debug("Recovered menu data from fenced code block")
            return data

    braced = _BRACED_OBJECT.search(text)
    if braced:
        data = _load_candidate(braced.group(0))
        if data is not None:
            logger.debug("Recovered menu data from brace-delimited object")
            return data

    logger.warning("Could not recover JSON from a %d character response", len(text))
    raise ExtractionFailedError(
        "Failed to extract valid menu data from AI response",
        response_preview=text[:RESPONSE_PREVIEW_LENGTH],
        response_length=len(text),
    )
