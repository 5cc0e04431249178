"""AI extraction orchestrator for unstructured menu text.

Drives a generative model through the ``extract_menu_data`` tool contract.
Each attempt uses a firmer instruction than the last; attempts are separated
by exponential backoff. When the model answers in prose on the final
attempt, the JSON recovery chain is applied before giving up.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from menubox.schemas.items import CanonicalItem

from .constants import DEFAULT_CATEGORY
from .converters import clean_text
from .errors import ExtractionFailedError
from .field_mapping import apply_mapping, build_column_mapping
from .json_recovery import RESPONSE_PREVIEW_LENGTH, recover_json
from .parsers.base import record_to_item
from .prompts import EXTRACTION_TOOL, SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Retry policy
# =============================================================================


@dataclass
class AttemptOutcome(Generic[T]):
    """Result of running an operation under a retry policy.

    Exactly one of ``value`` and ``error`` is meaningful: ``ok`` tells which.
    """

    attempts: int
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RetryPolicy:
    """Retry a fallible async operation with exponential backoff.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``
    seconds. ``sleep`` is injectable so tests can run without waiting.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def delay(self, attempt: int) -> float:
        """Seconds to wait after a failed ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "Attempt %d/%d failed: %s; waiting %.1fs before retry",
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    async def run(self, operation: Callable[[int], Awaitable[T]]) -> AttemptOutcome[T]:
        """Call ``operation(attempt)`` until it succeeds or attempts run out.

        Every exception counts as a failed attempt; the last one is returned
        in the outcome rather than raised.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay),
            retry=retry_if_exception_type(Exception),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    value = await operation(number)
        except RetryError as e:
            last = e.last_attempt
            error = last.exception()
            logger.warning("Attempt %d/%d failed: %s", last.attempt_number, self.max_attempts, error)
            return AttemptOutcome(attempts=last.attempt_number, error=error)
        return AttemptOutcome(attempts=number, value=value)


# =============================================================================
# Extraction client contract
# =============================================================================


@dataclass
class ExtractionResponse:
    """What the model returned: a tool call payload, free text, or both."""

    tool_input: dict[str, Any] | None = None
    text: str = ""


class ExtractionClient(Protocol):
    """Narrow request/response contract to a generative extraction model."""

    async def extract(self, *, system: str, prompt: str, tool: dict[str, Any]) -> ExtractionResponse: ...


class AnthropicExtractionClient:
    """Extraction client backed by Claude tool use."""

    def __init__(self, api_key: str | None, model: str, max_tokens: int = 8192) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = None

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self):
        """Lazily create the Anthropic client."""
        try:
            import anthropic
        except ImportError:
            logger.error("anthropic package is not installed")
            raise

        if not self.api_key:
            raise ValueError("No Anthropic API key configured")
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def _create(self, system: str, prompt: str, tool: dict[str, Any]) -> ExtractionResponse:
        client = self._get_client()
        message = client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            tools=[tool],
            messages=[{"role": "user", "content": prompt}],
        )

        tool_input = None
        texts: list[str] = []
        for block in message.content:
            if block.type == "tool_use" and block.name == tool["name"]:
                tool_input = dict(block.input)
            elif block.type == "text":
                texts.append(block.text)

        if message.stop_reason == "max_tokens":
            logger.warning("Extraction response hit max_tokens (%d); output may be truncated", self.max_tokens)

        return ExtractionResponse(tool_input=tool_input, text="\n".join(texts))

    async def extract(self, *, system: str, prompt: str, tool: dict[str, Any]) -> ExtractionResponse:
        # The SDK call blocks; keep it off the event loop
        return await asyncio.to_thread(self._create, system, prompt, tool)


# =============================================================================
# Orchestrator
# =============================================================================


@dataclass
class ExtractedMenu:
    """Normalized output of an AI extraction run."""

    menu_name: str
    items: list[CanonicalItem]
    warnings: list[str] = field(default_factory=list)
    attempts: int = 1
    recovered_from_text: bool = False


def validate_extracted_data(data: Any) -> None:
    """Require a structured payload with a non-empty item list.

    Raises:
        ValueError: If the payload is not usable; the attempt is retried.
    """
    if not isinstance(data, dict):
        raise ValueError("Invalid extracted data: not an object")
    items = data.get("menu_items", data.get("menuItems"))
    if not isinstance(items, list):
        raise ValueError("Invalid extracted data: missing or invalid menu_items array")
    if not items:
        raise ValueError("No menu items extracted from the text")


def normalize_extracted_data(
    data: dict[str, Any], file_name: str | None = None
) -> tuple[str, list[CanonicalItem], list[str]]:
    """Map a model payload onto canonical items, filling required defaults.

    Missing names become "Unknown Item", missing kinds "food" and missing
    categories "Uncategorized". The menu name falls back to the file stem.

    Returns:
        Tuple of (menu name, items, warnings).
    """
    menu_name = clean_text(data.get("menu_name") or data.get("menuName"))
    if not menu_name:
        menu_name = Path(file_name).stem if file_name else "Uploaded Menu"

    raw_items = data.get("menu_items", data.get("menuItems", data.get("items")))
    if not isinstance(raw_items, list):
        raw_items = []

    items: list[CanonicalItem] = []
    warnings: list[str] = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            warnings.append(f"Item {i + 1}: expected an object, got {type(raw).__name__}")
            continue
        record = apply_mapping(raw, build_column_mapping(list(raw.keys())))
        record["name"] = clean_text(record.get("name")) or "Unknown Item"
        record["item_type"] = clean_text(record.get("item_type")) or "food"
        record["category"] = clean_text(record.get("category")) or DEFAULT_CATEGORY
        item = record_to_item(record, index=i)
        if item is not None:
            items.append(item)

    return menu_name, items, warnings


class AIExtractionOrchestrator:
    """Runs the escalating, retried extraction of menu items from text."""

    def __init__(self, client: ExtractionClient, retry_policy: RetryPolicy | None = None) -> None:
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    async def extract(self, text: str, file_name: str | None = None, wine: bool = False) -> ExtractedMenu:
        """Extract a menu from preprocessed text.

        Args:
            text: Preprocessed document text.
            file_name: Original file name, used in the prompt and as fallback menu name.
            wine: Whether to include the wine-list instructions.

        Raises:
            ExtractionFailedError: When all attempts and recovery strategies fail.
        """
        max_attempts = self.retry_policy.max_attempts
        recovered = False

        async def attempt_extraction(attempt: int) -> dict[str, Any]:
            nonlocal recovered
            logger.info("AI extraction attempt %d/%d for %s", attempt, max_attempts, file_name)
            response = await self.client.extract(
                system=SYSTEM_PROMPT,
                prompt=build_prompt(text, file_name, wine, attempt),
                tool=EXTRACTION_TOOL,
            )

            if response.tool_input is not None:
                validate_extracted_data(response.tool_input)
                return response.tool_input

            logger.warning(
                "Attempt %d: no structured response; text preview: %s",
                attempt,
                response.text[:RESPONSE_PREVIEW_LENGTH] or "(empty)",
            )
            if attempt == max_attempts:
                data = recover_json(response.text)
                recovered = True
                return data
            raise ValueError(f"Structured response not received on attempt {attempt}")

        outcome = await self.retry_policy.run(attempt_extraction)
        if not outcome.ok:
            if isinstance(outcome.error, ExtractionFailedError):
                raise outcome.error
            raise ExtractionFailedError(
                f"AI processing failed after {outcome.attempts} attempts: {outcome.error}",
                attempts=outcome.attempts,
                is_wine_menu=wine,
            )

        menu_name, items, warnings = normalize_extracted_data(outcome.value, file_name)
        logger.info(
            "AI extraction produced %d items in %d attempt(s)%s",
            len(items),
            outcome.attempts,
            " via text recovery" if recovered else "",
        )
        return ExtractedMenu(
            menu_name=menu_name,
            items=items,
            warnings=warnings,
            attempts=outcome.attempts,
            recovered_from_text=recovered,
        )
