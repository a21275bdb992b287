"""Order number detection for incoming questions.

Extraction runs an ordered list of strategies and keeps the first
identifier found. The regex strategy handles the common phrasings
("order #123", "Order 42", "0rder 7"); the model strategy asks the chat
backend to pull a number out of anything else and only trusts an answer
made of digits.
"""

from __future__ import annotations

import re
from typing import Protocol, Sequence

from supportrag.metrics.observability import get_logger
from supportrag.models import ChatMessage
from supportrag.services.generation import ChatBackend

ORDER_ID_WIDTH = 9

_ORDER_PATTERN = re.compile(r"[o0]rder\s*#?\s*(\d+)", re.IGNORECASE | re.ASCII)
_DIGITS = re.compile(r"\d+", re.ASCII)

EXTRACTION_PROMPT = """
Extract the Magento order number from the text below.
Return ONLY the number, nothing else.
If not found, return "NONE".

Text:
"{question}"
"""


class ExtractionStrategy(Protocol):
    """A single way of finding an order number in free text."""

    def try_extract(self, text: str) -> str | None:
        """Return the raw digit string, or ``None`` when nothing was found."""


class RegexOrderStrategy:
    """Matches "order" (or "0rder") followed by an optional ``#`` and digits."""

    def try_extract(self, text: str) -> str | None:
        match = _ORDER_PATTERN.search(text)
        return match.group(1) if match else None


class ModelOrderStrategy:
    """Asks the chat backend for the order number; anything but digits is rejected."""

    def __init__(self, chat: ChatBackend) -> None:
        self._chat = chat

    def try_extract(self, text: str) -> str | None:
        prompt = EXTRACTION_PROMPT.format(question=text)
        reply = self._chat.complete([ChatMessage(role="user", content=prompt)]).strip()
        if not _DIGITS.fullmatch(reply):
            return None
        return reply


def normalize_order_number(order_id: str, width: int = ORDER_ID_WIDTH) -> str:
    """Left-pad with zeros to the increment id width; longer ids pass through."""

    return order_id.rjust(width, "0")


class OrderNumberExtractor:
    """Runs extraction strategies in order and normalizes the first hit."""

    def __init__(self, strategies: Sequence[ExtractionStrategy], *, width: int = ORDER_ID_WIDTH) -> None:
        self._strategies = tuple(strategies)
        self._width = width
        self._logger = get_logger("extraction")

    @classmethod
    def default(cls, chat: ChatBackend, *, width: int = ORDER_ID_WIDTH) -> "OrderNumberExtractor":
        return cls([RegexOrderStrategy(), ModelOrderStrategy(chat)], width=width)

    def extract(self, text: str) -> str | None:
        for strategy in self._strategies:
            raw = strategy.try_extract(text)
            if raw:
                order_id = normalize_order_number(raw, self._width)
                self._logger.info("order.extracted", strategy=type(strategy).__name__, order_id=order_id)
                return order_id
        return None
