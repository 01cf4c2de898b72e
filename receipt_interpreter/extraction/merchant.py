"""
Merchant Extractor

The merchant name is usually printed in the first few lines of a
receipt, above the address and phone number.
"""

import re
from typing import Optional

from receipt_interpreter.config import ExtractionSettings, get_settings


# Header lines that are never the merchant name
_BOILERPLATE = re.compile(
    r"\b(?:receipt|invoice|bill|tel|phone|mobile|fax|welcome|cashier|"
    r"customer\s+copy|thank\s+you|vat\s+reg|reg\s+no|date|time)\b",
    re.IGNORECASE,
)
_DIGIT_RUN = re.compile(r"\d{3,}")

MIN_MERCHANT_LENGTH = 4
MAX_MERCHANT_LENGTH = 49


class MerchantExtractor:
    """Picks the first header line that reads like a business name."""

    def __init__(self, settings: Optional[ExtractionSettings] = None):
        self._settings = settings or get_settings().extraction

    @staticmethod
    def looks_like_name(line: str) -> bool:
        """More than half letters and of a plausible length."""
        if not MIN_MERCHANT_LENGTH <= len(line) <= MAX_MERCHANT_LENGTH:
            return False
        letters = sum(1 for ch in line if ch.isalpha())
        return letters * 2 > len(line)

    def extract(self, text: str) -> Optional[str]:
        lines = [line.strip() for line in text.splitlines()]
        header = [line for line in lines if line][: self._settings.merchant_scan_lines]

        for line in header:
            if _BOILERPLATE.search(line) or _DIGIT_RUN.search(line):
                continue
            if self.looks_like_name(line):
                return line

        return None
