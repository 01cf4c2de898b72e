"""
Field Extractors

Pure text-to-field functions. None of them touch images or the
recognizer; they run on the text of one pass.
"""

from receipt_interpreter.extraction.amount import (
    AMOUNT_PATTERNS,
    AmountExtractor,
    AmountPattern,
    parse_amount,
    select_best_amount,
)
from receipt_interpreter.extraction.category import CATEGORY_RULES, CategoryClassifier, CategoryRule
from receipt_interpreter.extraction.dates import DateExtractor
from receipt_interpreter.extraction.merchant import MerchantExtractor

__all__ = [
    "AMOUNT_PATTERNS",
    "AmountExtractor",
    "AmountPattern",
    "CATEGORY_RULES",
    "CategoryClassifier",
    "CategoryRule",
    "DateExtractor",
    "MerchantExtractor",
    "parse_amount",
    "select_best_amount",
]
