"""
Result Validator

DESIGN DECISION: The validator recalibrates CONFIDENCE only.
It never changes the amount, category, merchant or date. Those are
suggestions for a human to confirm, and the confidence score is the
single signal telling them how far to trust the suggestion.

Two groups of multiplicative corrections are applied:

AMOUNT PLAUSIBILITY:
- Absurdly large or tiny totals are penalized
- Small totals read with very high confidence are suspicious
  (usually a line item or quantity, not the total)
- Whole-currency totals above 50 get a small bonus

CONTENT PLAUSIBILITY:
- Receipt vocabulary (strong, weak and business-name keywords) is rewarded
- Sparse text is penalized
- A date or time anywhere in the text is rewarded

Final confidence = min(original x all factors, 1.0), floored at 0.0.

IMPORTANT: Validation NEVER silently fixes issues.
Every factor applied is reported through assess().
"""

import re
from decimal import Decimal
from typing import Optional

from receipt_interpreter.models.receipt import (
    ConfidenceAdjustment,
    ExtractionResult,
    ValidationReport,
    clamp_confidence,
)


STRONG_KEYWORDS = ("receipt", "invoice", "total", "tax", "payment", "cash", "card")
WEAK_KEYWORDS = ("date", "time", "thank you", "customer", "change", "subtotal", "amount")
BUSINESS_KEYWORDS = (
    "store", "ltd", "pvt", "inc", "llc", "plc", "company", "mart",
    "supermarket", "restaurant", "pharmacy", "hotel", "cafe",
)

_DATE_OR_TIME = re.compile(r"\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}[/.-]\d{1,2}[/.-]\d{1,2}|\d{1,2}:\d{2}")

HUGE_AMOUNT = Decimal("1000000")
LARGE_AMOUNT = Decimal("100000")
TINY_AMOUNT = Decimal("1")
SMALL_AMOUNT = Decimal("10")
ROUND_AMOUNT_FLOOR = Decimal("50")


def _keyword_pattern(keyword: str) -> re.Pattern:
    body = r"\s+".join(re.escape(part) for part in keyword.split())
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


_STRONG = [_keyword_pattern(k) for k in STRONG_KEYWORDS]
_WEAK = [_keyword_pattern(k) for k in WEAK_KEYWORDS]
_BUSINESS = [_keyword_pattern(k) for k in BUSINESS_KEYWORDS]


def _count(patterns: list[re.Pattern], text: str) -> int:
    return sum(1 for pattern in patterns if pattern.search(text))


class ResultValidator:
    """
    Recalibrates the confidence of an ExtractionResult.

    Stateless; safe to share between passes.
    """

    def _amount_adjustments(
        self,
        amount: Optional[Decimal],
        confidence: float,
    ) -> list[ConfidenceAdjustment]:
        if amount is None:
            return []

        adjustments = []
        if amount > HUGE_AMOUNT:
            adjustments.append(ConfidenceAdjustment(reason="amount_over_1m", factor=0.3))
        elif amount > LARGE_AMOUNT:
            adjustments.append(ConfidenceAdjustment(reason="amount_over_100k", factor=0.6))
        elif amount < TINY_AMOUNT:
            adjustments.append(ConfidenceAdjustment(reason="amount_under_1", factor=0.4))
        elif amount < SMALL_AMOUNT and confidence > 0.8:
            adjustments.append(ConfidenceAdjustment(reason="small_amount_high_confidence", factor=0.6))

        if amount > ROUND_AMOUNT_FLOOR and amount % 1 == 0:
            adjustments.append(ConfidenceAdjustment(reason="round_amount", factor=1.1))

        return adjustments

    def _content_adjustments(self, text: str) -> list[ConfidenceAdjustment]:
        adjustments = []

        strong = _count(_STRONG, text)
        if strong >= 3:
            adjustments.append(ConfidenceAdjustment(reason="strong_keywords_3", factor=1.3))
        elif strong >= 2:
            adjustments.append(ConfidenceAdjustment(reason="strong_keywords_2", factor=1.2))
        elif strong >= 1:
            adjustments.append(ConfidenceAdjustment(reason="strong_keywords_1", factor=1.1))

        if _count(_WEAK, text) >= 2:
            adjustments.append(ConfidenceAdjustment(reason="weak_keywords", factor=1.1))

        if _count(_BUSINESS, text) >= 1:
            adjustments.append(ConfidenceAdjustment(reason="business_keywords", factor=1.05))

        meaningful_words = sum(1 for word in text.split() if len(word) > 2)
        if meaningful_words < 3:
            adjustments.append(ConfidenceAdjustment(reason="very_sparse_text", factor=0.7))
        elif meaningful_words < 6:
            adjustments.append(ConfidenceAdjustment(reason="sparse_text", factor=0.85))

        if _DATE_OR_TIME.search(text):
            adjustments.append(ConfidenceAdjustment(reason="date_or_time_present", factor=1.05))

        return adjustments

    def assess(self, result: ExtractionResult) -> ValidationReport:
        """
        Work out every correction for a result without applying it.

        Returns:
            ValidationReport with original/adjusted confidence and
            the factors applied
        """
        original = clamp_confidence(result.confidence)
        adjustments = (
            self._amount_adjustments(result.amount, original)
            + self._content_adjustments(result.raw_text)
        )

        report = ValidationReport(
            original_confidence=original,
            adjusted_confidence=0.0,
            adjustments=adjustments,
        )
        report.adjusted_confidence = clamp_confidence(original * report.combined_factor)
        return report

    def validate(self, result: ExtractionResult) -> ExtractionResult:
        """Return a copy of the result with recalibrated confidence."""
        report = self.assess(result)
        return result.model_copy(update={"confidence": report.adjusted_confidence})
