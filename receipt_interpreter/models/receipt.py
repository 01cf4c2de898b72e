"""
Core Data Models for the Receipt Interpreter

These models define the schemas for everything flowing through the
interpretation pipeline:
1. What the quality analyzer measured
2. What the recognizer read
3. What the extractors proposed
4. What is finally handed back to the caller

DESIGN DECISION: Every extracted value is a SUGGESTION.
The confidence score is the only trust signal we surface, so the models
enforce its bounds rather than leaving it to each producer.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# Amounts above this are never accepted as a receipt total
MAX_AMOUNT = Decimal("1000000")


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Spending categories the classifier can suggest.

    The values are the labels shown to the user, so they compare equal
    to plain strings such as "Food & Dining".
    """
    FOOD_AND_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    ENTERTAINMENT = "Entertainment"
    EDUCATION = "Education"


class PassVariant(str, Enum):
    """Image variants recognized during a multi-pass extraction."""
    ORIGINAL = "original"
    HIGH_CONTRAST = "high_contrast"
    PERSPECTIVE_CORRECTED = "perspective_corrected"


# =============================================================================
# IMAGE MODELS
# =============================================================================

class QualityMetrics(BaseModel):
    """
    Coarse image quality measurements.

    Computed once per bitmap and only used to choose preprocessing
    parameters. Never persisted.
    """
    model_config = ConfigDict(frozen=True)

    brightness: float = Field(..., ge=0.0, le=1.0)
    contrast: float = Field(..., ge=0.0, le=1.0)
    sharpness: float = Field(..., ge=0.0, le=1.0)
    has_good_lighting: bool

    @classmethod
    def neutral(cls) -> "QualityMetrics":
        """Uninformative metrics used when the bitmap cannot be analyzed."""
        return cls(
            brightness=0.5,
            contrast=0.5,
            sharpness=0.5,
            has_good_lighting=False,
        )


# =============================================================================
# RECOGNITION MODELS
# =============================================================================

class RecognizedLine(BaseModel):
    """
    One text region as read by the recognizer.

    `alternates` holds the recognizer's other readings of the same region,
    best first. They may be empty.
    """
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    alternates: list[str] = Field(default_factory=list)


class RecognitionOptions(BaseModel):
    """Options passed to the text recognizer for one call."""

    recognition_level: str = Field(
        default="accurate",
        pattern="^(accurate|fast)$",
    )
    use_language_correction: bool = True
    languages: list[str] = Field(default_factory=list)
    custom_words: list[str] = Field(
        default_factory=list,
        description="Domain vocabulary hints (e.g. 'total', 'Rs', 'LKR')"
    )


# =============================================================================
# EXTRACTION MODELS
# =============================================================================

class AmountCandidate(BaseModel):
    """
    A provisional amount found in the text.

    Many are produced per line; only the selected best one survives
    into an ExtractionResult.
    """
    model_config = ConfigDict(frozen=True)

    value: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    confidence: float = Field(..., ge=0.0, le=1.0)


class CategoryMatch(BaseModel):
    """Outcome of the category classifier."""
    model_config = ConfigDict(frozen=True)

    category: Optional[ExpenseCategory] = None
    confidence: float = Field(default=0.0, ge=0.0)


class ExtractionResult(BaseModel):
    """
    Structured data reconstructed from one receipt.

    CRITICAL: This is PROPOSED data, NOT verified.
    Every field is a suggestion pending human confirmation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Extraction metadata
    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction"
    )
    extracted_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When extraction was performed"
    )
    pass_count: int = Field(
        default=1,
        ge=0,
        description="Number of recognition passes that contributed"
    )

    # Extracted fields
    amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        le=MAX_AMOUNT,
        description="Receipt total"
    )
    raw_text: str = Field(
        default="",
        description="Recognized text, kept for manual review"
    )
    suggested_category: Optional[ExpenseCategory] = None
    confidence: float = Field(
        default=0.0,
        description="Overall confidence in the extraction (0-1)"
    )
    merchant: Optional[str] = Field(
        default=None,
        max_length=200,
    )
    transaction_date: Optional[date] = None

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp(cls, v) -> float:
        """Confidence is always kept inside [0, 1]."""
        return clamp_confidence(v)

    @classmethod
    def empty(cls) -> "ExtractionResult":
        """The result returned when nothing could be read."""
        return cls(
            amount=None,
            raw_text="",
            confidence=0.0,
            pass_count=0,
        )

    @property
    def has_amount(self) -> bool:
        return self.amount is not None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ConfidenceAdjustment(BaseModel):
    """One multiplicative correction applied by the result validator."""
    model_config = ConfigDict(frozen=True)

    reason: str
    factor: float = Field(..., gt=0.0)


class ValidationReport(BaseModel):
    """
    How the validator arrived at a recalibrated confidence.

    Useful for audit logs and review UIs that want to explain a score.
    """

    original_confidence: float = Field(..., ge=0.0, le=1.0)
    adjusted_confidence: float = Field(..., ge=0.0, le=1.0)
    adjustments: list[ConfidenceAdjustment] = Field(default_factory=list)

    @property
    def combined_factor(self) -> float:
        factor = 1.0
        for adjustment in self.adjustments:
            factor *= adjustment.factor
        return factor


class PassOutcome(BaseModel):
    """What one recognition pass produced during multi-pass extraction."""

    variant: PassVariant
    result: Optional[ExtractionResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None
