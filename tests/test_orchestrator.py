"""
Tests for the ReceiptExtractor orchestrator.

The recognizer is always the in-process FakeRecognizer; async flows
are driven with asyncio.run().
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from receipt_interpreter.audit import AuditLogger
from receipt_interpreter.config import ExtractionSettings
from receipt_interpreter.exceptions import (
    InvalidImageError,
    NoTextFoundError,
    RecognitionError,
)
from receipt_interpreter.models.audit import AuditEventType
from receipt_interpreter.models.receipt import (
    ExpenseCategory,
    ExtractionResult,
    PassVariant,
    ValidationReport,
)
from receipt_interpreter.orchestrator import ReceiptExtractor, create_extractor
from receipt_interpreter.validation import ResultValidator


class RecordingAuditLogger(AuditLogger):
    """Keeps every event in memory instead of writing it."""

    def __init__(self):
        super().__init__()
        self.events = []

    def log(self, event) -> bool:
        self.events.append(event)
        return True

    def types(self) -> list[AuditEventType]:
        return [event.event_type for event in self.events]


class PassThroughValidator(ResultValidator):
    """Leaves confidence untouched so fusion arithmetic is visible."""

    def assess(self, result):
        return ValidationReport(
            original_confidence=result.confidence,
            adjusted_confidence=result.confidence,
        )


@pytest.fixture
def make_extractor(fake_recognizer_cls, fixed_clock, extraction_settings):
    def _make(responses, **kwargs):
        kwargs.setdefault("settings", extraction_settings)
        kwargs.setdefault("clock", fixed_clock)
        return ReceiptExtractor(recognizer=fake_recognizer_cls(responses), **kwargs)
    return _make


class TestExtractSingle:
    """Tests for one-pass extraction."""

    def test_good_receipt(self, make_extractor, solid_image, good_receipt_lines):
        """Test every field is extracted from a well-formed receipt."""
        extractor = make_extractor(good_receipt_lines)

        result = asyncio.run(extractor.extract_single(solid_image(200)))

        assert result.amount == Decimal("1250.00")
        assert result.suggested_category == ExpenseCategory.FOOD_AND_DINING
        assert result.merchant == "KFC Kollupitiya"
        assert result.transaction_date == date(2025, 6, 10)
        assert 0.0 < result.confidence <= 1.0
        assert result.pass_count == 1
        assert "GRAND TOTAL" in result.raw_text

    def test_recognizer_receives_preprocessed_image(self, make_extractor, solid_image, good_receipt_lines):
        """Test the recognizer sees the grayscale output of the pipeline."""
        extractor = make_extractor(good_receipt_lines)

        asyncio.run(extractor.extract_single(solid_image(200)))

        recognizer = extractor._recognizer
        assert recognizer.calls == [((120, 160), "L")]
        assert "total" in recognizer.options.custom_words

    def test_accepts_encoded_bytes(self, make_extractor, solid_image, png_bytes, good_receipt_lines):
        """Test encoded bitmaps are accepted."""
        extractor = make_extractor(good_receipt_lines)
        result = asyncio.run(extractor.extract_single(png_bytes(solid_image(200))))
        assert result.amount == Decimal("1250.00")

    def test_invalid_image(self, make_extractor):
        """Test undecodable bytes raise InvalidImageError."""
        extractor = make_extractor([])
        with pytest.raises(InvalidImageError):
            asyncio.run(extractor.extract_single(b"definitely not a photo"))

    def test_no_text(self, make_extractor, solid_image):
        """Test an empty recognition raises NoTextFoundError."""
        extractor = make_extractor([])
        with pytest.raises(NoTextFoundError):
            asyncio.run(extractor.extract_single(solid_image(200)))

    def test_blank_lines_are_no_text(self, make_extractor, solid_image, lines_from):
        """Test lines with only whitespace count as no text."""
        extractor = make_extractor(lines_from([("   ", 0.9), ("", 0.8)]))
        with pytest.raises(NoTextFoundError):
            asyncio.run(extractor.extract_single(solid_image(200)))

    def test_recognition_error_propagates(self, make_extractor, solid_image):
        """Test recognizer failures reach the caller and are audited."""
        audit = RecordingAuditLogger()
        extractor = make_extractor(RecognitionError("fake", "service down"), audit_logger=audit)

        with pytest.raises(RecognitionError) as exc_info:
            asyncio.run(extractor.extract_single(solid_image(200)))

        assert exc_info.value.service == "fake"
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in audit.types()

    def test_text_without_amount(self, make_extractor, solid_image, lines_from):
        """Test a readable receipt with no amount has zero base confidence."""
        extractor = make_extractor(lines_from([("Cargills Food City", 0.9)]))

        result = asyncio.run(extractor.extract_single(solid_image(200)))

        assert result.amount is None
        assert result.merchant == "Cargills Food City"
        assert result.confidence == 0.0


class TestInterpretLines:
    """Tests for the synchronous interpretation step."""

    def test_empty_lines(self, make_extractor):
        """Test no lines give the empty result."""
        result = make_extractor([]).interpret_lines([])

        assert result.amount is None
        assert result.raw_text == ""
        assert result.confidence == 0.0
        assert result.pass_count == 0

    def test_raw_text_joins_lines(self, make_extractor, lines_from):
        """Test raw text is the usable lines joined by newlines."""
        result = make_extractor([]).interpret_lines(
            lines_from([("Keells Super", 0.9), ("  ", 0.1), ("TOTAL Rs. 640.00", 0.9)])
        )
        assert result.raw_text == "Keells Super\nTOTAL Rs. 640.00"
        assert result.amount == Decimal("640.00")


class TestMultiPass:
    """Tests for concurrent multi-pass extraction and fusion."""

    def test_all_variants_run(self, make_extractor, receipt_photo, good_receipt_lines):
        """Test original, high-contrast and perspective passes all run."""
        extractor = make_extractor(good_receipt_lines)

        outcomes = asyncio.run(extractor.run_passes(receipt_photo))

        assert [o.variant for o in outcomes] == [
            PassVariant.ORIGINAL,
            PassVariant.HIGH_CONTRAST,
            PassVariant.PERSPECTIVE_CORRECTED,
        ]
        assert all(o.succeeded for o in outcomes)
        sizes = {size for size, _ in extractor._recognizer.calls}
        assert len(sizes) == 2

    def test_perspective_pass_can_be_disabled(self, make_extractor, receipt_photo, good_receipt_lines):
        """Test the perspective pass is optional."""
        extractor = make_extractor(
            good_receipt_lines,
            settings=ExtractionSettings(enable_perspective_pass=False),
        )
        outcomes = asyncio.run(extractor.run_passes(receipt_photo))
        assert len(outcomes) == 2

    def test_uniform_image_has_no_perspective_pass(self, make_extractor, solid_image, good_receipt_lines):
        """Test no corrected variant when no paper is found."""
        outcomes = asyncio.run(make_extractor(good_receipt_lines).run_passes(solid_image(200)))
        assert [o.variant for o in outcomes] == [PassVariant.ORIGINAL, PassVariant.HIGH_CONTRAST]

    def test_fused_result(self, make_extractor, receipt_photo, good_receipt_lines):
        """Test fusing three agreeing passes."""
        result = asyncio.run(make_extractor(good_receipt_lines).extract_multi_pass(receipt_photo))

        assert result.pass_count == 3
        assert result.amount == Decimal("1250.00")
        assert result.merchant == "KFC Kollupitiya"
        assert result.raw_text.count("GRAND TOTAL") == 3
        assert 0.0 <= result.confidence <= 1.0

    def test_all_passes_fail(self, make_extractor, receipt_photo):
        """Test multi-pass never raises when every pass fails."""
        extractor = make_extractor(RecognitionError("fake", "service down"))

        result = asyncio.run(extractor.extract_multi_pass(receipt_photo))

        assert result.amount is None
        assert result.confidence == 0.0
        assert result.pass_count == 0

    def test_undecodable_image(self, make_extractor):
        """Test an undecodable image gives the empty result."""
        result = asyncio.run(make_extractor([]).extract_multi_pass(b"\x00\x01\x02"))
        assert result.pass_count == 0
        assert result.confidence == 0.0

    def test_failed_pass_contributes_nothing(self, make_extractor, solid_image, good_receipt_lines):
        """Test one surviving pass is returned as is."""
        calls = []

        def first_call_fails(image):
            calls.append(image.size)
            if len(calls) == 1:
                return RecognitionError("fake", "timeout")
            return good_receipt_lines

        extractor = make_extractor(first_call_fails)

        result = asyncio.run(extractor.extract_multi_pass(solid_image(200)))

        assert len(calls) == 2
        assert result.pass_count == 1
        assert result.amount == Decimal("1250.00")

    def test_amount_over_limit_never_reported(self, make_extractor, receipt_photo, lines_from):
        """Test an amount above one million never reaches the result."""
        extractor = make_extractor(lines_from([
            ("Abans Showroom", 0.9),
            ("TOTAL Rs. 1,000,001.00", 0.9),
        ]))

        result = asyncio.run(extractor.extract_multi_pass(receipt_photo))

        assert result.amount != Decimal("1000001.00")
        assert result.amount is None or result.amount <= Decimal("1000000")

    def test_passes_share_correlation_id(self, make_extractor, receipt_photo, good_receipt_lines):
        """Test every audit event of one call carries the same correlation ID."""
        audit = RecordingAuditLogger()
        extractor = make_extractor(good_receipt_lines, audit_logger=audit)

        asyncio.run(extractor.extract_multi_pass(receipt_photo))

        types = audit.types()
        assert types.count(AuditEventType.PASS_STARTED) == 3
        assert types.count(AuditEventType.PASS_COMPLETED) == 3
        assert types.count(AuditEventType.FUSION_COMPLETED) == 1
        assert len({event.correlation_id for event in audit.events}) == 1

    def test_failed_pass_is_audited(self, make_extractor, solid_image):
        """Test a failing pass emits a pass_failed event with the error type."""
        audit = RecordingAuditLogger()
        extractor = make_extractor(NoTextFoundError("blank"), audit_logger=audit)

        asyncio.run(extractor.extract_multi_pass(solid_image(200)))

        failed = [e for e in audit.events if e.event_type == AuditEventType.PASS_FAILED]
        assert len(failed) == 2
        assert failed[0].error_code == "NoTextFoundError"


class TestFusion:
    """Tests for combining pass results."""

    @pytest.fixture
    def extractor(self, make_extractor) -> ReceiptExtractor:
        return make_extractor([], validator=PassThroughValidator())

    def test_no_results(self, extractor):
        """Test fusing nothing gives the empty result."""
        fused = extractor.fuse([])
        assert fused.pass_count == 0
        assert fused.amount is None

    def test_single_result_unchanged(self, extractor):
        """Test a single result is returned as is."""
        only = ExtractionResult(amount=Decimal("10.00"), raw_text="x", confidence=0.3)
        assert extractor.fuse([only]) is only

    def test_fields_from_most_confident_pass(self, extractor):
        """Test each field comes from the most confident pass that has it."""
        results = [
            ExtractionResult(amount=Decimal("200.00"), merchant="Keells", confidence=0.6, raw_text="b",
                             suggested_category=ExpenseCategory.SHOPPING),
            ExtractionResult(amount=Decimal("100.00"), confidence=0.8, raw_text="a"),
            ExtractionResult(transaction_date=date(2025, 5, 1), confidence=0.4, raw_text=""),
        ]

        fused = extractor.fuse(results)

        assert fused.amount == Decimal("100.00")
        assert fused.merchant == "Keells"
        assert fused.suggested_category == ExpenseCategory.SHOPPING
        assert fused.transaction_date == date(2025, 5, 1)
        assert fused.raw_text == "b\n\na"
        assert fused.confidence == pytest.approx(0.6)
        assert fused.pass_count == 3

    def test_ties_keep_pass_order(self, extractor):
        """Test equal confidence prefers the earlier pass."""
        results = [
            ExtractionResult(amount=Decimal("300.00"), confidence=0.5, raw_text="first"),
            ExtractionResult(amount=Decimal("400.00"), confidence=0.5, raw_text="second"),
        ]
        assert extractor.fuse(results).amount == Decimal("300.00")

    def test_fused_result_is_validated(self, make_extractor):
        """Test the fused confidence goes through the validator."""
        extractor = make_extractor([])
        results = [
            ExtractionResult(amount=Decimal("0.50"), confidence=0.8, raw_text="alpha bravo charlie delta echo foxtrot"),
            ExtractionResult(amount=Decimal("0.50"), confidence=0.8, raw_text="golf india juliet kilo lima oscar"),
        ]
        # Amount under 1 costs a 0.4 factor
        assert extractor.fuse(results).confidence == pytest.approx(0.8 * 0.4)


class TestCreateExtractor:
    """Tests for the factory."""

    def test_requires_recognizer_or_mindee(self, monkeypatch):
        """Test the factory refuses to build without any recognizer."""
        monkeypatch.delenv("MINDEE_API_KEY", raising=False)
        with pytest.raises(RecognitionError):
            create_extractor()

    def test_with_given_recognizer(self, monkeypatch, fake_recognizer_cls, good_receipt_lines):
        """Test a supplied recognizer is used."""
        monkeypatch.delenv("MINDEE_API_KEY", raising=False)
        recognizer = fake_recognizer_cls(good_receipt_lines)

        extractor = create_extractor(recognizer=recognizer, use_audit=False)

        assert extractor._recognizer is recognizer
        assert extractor._audit_logger is None

    def test_with_mindee_key(self, monkeypatch):
        """Test Mindee is wired in when a key is configured."""
        monkeypatch.setenv("MINDEE_API_KEY", "test-key")

        extractor = create_extractor()

        assert extractor._recognizer.name == "mindee"
        assert isinstance(extractor._audit_logger, AuditLogger)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
