"""
Main Orchestrator for the Receipt Interpreter

This module ties together all the components and defines the
end-to-end flows for:
1. Single pass (image → analyze → preprocess → recognize → extract → validate)
2. Multi-pass (several image variants, run concurrently, then fused)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A failed pass contributes nothing; it never fails the whole call
- Multi-pass extraction NEVER raises; "found nothing" is an empty result
- Every pass is audited under one correlation ID

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Union
from uuid import UUID

from PIL import Image

from receipt_interpreter.audit import AuditLogger, configure_logging, create_correlation_id
from receipt_interpreter.config import ExtractionSettings, get_settings, mindee_configured
from receipt_interpreter.exceptions import (
    InvalidImageError,
    NoTextFoundError,
    PreprocessingFailedError,
    ProcessingFailedError,
    ReceiptExtractionError,
    RecognitionError,
)
from receipt_interpreter.extraction import (
    AmountExtractor,
    CategoryClassifier,
    DateExtractor,
    MerchantExtractor,
    select_best_amount,
)
from receipt_interpreter.models.receipt import (
    ExtractionResult,
    PassOutcome,
    PassVariant,
    QualityMetrics,
    RecognitionOptions,
    RecognizedLine,
)
from receipt_interpreter.services.image import (
    ColorControls,
    Monochrome,
    PreprocessingPipeline,
    QualityAnalyzer,
    apply_stage,
    correct_perspective,
    load_image,
)
from receipt_interpreter.services.ocr import MindeeTextRecognizer, TextRecognizer, options_from_settings
from receipt_interpreter.validation import ResultValidator


# Adjustments producing the high-contrast variant
HIGH_CONTRAST_ADJUSTMENTS = (
    ColorControls(contrast=2.0, brightness=0.1, saturation=0.0),
    Monochrome(),
)


class ReceiptExtractor:
    """
    Orchestrates receipt interpretation.

    Flow of one pass:
    1. Analyze → QualityMetrics of the variant
    2. Preprocess → adaptive filter chain (falls back to the variant)
    3. Recognize → text lines from the recognizer
    4. Interpret → amount, category, merchant, date
    5. Validate → recalibrated confidence

    All collaborators are injected; nothing here is process-global.
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        analyzer: Optional[QualityAnalyzer] = None,
        pipeline: Optional[PreprocessingPipeline] = None,
        amount_extractor: Optional[AmountExtractor] = None,
        category_classifier: Optional[CategoryClassifier] = None,
        merchant_extractor: Optional[MerchantExtractor] = None,
        date_extractor: Optional[DateExtractor] = None,
        validator: Optional[ResultValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ExtractionSettings] = None,
        recognition_options: Optional[RecognitionOptions] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings or get_settings().extraction
        self._recognizer = recognizer or MindeeTextRecognizer()
        self._analyzer = analyzer or QualityAnalyzer()
        self._pipeline = pipeline or PreprocessingPipeline(self._analyzer, audit_logger)
        self._amount_extractor = amount_extractor or AmountExtractor(self._settings)
        self._category_classifier = category_classifier or CategoryClassifier(self._settings)
        self._merchant_extractor = merchant_extractor or MerchantExtractor(self._settings)
        self._date_extractor = date_extractor or DateExtractor(clock)
        self._validator = validator or ResultValidator()
        self._audit_logger = audit_logger
        self._options = recognition_options or options_from_settings()

    # =========================================================================
    # IMAGE STAGES
    # =========================================================================

    def analyze_quality(
        self,
        image: Union[Image.Image, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> QualityMetrics:
        """Measure the image. Never raises."""
        metrics = self._analyzer.analyze(image)
        if self._audit_logger:
            self._audit_logger.log_quality_analyzed(
                brightness=metrics.brightness,
                contrast=metrics.contrast,
                sharpness=metrics.sharpness,
                has_good_lighting=metrics.has_good_lighting,
                correlation_id=correlation_id,
            )
        return metrics

    def preprocess(
        self,
        image: Union[Image.Image, bytes],
        metrics: Optional[QualityMetrics] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Image.Image:
        """
        Produce the recognition-ready version of an image.

        Raises:
            PreprocessingFailedError: If no output image can be produced
        """
        return self._pipeline.run(image, metrics=metrics, correlation_id=correlation_id).image

    # =========================================================================
    # TEXT INTERPRETATION
    # =========================================================================

    def _validate(
        self,
        result: ExtractionResult,
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        report = self._validator.assess(result)
        if self._audit_logger:
            self._audit_logger.log_result_validated(
                extraction_id=result.extraction_id,
                original_confidence=report.original_confidence,
                adjusted_confidence=report.adjusted_confidence,
                adjustments=[a.model_dump() for a in report.adjustments],
                correlation_id=correlation_id,
            )
        return result.model_copy(update={"confidence": report.adjusted_confidence})

    def interpret_lines(
        self,
        lines: list[RecognizedLine],
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Turn recognized lines into a validated ExtractionResult.

        Synchronous and free of I/O. Callers with their own recognizer can
        use this directly.

        The result's base confidence is that of the selected amount (0.0
        when no amount was found); the validator then recalibrates it.
        """
        usable = [line for line in lines if line.text.strip()]
        if not usable:
            return ExtractionResult.empty()

        raw_text = "\n".join(line.text for line in usable)

        candidates = self._amount_extractor.extract_from_lines(usable)
        best = select_best_amount(
            candidates,
            high_confidence=self._settings.high_confidence_threshold,
            reasonable_confidence=self._settings.reasonable_confidence_threshold,
        )
        category = self._category_classifier.classify(raw_text)

        result = ExtractionResult(
            amount=best.value if best else None,
            raw_text=raw_text,
            suggested_category=category.category,
            confidence=best.confidence if best else 0.0,
            merchant=self._merchant_extractor.extract(raw_text),
            transaction_date=self._date_extractor.extract(raw_text),
        )
        return self._validate(result, correlation_id)

    # =========================================================================
    # PASSES
    # =========================================================================

    async def _run_pass(
        self,
        image: Image.Image,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ExtractionResult, int]:
        """
        Run one full pass over an already decoded image.

        Returns:
            (validated result, number of recognized lines)
        """
        metrics = self.analyze_quality(image, correlation_id)

        try:
            processed = self.preprocess(image, metrics=metrics, correlation_id=correlation_id)
        except PreprocessingFailedError as e:
            if self._audit_logger:
                self._audit_logger.log_preprocessing_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            processed = image

        try:
            lines = await self._recognizer.recognize(processed, self._options)
        except RecognitionError as e:
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service=e.service,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        finally:
            if processed is not image:
                processed.close()

        usable = [line for line in lines if line.text.strip()]
        if not usable:
            raise NoTextFoundError("No text found in image")

        try:
            result = self.interpret_lines(usable, correlation_id)
        except ReceiptExtractionError:
            raise
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"line_count": len(usable)},
                    correlation_id=correlation_id,
                )
            raise ProcessingFailedError(f"Failed to interpret recognized text: {e}") from e

        return result, len(usable)

    async def extract_single(
        self,
        image: Union[Image.Image, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Extract receipt data with one pass over the unmodified image.

        Raises:
            InvalidImageError: If the bitmap cannot be decoded
            NoTextFoundError: If the recognizer read nothing
            RecognitionError: If the recognizer failed
            ProcessingFailedError: If interpretation failed unexpectedly
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            source = load_image(image)
        except InvalidImageError as e:
            if self._audit_logger:
                self._audit_logger.log_image_decode_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        result, _ = await self._run_pass(source, correlation_id)
        return result

    def _build_variants(self, source: Image.Image) -> list[tuple[PassVariant, Image.Image]]:
        """The images recognized in multi-pass mode, the source first."""
        variants = [(PassVariant.ORIGINAL, source)]

        high_contrast = source
        for adjustment in HIGH_CONTRAST_ADJUSTMENTS:
            outcome = apply_stage(high_contrast, adjustment)
            if outcome.applied and high_contrast is not source:
                high_contrast.close()
            high_contrast = outcome.image
        variants.append((PassVariant.HIGH_CONTRAST, high_contrast))

        if self._settings.enable_perspective_pass:
            corrected = correct_perspective(source)
            if corrected is not None:
                variants.append((PassVariant.PERSPECTIVE_CORRECTED, corrected))

        return variants

    async def _run_variant(
        self,
        variant: PassVariant,
        image: Image.Image,
        correlation_id: UUID,
    ) -> PassOutcome:
        """Run one pass, converting any failure into a failed PassOutcome."""
        if self._audit_logger:
            self._audit_logger.log_pass_started(variant=variant.value, correlation_id=correlation_id)

        try:
            result, line_count = await self._run_pass(image, correlation_id)
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_pass_failed(
                    variant=variant.value,
                    error=e,
                    correlation_id=correlation_id,
                )
            return PassOutcome(variant=variant, error=f"{type(e).__name__}: {e}")

        if self._audit_logger:
            self._audit_logger.log_pass_completed(
                variant=variant.value,
                extraction_id=result.extraction_id,
                confidence=result.confidence,
                line_count=line_count,
                correlation_id=correlation_id,
            )
        return PassOutcome(variant=variant, result=result)

    async def run_passes(
        self,
        image: Union[Image.Image, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> list[PassOutcome]:
        """
        Run every variant concurrently and wait for all of them.

        Never raises. An undecodable image yields no outcomes.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            source = load_image(image)
        except InvalidImageError as e:
            if self._audit_logger:
                self._audit_logger.log_image_decode_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return []

        variants = self._build_variants(source)
        try:
            outcomes = await asyncio.gather(*(
                self._run_variant(variant, variant_image, correlation_id)
                for variant, variant_image in variants
            ))
        finally:
            for _, variant_image in variants:
                if variant_image is not source:
                    variant_image.close()

        return list(outcomes)

    async def extract_multi_pass(
        self,
        image: Union[Image.Image, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Extract receipt data by fusing several passes.

        Never raises: when every pass fails the empty, zero-confidence
        result is returned.
        """
        correlation_id = correlation_id or create_correlation_id()
        outcomes = await self.run_passes(image, correlation_id)
        results = [outcome.result for outcome in outcomes if outcome.succeeded]
        return self.fuse(results, correlation_id)

    # =========================================================================
    # FUSION
    # =========================================================================

    def fuse(
        self,
        results: list[ExtractionResult],
        correlation_id: Optional[UUID] = None,
    ) -> ExtractionResult:
        """
        Combine the results of several passes into one.

        - No results: the empty result
        - One result: returned unchanged
        - Several: amount, category, merchant and date each come from the
          most confident pass that found one; raw text is concatenated;
          confidence is the mean; the fused result is validated again
        """
        if not results:
            return ExtractionResult.empty()
        if len(results) == 1:
            return results[0]

        # Stable sort keeps pass order on confidence ties
        ranked = sorted(results, key=lambda r: r.confidence, reverse=True)

        def most_confident(field: str):
            for result in ranked:
                value = getattr(result, field)
                if value is not None:
                    return value
            return None

        fused = ExtractionResult(
            pass_count=len(results),
            amount=most_confident("amount"),
            raw_text="\n\n".join(r.raw_text for r in results if r.raw_text),
            suggested_category=most_confident("suggested_category"),
            confidence=sum(r.confidence for r in results) / len(results),
            merchant=most_confident("merchant"),
            transaction_date=most_confident("transaction_date"),
        )
        fused = self._validate(fused, correlation_id)

        if self._audit_logger:
            self._audit_logger.log_fusion_completed(
                extraction_id=fused.extraction_id,
                pass_count=fused.pass_count,
                confidence=fused.confidence,
                correlation_id=correlation_id,
            )
        return fused


def create_extractor(
    recognizer: Optional[TextRecognizer] = None,
    use_audit: bool = True,
) -> ReceiptExtractor:
    """
    Factory function to create a fully wired ReceiptExtractor.

    Args:
        recognizer: Text recognizer to use. Defaults to Mindee when
                    MINDEE_API_KEY is configured.
        use_audit: Whether to emit audit events.

    Raises:
        RecognitionError: If no recognizer is given and Mindee is not configured
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if recognizer is None:
        if not mindee_configured():
            raise RecognitionError(
                "mindee",
                "No text recognizer configured. Set MINDEE_API_KEY or pass a recognizer.",
            )
        recognizer = MindeeTextRecognizer()

    return ReceiptExtractor(
        recognizer=recognizer,
        audit_logger=AuditLogger() if use_audit else None,
        settings=settings.extraction,
        recognition_options=options_from_settings(settings.recognition),
    )
