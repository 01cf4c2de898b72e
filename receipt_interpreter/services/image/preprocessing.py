"""
Preprocessing Pipeline

Turns a receipt photo into an image optimized for text recognition.

ADJUSTMENTS APPLIED (fixed order, parameters chosen from QualityMetrics):
1. Exposure
2. Unsharp-mask sharpening
3. Contrast/brightness, saturation zeroed
4. Gamma
5. Luminance-weighted grayscale
6. Final luminance sharpening

Each stage is best-effort: a stage that fails leaves the intermediate
image unchanged and the pipeline continues. Only a pipeline that cannot
produce any output image raises PreprocessingFailedError; callers then
fall back to the unprocessed bitmap.
"""

from typing import Optional, Union
from uuid import UUID

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from receipt_interpreter.audit import AuditLogger
from receipt_interpreter.exceptions import InvalidImageError, PreprocessingFailedError
from receipt_interpreter.models.receipt import QualityMetrics
from receipt_interpreter.services.image.adjustments import (
    Adjustment,
    ColorControls,
    ExposureAdjust,
    GammaAdjust,
    LuminanceSharpen,
    Monochrome,
    StageOutcome,
    UnsharpMask,
    apply_stage,
    load_image,
)
from receipt_interpreter.services.image.quality import QualityAnalyzer


class PreprocessedImage(BaseModel):
    """Output of the pipeline with a record of every stage."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: Image.Image
    metrics: QualityMetrics
    stages: list[StageOutcome] = Field(default_factory=list)

    @property
    def applied(self) -> list[str]:
        """Kinds of the adjustments that actually changed the image."""
        return [stage.adjustment.kind for stage in self.stages if stage.applied]

    @property
    def skipped(self) -> list[str]:
        return [stage.adjustment.kind for stage in self.stages if not stage.applied]


class PreprocessingPipeline:
    """
    Quality-adaptive chain of image adjustments.

    Stateless apart from its collaborators; safe to share between
    concurrent passes.
    """

    def __init__(
        self,
        analyzer: Optional[QualityAnalyzer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._analyzer = analyzer or QualityAnalyzer()
        self._audit_logger = audit_logger

    def plan(self, metrics: QualityMetrics) -> list[Adjustment]:
        """Choose the adjustment parameters for an image with these metrics."""
        if metrics.brightness < 0.4:
            exposure = ExposureAdjust(ev=1.0)
        elif metrics.brightness > 0.7:
            exposure = ExposureAdjust(ev=-0.3)
        else:
            exposure = ExposureAdjust(ev=0.5)

        if metrics.sharpness < 0.6:
            unsharp = UnsharpMask(radius=2.5, intensity=0.8)
        else:
            unsharp = UnsharpMask(radius=1.5, intensity=0.5)

        color = ColorControls(
            contrast=1.5 if metrics.contrast < 0.5 else 1.2,
            brightness=0.0,
            saturation=0.0,
        )

        gamma = GammaAdjust(power=0.8 if metrics.brightness < 0.5 else 1.2)

        final_sharpen = LuminanceSharpen(sharpness=0.6 if metrics.sharpness < 0.6 else 0.4)

        return [exposure, unsharp, color, gamma, Monochrome(), final_sharpen]

    def run(
        self,
        source: Union[Image.Image, bytes],
        metrics: Optional[QualityMetrics] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PreprocessedImage:
        """
        Run every stage over the image.

        Args:
            source: The bitmap to preprocess
            metrics: Precomputed metrics; analyzed here when omitted
            correlation_id: Threaded into audit events

        Returns:
            PreprocessedImage with the final image and stage outcomes

        Raises:
            PreprocessingFailedError: If no output image can be produced
        """
        try:
            image = load_image(source)
        except InvalidImageError as e:
            raise PreprocessingFailedError(f"Preprocessing failed: {e}") from e

        if metrics is None:
            metrics = self._analyzer.analyze(image)

        stages = []
        current = image
        for adjustment in self.plan(metrics):
            outcome = apply_stage(current, adjustment)
            stages.append(outcome)

            if not outcome.applied and self._audit_logger:
                self._audit_logger.log_stage_skipped(
                    stage=adjustment.kind,
                    error_message=outcome.error or "",
                    correlation_id=correlation_id,
                )

            # Intermediate images are ours to release once superseded
            if outcome.image is not current and current is not image:
                current.close()
            current = outcome.image

        width, height = current.size
        if width == 0 or height == 0:
            raise PreprocessingFailedError("Preprocessing produced an empty image")

        return PreprocessedImage(image=current, metrics=metrics, stages=stages)


def preprocess(source: Union[Image.Image, bytes]) -> Image.Image:
    """
    Preprocess a bitmap with default settings.

    Raises:
        PreprocessingFailedError: If no output image can be produced
    """
    return PreprocessingPipeline().run(source).image
