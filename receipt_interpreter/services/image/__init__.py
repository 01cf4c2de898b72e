"""Image processing services package."""

from receipt_interpreter.services.image.adjustments import (
    Adjustment,
    ColorControls,
    ExposureAdjust,
    GammaAdjust,
    LuminanceSharpen,
    Monochrome,
    PerspectiveCorrection,
    StageOutcome,
    UnsharpMask,
    apply_adjustment,
    apply_stage,
    load_image,
)
from receipt_interpreter.services.image.perspective import correct_perspective, detect_paper_quad
from receipt_interpreter.services.image.preprocessing import (
    PreprocessedImage,
    PreprocessingPipeline,
    preprocess,
)
from receipt_interpreter.services.image.quality import QualityAnalyzer, analyze_quality

__all__ = [
    "Adjustment",
    "ColorControls",
    "ExposureAdjust",
    "GammaAdjust",
    "LuminanceSharpen",
    "Monochrome",
    "PerspectiveCorrection",
    "PreprocessedImage",
    "PreprocessingPipeline",
    "QualityAnalyzer",
    "StageOutcome",
    "UnsharpMask",
    "analyze_quality",
    "apply_adjustment",
    "apply_stage",
    "correct_perspective",
    "detect_paper_quad",
    "load_image",
    "preprocess",
]
