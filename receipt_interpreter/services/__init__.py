"""Services package."""

from receipt_interpreter.services.image import (
    PreprocessingPipeline,
    QualityAnalyzer,
    analyze_quality,
    correct_perspective,
    preprocess,
)
from receipt_interpreter.services.ocr import (
    MindeeTextRecognizer,
    TextRecognizer,
    detect_spans,
    options_from_settings,
)

__all__ = [
    # Image services
    "PreprocessingPipeline",
    "QualityAnalyzer",
    "analyze_quality",
    "correct_perspective",
    "preprocess",
    # Recognition services
    "MindeeTextRecognizer",
    "TextRecognizer",
    "detect_spans",
    "options_from_settings",
]
