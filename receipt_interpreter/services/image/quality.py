"""
Image Quality Analyzer

Produces the coarse metrics the preprocessing pipeline uses to choose
its filter parameters.

DESIGN DECISION: We use simple heuristics rather than real edge
detection because:
1. Only the brightness band actually steers preprocessing
2. Lower latency on large photos
3. Predictable behavior

Only the central 50% x 50% of the frame is sampled. Receipt photos
usually have table, hand or shadow at the edges.
"""

from typing import Union

import structlog
from PIL import Image, ImageStat

from receipt_interpreter.models.receipt import QualityMetrics
from receipt_interpreter.services.image.adjustments import load_image


logger = structlog.get_logger(__name__)

# Brightness band in which contrast/sharpness are assumed good
USABLE_BRIGHTNESS = (0.2, 0.8)
# Brightness band considered well lit
GOOD_LIGHTING = (0.3, 0.8)

GOOD_CONTRAST = 0.7
DEGRADED_CONTRAST = 0.4
GOOD_SHARPNESS = 0.7
DEGRADED_SHARPNESS = 0.4


def _central_region(image: Image.Image) -> Image.Image:
    """Crop the middle 50% x 50% of the image."""
    width, height = image.size
    left, top = width // 4, height // 4
    right = max(left + 1, left + width // 2)
    bottom = max(top + 1, top + height // 2)
    return image.crop((left, top, right, bottom))


class QualityAnalyzer:
    """Measures brightness and derives contrast/sharpness estimates."""

    def analyze(self, source: Union[Image.Image, bytes]) -> QualityMetrics:
        """
        Analyze a bitmap.

        Never raises: an image that cannot be decoded or sampled yields
        QualityMetrics.neutral().
        """
        try:
            image = load_image(source)
            region = _central_region(image).convert("L")
            brightness = ImageStat.Stat(region).mean[0] / 255.0
        except Exception as e:
            logger.warning("quality_analysis_failed", error=str(e))
            return QualityMetrics.neutral()

        brightness = max(0.0, min(1.0, brightness))
        usable = USABLE_BRIGHTNESS[0] <= brightness <= USABLE_BRIGHTNESS[1]

        return QualityMetrics(
            brightness=brightness,
            contrast=GOOD_CONTRAST if usable else DEGRADED_CONTRAST,
            sharpness=GOOD_SHARPNESS if usable else DEGRADED_SHARPNESS,
            has_good_lighting=GOOD_LIGHTING[0] <= brightness <= GOOD_LIGHTING[1],
        )


def analyze_quality(source: Union[Image.Image, bytes]) -> QualityMetrics:
    """Module-level shortcut for QualityAnalyzer().analyze()."""
    return QualityAnalyzer().analyze(source)
