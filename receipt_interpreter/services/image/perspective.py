"""
Perspective Correction

Finds the receipt paper in a photo and warps it to an upright rectangle.

Detection works on a downsampled grayscale copy: pixels brighter than
the frame average are treated as paper, and the four corners are the
paper pixels with the extreme x+y and x-y values. This is cheap and
good enough for the usual case of a light receipt on a darker surface.
When the detected quad already spans the frame, there is nothing to
correct and no variant is produced.
"""

from typing import Optional

import structlog
from PIL import Image, ImageStat

from receipt_interpreter.services.image.adjustments import PerspectiveCorrection, apply_adjustment


logger = structlog.get_logger(__name__)

DETECTION_SIZE = 200
# Corners closer than this (fraction of the diagonal) to the frame corners
# count as "already upright"
FRAME_TOLERANCE = 0.03
# A paper region smaller than this fraction of the frame is not trusted
MIN_PAPER_FRACTION = 0.2

Quad = tuple[
    tuple[float, float],
    tuple[float, float],
    tuple[float, float],
    tuple[float, float],
]


def _quad_area(quad: Quad) -> float:
    """Shoelace area of a quad."""
    area = 0.0
    for i, (x1, y1) in enumerate(quad):
        x2, y2 = quad[(i + 1) % 4]
        area += x1 * y2 - x2 * y1
    return abs(area) / 2.0


def detect_paper_quad(image: Image.Image) -> Optional[Quad]:
    """
    Locate the paper quadrilateral in full-resolution coordinates.

    Returns corners ordered top-left, top-right, bottom-right,
    bottom-left, or None when no usable paper region is found or the
    region already covers the frame.
    """
    width, height = image.size
    scale = min(1.0, DETECTION_SIZE / max(width, height))
    small_size = (max(1, int(width * scale)), max(1, int(height * scale)))

    small = image.convert("L").resize(small_size, Image.Resampling.BILINEAR)
    threshold = ImageStat.Stat(small).mean[0]
    sw, sh = small.size

    tl = tr = br = bl = None
    paper_pixels = 0
    for index, value in enumerate(small.getdata()):
        if value <= threshold:
            continue
        paper_pixels += 1
        x, y = index % sw, index // sw
        if tl is None:
            tl = tr = br = bl = (x, y)
            continue
        if x + y < tl[0] + tl[1]:
            tl = (x, y)
        if x + y > br[0] + br[1]:
            br = (x, y)
        if x - y > tr[0] - tr[1]:
            tr = (x, y)
        if x - y < bl[0] - bl[1]:
            bl = (x, y)

    small.close()

    if tl is None or paper_pixels < MIN_PAPER_FRACTION * sw * sh:
        return None

    # Map pixel centers back to the full-resolution frame
    sx, sy = width / sw, height / sh
    quad = tuple(((x + 0.5) * sx, (y + 0.5) * sy) for x, y in (tl, tr, br, bl))

    if _quad_area(quad) < MIN_PAPER_FRACTION * width * height:
        return None

    frame = ((0, 0), (width, 0), (width, height), (0, height))
    tolerance = FRAME_TOLERANCE * (width ** 2 + height ** 2) ** 0.5
    if all(
        ((qx - fx) ** 2 + (qy - fy) ** 2) ** 0.5 <= tolerance
        for (qx, qy), (fx, fy) in zip(quad, frame)
    ):
        return None

    return quad


def correct_perspective(image: Image.Image) -> Optional[Image.Image]:
    """
    Produce a perspective-corrected copy of the image.

    Returns None when no correction applies, so callers can skip the
    corrected variant entirely.
    """
    try:
        quad = detect_paper_quad(image)
        if quad is None:
            return None
        return apply_adjustment(image, PerspectiveCorrection(quad=quad))
    except Exception as e:
        logger.warning("perspective_correction_failed", error=str(e))
        return None
