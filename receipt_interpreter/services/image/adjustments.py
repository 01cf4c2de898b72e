"""
Image Adjustments

The closed set of filters the preprocessing pipeline may apply.

DESIGN DECISION: Each adjustment is a typed model with its own parameters
rather than a filter name looked up at runtime. The pipeline builds a list
of these, and apply_stage() turns each into either a new image or an
explicit "unchanged" outcome.

All filters are implemented with Pillow and return a NEW image; the input
is never modified.
"""

from io import BytesIO
from typing import Annotated, Literal, Optional, Union

from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field

from receipt_interpreter.exceptions import InvalidImageError


# Modes Pillow's enhancers and point() handle without conversion
_NATIVE_MODES = {"L", "RGB"}


def load_image(source: Union[Image.Image, bytes]) -> Image.Image:
    """
    Decode a bitmap into an image the filters can work on.

    Accepts raw encoded bytes or a PIL image. Images in exotic modes
    (palette, RGBA, CMYK, 16-bit) are converted to RGB.

    Raises:
        InvalidImageError: If the bitmap cannot be decoded or is empty
    """
    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise InvalidImageError("Empty image data")
        try:
            image = Image.open(BytesIO(source))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise InvalidImageError(f"Could not decode image: {e}") from e
    elif isinstance(source, Image.Image):
        image = source
    else:
        raise InvalidImageError(f"Unsupported image type: {type(source).__name__}")

    width, height = image.size
    if width == 0 or height == 0:
        raise InvalidImageError("Image has no pixels")

    if image.mode not in _NATIVE_MODES:
        try:
            image = image.convert("RGB")
        except (OSError, ValueError) as e:
            raise InvalidImageError(f"Could not convert image from {image.mode}: {e}") from e

    return image


# =============================================================================
# ADJUSTMENT MODELS
# =============================================================================

class ExposureAdjust(BaseModel):
    """Exposure change in EV stops (+1 doubles the light)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["exposure"] = "exposure"
    ev: float = Field(..., ge=-4.0, le=4.0)


class UnsharpMask(BaseModel):
    """Unsharp-mask sharpening."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["unsharp_mask"] = "unsharp_mask"
    radius: float = Field(..., gt=0.0, le=20.0)
    intensity: float = Field(..., ge=0.0, le=2.0)


class ColorControls(BaseModel):
    """
    Contrast, brightness and saturation in one stage.

    contrast and saturation are factors (1.0 = unchanged),
    brightness is an offset (0.0 = unchanged).
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["color_controls"] = "color_controls"
    contrast: float = Field(default=1.0, ge=0.0, le=4.0)
    brightness: float = Field(default=0.0, ge=-1.0, le=1.0)
    saturation: float = Field(default=1.0, ge=0.0, le=2.0)


class GammaAdjust(BaseModel):
    """Gamma curve: output = input ** power on normalized intensities."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["gamma"] = "gamma"
    power: float = Field(..., gt=0.0, le=5.0)


class Monochrome(BaseModel):
    """Luminance-weighted grayscale conversion (ITU-R 601-2 luma)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["monochrome"] = "monochrome"


class LuminanceSharpen(BaseModel):
    """Sharpen the luminance channel only."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["luminance_sharpen"] = "luminance_sharpen"
    sharpness: float = Field(..., ge=0.0, le=2.0)


class PerspectiveCorrection(BaseModel):
    """
    Map a source quadrilateral onto an upright rectangle.

    quad corners are ordered top-left, top-right, bottom-right, bottom-left.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["perspective"] = "perspective"
    quad: tuple[
        tuple[float, float],
        tuple[float, float],
        tuple[float, float],
        tuple[float, float],
    ]


Adjustment = Annotated[
    Union[
        ExposureAdjust,
        UnsharpMask,
        ColorControls,
        GammaAdjust,
        Monochrome,
        LuminanceSharpen,
        PerspectiveCorrection,
    ],
    Field(discriminator="kind"),
]


class StageOutcome(BaseModel):
    """
    Result of one pipeline stage.

    When applied is False the image is the stage's input, unchanged,
    and error says why.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    adjustment: Adjustment
    image: Image.Image
    applied: bool
    error: Optional[str] = None


# =============================================================================
# FILTER IMPLEMENTATIONS
# =============================================================================

def _exposure(image: Image.Image, adj: ExposureAdjust) -> Image.Image:
    return ImageEnhance.Brightness(image).enhance(2.0 ** adj.ev)


def _unsharp_mask(image: Image.Image, adj: UnsharpMask) -> Image.Image:
    percent = int(round(adj.intensity * 200))
    return image.filter(ImageFilter.UnsharpMask(radius=adj.radius, percent=percent, threshold=3))


def _color_controls(image: Image.Image, adj: ColorControls) -> Image.Image:
    result = ImageEnhance.Contrast(image).enhance(adj.contrast)
    if adj.brightness:
        result = ImageEnhance.Brightness(result).enhance(1.0 + adj.brightness)
    if result.mode == "RGB":
        result = ImageEnhance.Color(result).enhance(adj.saturation)
    return result


def _gamma(image: Image.Image, adj: GammaAdjust) -> Image.Image:
    table = [min(255, int(round(255 * (i / 255.0) ** adj.power))) for i in range(256)]
    return image.point(table * len(image.getbands()))


def _monochrome(image: Image.Image, adj: Monochrome) -> Image.Image:
    # Pillow's L conversion is L = R * 299/1000 + G * 587/1000 + B * 114/1000
    return image.convert("L")


def _luminance_sharpen(image: Image.Image, adj: LuminanceSharpen) -> Image.Image:
    sharpen = ImageFilter.UnsharpMask(radius=1.0, percent=int(round(adj.sharpness * 250)), threshold=2)
    if image.mode == "L":
        return image.filter(sharpen)

    y, cb, cr = image.convert("YCbCr").split()
    return Image.merge("YCbCr", (y.filter(sharpen), cb, cr)).convert(image.mode)


def _perspective(image: Image.Image, adj: PerspectiveCorrection) -> Image.Image:
    (tlx, tly), (trx, try_), (brx, bry), (blx, bly) = adj.quad

    width = int(round(max(
        ((trx - tlx) ** 2 + (try_ - tly) ** 2) ** 0.5,
        ((brx - blx) ** 2 + (bry - bly) ** 2) ** 0.5,
    )))
    height = int(round(max(
        ((blx - tlx) ** 2 + (bly - tly) ** 2) ** 0.5,
        ((brx - trx) ** 2 + (bry - try_) ** 2) ** 0.5,
    )))
    if width < 1 or height < 1:
        raise ValueError("Perspective quad is degenerate")

    # Pillow expects upper-left, lower-left, lower-right, upper-right
    data = (tlx, tly, blx, bly, brx, bry, trx, try_)
    return image.transform(
        (width, height),
        Image.Transform.QUAD,
        data,
        resample=Image.Resampling.BICUBIC,
    )


_FILTERS = {
    "exposure": _exposure,
    "unsharp_mask": _unsharp_mask,
    "color_controls": _color_controls,
    "gamma": _gamma,
    "monochrome": _monochrome,
    "luminance_sharpen": _luminance_sharpen,
    "perspective": _perspective,
}


def apply_adjustment(image: Image.Image, adjustment: Adjustment) -> Image.Image:
    """
    Apply one adjustment and return the new image.

    Raises whatever Pillow raises; use apply_stage() for the
    best-effort variant.
    """
    return _FILTERS[adjustment.kind](image, adjustment)


def apply_stage(image: Image.Image, adjustment: Adjustment) -> StageOutcome:
    """
    Apply one adjustment, falling back to the input image on failure.
    """
    try:
        result = apply_adjustment(image, adjustment)
    except Exception as e:
        return StageOutcome(
            adjustment=adjustment,
            image=image,
            applied=False,
            error=f"{type(e).__name__}: {e}",
        )

    return StageOutcome(adjustment=adjustment, image=result, applied=True)
