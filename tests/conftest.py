"""
Shared fixtures for the receipt interpreter tests.

No test talks to a real recognizer: FakeRecognizer serves canned lines
(or raises) in-process. Images are synthesized with Pillow.
"""

from datetime import datetime
from io import BytesIO
from typing import Callable, Optional, Union

import pytest
from PIL import Image, ImageDraw

from receipt_interpreter.config import ExtractionSettings, get_settings
from receipt_interpreter.models.receipt import RecognitionOptions, RecognizedLine
from receipt_interpreter.services.ocr.interface import TextRecognizer


FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0)

GOOD_RECEIPT_LINES = [
    ("KFC Kollupitiya", 0.95),
    ("No 12 Galle Road Colombo", 0.9),
    ("Tel: 0112345678", 0.9),
    ("Date: 10/06/2025 Time: 14:32", 0.9),
    ("Zinger Burger 1 850.00", 0.85),
    ("Lunch Combo 1 400.00", 0.85),
    ("Subtotal 1,250.00", 0.9),
    ("GRAND TOTAL: Rs. 1,250.00", 0.9),
    ("Cash payment by card", 0.85),
    ("Thank you, come again", 0.9),
]


class FakeRecognizer(TextRecognizer):
    """
    In-process recognizer.

    `responses` is either a list of lines served for every call, or a
    callable receiving the image and returning lines. An exception
    instance is raised instead of returning.
    """

    name = "fake"

    def __init__(self, responses: Union[list, Callable, Exception]):
        self._responses = responses
        self.calls: list[tuple[tuple[int, int], str]] = []
        self.options: Optional[RecognitionOptions] = None

    async def recognize(self, image: Image.Image, options: RecognitionOptions) -> list[RecognizedLine]:
        self.calls.append((image.size, image.mode))
        self.options = options

        responses = self._responses
        if callable(responses):
            responses = responses(image)
        if isinstance(responses, Exception):
            raise responses
        return list(responses)


def make_lines(pairs) -> list[RecognizedLine]:
    """Build RecognizedLines from (text, confidence) pairs."""
    return [RecognizedLine(text=text, confidence=conf) for text, conf in pairs]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def extraction_settings() -> ExtractionSettings:
    return ExtractionSettings()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def good_receipt_lines() -> list[RecognizedLine]:
    return make_lines(GOOD_RECEIPT_LINES)


@pytest.fixture
def fake_recognizer_cls():
    return FakeRecognizer


@pytest.fixture
def solid_image() -> Callable[..., Image.Image]:
    """Factory for a uniform image of a given gray level."""
    def _make(level: int = 128, size=(120, 160), mode: str = "RGB") -> Image.Image:
        color = (level, level, level) if mode == "RGB" else level
        return Image.new(mode, size, color)
    return _make


@pytest.fixture
def receipt_photo() -> Image.Image:
    """A light, tilted 'receipt' on a dark table with some 'text' on it."""
    image = Image.new("RGB", (400, 400), (30, 30, 30))
    draw = ImageDraw.Draw(image)
    draw.polygon([(120, 40), (330, 70), (300, 370), (80, 340)], fill=(235, 235, 230))
    for y in range(100, 320, 24):
        draw.line([(130, y), (270, y + 6)], fill=(20, 20, 20), width=3)
    return image


@pytest.fixture
def png_bytes() -> Callable[[Image.Image], bytes]:
    def _encode(image: Image.Image) -> bytes:
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
    return _encode


@pytest.fixture
def lines_from() -> Callable[..., list[RecognizedLine]]:
    return make_lines
