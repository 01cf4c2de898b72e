"""
Text Recognizer using Mindee

DESIGN DECISION: We use Mindee's receipt API only as a TEXT READER.
We do NOT trust its structured prediction:
1. Our own extractors know the local receipt formats (Rs, LKR, ₨)
2. Every field must carry the same confidence semantics
3. Multi-pass fusion needs the raw lines of every variant

This service handles:
1. Encoding the (preprocessed) image and sending it to Mindee
2. Reading the word-level OCR layer back as ordered lines
3. Converting word confidences into a per-line confidence

CRITICAL: A response with no readable line is an error, not an empty
result. The orchestrator decides what an empty pass means.
"""

import asyncio
from io import BytesIO
from typing import Optional

import structlog
from mindee import Client
from mindee.product import ReceiptV5
from PIL import Image
from tenacity import retry, stop_after_attempt, wait_exponential

from receipt_interpreter.config import MindeeSettings, get_settings
from receipt_interpreter.exceptions import NoTextFoundError, RecognitionError
from receipt_interpreter.models.receipt import RecognitionOptions, RecognizedLine
from receipt_interpreter.services.ocr.interface import TextRecognizer


logger = structlog.get_logger(__name__)


class MindeeTextRecognizer(TextRecognizer):
    """
    Text recognizer backed by the Mindee receipt API.

    IMPORTANT BOUNDARIES:
    1. This service ONLY reads text - it does NOT interpret it
    2. Confidence scores are preserved for downstream validation
    3. The blocking SDK call runs in a worker thread
    """

    name = "mindee"

    def __init__(self, settings: Optional[MindeeSettings] = None):
        self._settings = settings or get_settings().mindee
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=self._settings.api_key)
        return self._client

    @staticmethod
    def _encode(image: Image.Image) -> bytes:
        """Encode an image as PNG bytes for upload."""
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def _line_from_words(words) -> Optional[RecognizedLine]:
        """
        Join one OCR line's words into a RecognizedLine.

        The line confidence is the mean of its word confidences.
        """
        texts = []
        confidences = []
        for word in words:
            text = (getattr(word, "text", None) or "").strip()
            if not text:
                continue
            texts.append(text)
            confidences.append(float(getattr(word, "confidence", 0.0) or 0.0))

        if not texts:
            return None

        confidence = sum(confidences) / len(confidences)
        return RecognizedLine(
            text=" ".join(texts),
            confidence=max(0.0, min(1.0, confidence)),
            alternates=[],
        )

    def _parse_sync(self, payload: bytes) -> list[RecognizedLine]:
        client = self._get_client()
        input_source = client.source_from_bytes(payload, "receipt.png")
        response = client.parse(ReceiptV5, input_source, include_words=True)

        ocr = getattr(response.document, "ocr", None)
        if ocr is None or getattr(ocr, "mvision_v1", None) is None:
            return []

        lines = []
        for page in ocr.mvision_v1.pages:
            for words in page.all_lines:
                line = self._line_from_words(words)
                if line is not None:
                    lines.append(line)
        return lines

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _parse(self, payload: bytes) -> list[RecognizedLine]:
        return await asyncio.to_thread(self._parse_sync, payload)

    async def recognize(
        self,
        image: Image.Image,
        options: RecognitionOptions,
    ) -> list[RecognizedLine]:
        """
        Read text lines from an image using Mindee.

        Mindee does not accept recognition level, language or vocabulary
        hints; they are logged for traceability and otherwise ignored.

        Raises:
            NoTextFoundError: If Mindee returned no readable line
            RecognitionError: If the Mindee call fails after retries
        """
        logger.debug(
            "mindee_recognize",
            recognition_level=options.recognition_level,
            languages=options.languages,
            custom_word_count=len(options.custom_words),
        )

        try:
            payload = self._encode(image)
            lines = await self._parse(payload)
        except Exception as e:
            raise RecognitionError(self.name, f"Mindee recognition failed: {e}") from e

        if not lines:
            raise NoTextFoundError("Mindee returned no text for this image")

        return lines
