"""
Abstract Text Recognizer Interface

DESIGN DECISION: The interpretation pipeline never talks to an OCR
engine directly. It depends on this interface only.
This allows us to:
1. Swap Mindee for another engine later
2. Use in-process fakes for testing
3. Keep extraction logic decoupled from any vendor SDK

A recognizer turns a bitmap into ordered text lines, each with a
confidence and optional alternate readings.
"""

from abc import ABC, abstractmethod
from typing import Optional

from PIL import Image

from receipt_interpreter.config import RecognitionSettings, get_settings
from receipt_interpreter.models.receipt import RecognitionOptions, RecognizedLine


class TextRecognizer(ABC):
    """
    Abstract interface for text recognition.

    Implementations must be safe to call concurrently: the multi-pass
    orchestrator awaits several recognize() calls at once.
    """

    #: Short name used in audit events
    name: str = "recognizer"

    @abstractmethod
    async def recognize(
        self,
        image: Image.Image,
        options: RecognitionOptions,
    ) -> list[RecognizedLine]:
        """
        Read all text lines from an image.

        Args:
            image: The bitmap to read
            options: Recognition level, language and vocabulary hints

        Returns:
            Lines in reading order (top to bottom)

        Raises:
            NoTextFoundError: If no line could be read
            RecognitionError: If the underlying engine fails
        """
        pass


def options_from_settings(settings: Optional[RecognitionSettings] = None) -> RecognitionOptions:
    """Build the default RecognitionOptions from configuration."""
    settings = settings or get_settings().recognition
    return RecognitionOptions(
        recognition_level=settings.recognition_level,
        use_language_correction=settings.use_language_correction,
        languages=settings.languages_list,
        custom_words=settings.custom_words_list,
    )
