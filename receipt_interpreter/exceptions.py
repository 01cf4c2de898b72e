"""
Exception taxonomy for receipt interpretation.

Failures are local to one recognition pass. The multi-pass orchestrator
absorbs them; only extract_single lets them reach the caller.
"""


class ReceiptExtractionError(Exception):
    """Base exception for receipt interpretation errors."""
    pass


class InvalidImageError(ReceiptExtractionError):
    """The bitmap cannot be decoded to a processable image."""
    pass


class NoTextFoundError(ReceiptExtractionError):
    """The recognizer returned no usable lines."""
    pass


class ProcessingFailedError(ReceiptExtractionError):
    """An unexpected exception occurred while extracting fields."""
    pass


class PreprocessingFailedError(ReceiptExtractionError):
    """The preprocessing pipeline could not produce an output image."""
    pass


class RecognitionError(ReceiptExtractionError):
    """The external text recognizer failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(message)
