"""
Tests for the recognizer interface and the Mindee-backed recognizer.

The Mindee client is replaced by an in-process fake; no request leaves
the test process.
"""

import asyncio
from types import SimpleNamespace

import pytest
from tenacity import wait_none

from receipt_interpreter.config import MindeeSettings, RecognitionSettings
from receipt_interpreter.exceptions import NoTextFoundError, RecognitionError
from receipt_interpreter.models.receipt import RecognitionOptions
from receipt_interpreter.services.ocr import MindeeTextRecognizer, options_from_settings


def word(text, confidence):
    return SimpleNamespace(text=text, confidence=confidence)


def response_with_lines(lines):
    page = SimpleNamespace(all_lines=lines)
    ocr = SimpleNamespace(mvision_v1=SimpleNamespace(pages=[page]))
    return SimpleNamespace(document=SimpleNamespace(ocr=ocr))


class FakeMindeeClient:
    """Serves one canned response, or raises, and counts calls."""

    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error
        self.parse_calls = 0
        self.uploads = []

    def source_from_bytes(self, payload, filename):
        self.uploads.append((len(payload), filename))
        return SimpleNamespace(payload=payload)

    def parse(self, product, input_source, include_words=False):
        self.parse_calls += 1
        assert include_words is True
        if self._error is not None:
            raise self._error
        return self._response


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Retry immediately instead of backing off."""
    monkeypatch.setattr(MindeeTextRecognizer._parse.retry, "wait", wait_none())


@pytest.fixture
def recognizer() -> MindeeTextRecognizer:
    return MindeeTextRecognizer(settings=MindeeSettings(api_key="test-key"))


@pytest.fixture
def options() -> RecognitionOptions:
    return RecognitionOptions()


class TestMindeeTextRecognizer:
    """Tests for reading lines back from Mindee's OCR layer."""

    def test_lines_in_reading_order(self, recognizer, options, solid_image):
        """Test words are joined into lines with mean confidence."""
        client = FakeMindeeClient(response_with_lines([
            [word("KEELLS", 0.99), word("SUPER", 0.97)],
            [word("TOTAL", 0.9), word("640.00", 0.7)],
        ]))
        recognizer._client = client

        lines = asyncio.run(recognizer.recognize(solid_image(200), options))

        assert [line.text for line in lines] == ["KEELLS SUPER", "TOTAL 640.00"]
        assert lines[0].confidence == pytest.approx(0.98)
        assert lines[1].confidence == pytest.approx(0.8)
        assert lines[1].alternates == []
        assert client.uploads[0][1] == "receipt.png"

    def test_blank_words_are_dropped(self, recognizer, options, solid_image):
        """Test empty words and empty lines are ignored."""
        recognizer._client = FakeMindeeClient(response_with_lines([
            [word("  ", 0.2)],
            [word("Cash", 0.8), word("", 0.1)],
        ]))

        lines = asyncio.run(recognizer.recognize(solid_image(200), options))

        assert len(lines) == 1
        assert lines[0].text == "Cash"
        assert lines[0].confidence == pytest.approx(0.8)

    def test_no_text(self, recognizer, options, solid_image):
        """Test an empty OCR layer raises NoTextFoundError."""
        recognizer._client = FakeMindeeClient(response_with_lines([]))

        with pytest.raises(NoTextFoundError):
            asyncio.run(recognizer.recognize(solid_image(200), options))

    def test_missing_ocr_layer(self, recognizer, options, solid_image):
        """Test a response without word-level OCR counts as no text."""
        recognizer._client = FakeMindeeClient(SimpleNamespace(document=SimpleNamespace(ocr=None)))

        with pytest.raises(NoTextFoundError):
            asyncio.run(recognizer.recognize(solid_image(200), options))

    def test_client_failure_is_retried_then_wrapped(self, recognizer, options, solid_image, no_retry_wait):
        """Test SDK failures are retried and surface as RecognitionError."""
        client = FakeMindeeClient(error=ConnectionError("connection reset"))
        recognizer._client = client

        with pytest.raises(RecognitionError) as exc_info:
            asyncio.run(recognizer.recognize(solid_image(200), options))

        assert client.parse_calls == 3
        assert exc_info.value.service == "mindee"
        assert "connection reset" in str(exc_info.value)


class TestRecognitionOptions:
    """Tests for building recognizer options from configuration."""

    def test_from_custom_settings(self):
        """Test CSV settings become lists."""
        settings = RecognitionSettings(
            recognition_level="fast",
            use_language_correction=False,
            languages="en-US",
            custom_words="total, Rs ,,LKR",
        )

        options = options_from_settings(settings)

        assert options.recognition_level == "fast"
        assert options.use_language_correction is False
        assert options.languages == ["en-US"]
        assert options.custom_words == ["total", "Rs", "LKR"]

    def test_defaults(self):
        """Test the default vocabulary carries the finance terms."""
        options = options_from_settings(RecognitionSettings())

        assert options.recognition_level == "accurate"
        assert "en-GB" in options.languages
        assert {"total", "Rs", "LKR"} <= set(options.custom_words)

    def test_invalid_level_rejected(self):
        """Test only accurate and fast are accepted."""
        with pytest.raises(ValueError):
            RecognitionOptions(recognition_level="slow")
