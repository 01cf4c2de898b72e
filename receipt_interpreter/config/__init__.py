"""Configuration package."""

from receipt_interpreter.config.settings import (
    AppSettings,
    ExtractionSettings,
    MindeeSettings,
    RecognitionSettings,
    Settings,
    get_settings,
    mindee_configured,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExtractionSettings",
    "MindeeSettings",
    "RecognitionSettings",
    "Settings",
    "get_settings",
    "mindee_configured",
    "validate_all_settings",
]
