"""
Configuration Management for the Receipt Interpreter

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunable thresholds live here.
The extractors and the validator read them through get_settings(),
so a deployment can tighten or relax the heuristics without code changes.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CUSTOM_WORDS = (
    "receipt,invoice,bill,total,subtotal,amount,tax,date,time,"
    "payment,cash,credit,debit,card,change,merchant,store,"
    "grand total,net total,final amount,balance due,amount due,"
    "Rs,LKR,rupees,cents,USD,dollars,"
    "keells,cargills,arpico,abans,softlogic,singer,damro,"
    "dialog,mobitel,hutch,airtel,ceb,water board,"
    "mcdonalds,kfc,subway,pizza hut,dominos,burger king,starbucks,"
    "items,description,qty,quantity,price,unit price,discount,"
    "service charge,vat,tip,gratuity,delivery,shipping"
)


class MindeeSettings(BaseSettings):
    """Mindee OCR service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MINDEE_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Mindee API key"
    )


class RecognitionSettings(BaseSettings):
    """
    Options handed to the text recognizer on every pass.

    The custom vocabulary nudges the recognizer towards finance terms
    ("total", "Rs", "LKR") that generic language models misread.
    """

    model_config = SettingsConfigDict(
        env_prefix="RECOGNITION_",
        extra="ignore"
    )

    recognition_level: str = Field(
        default="accurate",
        pattern="^(accurate|fast)$",
        description="Recognition quality level"
    )
    use_language_correction: bool = Field(
        default=True,
        description="Let the recognizer apply language correction"
    )
    languages: str = Field(
        default="en-US,en-GB,en-AU,en-CA",
        description="Comma-separated recognition languages"
    )
    custom_words: str = Field(
        default=DEFAULT_CUSTOM_WORDS,
        description="Comma-separated domain vocabulary hints"
    )

    @property
    def languages_list(self) -> list[str]:
        return [lang.strip() for lang in self.languages.split(",") if lang.strip()]

    @property
    def custom_words_list(self) -> list[str]:
        return [word.strip() for word in self.custom_words.split(",") if word.strip()]


class ExtractionSettings(BaseSettings):
    """
    Thresholds for the field extractors and fusion.

    The defaults are the values the heuristics were tuned with.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        extra="ignore"
    )

    max_amount: float = Field(
        default=1_000_000.0,
        gt=0,
        description="Largest amount accepted as a candidate"
    )
    high_confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="First tier of best-amount selection"
    )
    reasonable_confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Second tier of best-amount selection"
    )
    category_min_confidence: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Category scores at or below this are dropped"
    )
    merchant_scan_lines: int = Field(
        default=5,
        ge=1,
        le=20,
        description="How many leading non-empty lines may hold the merchant"
    )
    max_amount_candidates: int = Field(
        default=50,
        ge=1,
        description="Cap on amount candidates kept per pass"
    )
    alternate_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Base confidence ceiling for alternate readings"
    )
    enable_perspective_pass: bool = Field(
        default=True,
        description="Run the perspective-corrected pass in multi-pass mode"
    )

    @field_validator('reasonable_confidence_threshold')
    @classmethod
    def validate_tiers(cls, v: float, info) -> float:
        """The fallback tier must not sit above the first tier."""
        high = info.data.get('high_confidence_threshold')
        if high is not None and v > high:
            raise ValueError(
                "reasonable_confidence_threshold cannot exceed high_confidence_threshold"
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: sub-settings are loaded lazily so that a missing Mindee key
    # does not prevent offline use of the extractors

    @property
    def mindee(self) -> MindeeSettings:
        return MindeeSettings()

    @property
    def recognition(self) -> RecognitionSettings:
        return RecognitionSettings()

    @property
    def extraction(self) -> ExtractionSettings:
        return ExtractionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an
    "<name>_error" entry describing each failure.
    Useful for startup checks.
    """
    results: dict = {}

    settings = get_settings()

    for name in ("mindee", "recognition", "extraction", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results


def mindee_configured() -> bool:
    """True when a Mindee API key is available."""
    try:
        key: Optional[str] = get_settings().mindee.api_key
    except Exception:
        return False
    return bool(key)
