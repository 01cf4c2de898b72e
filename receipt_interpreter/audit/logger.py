"""
Audit Logger

DESIGN DECISION: Every pass of the pipeline is logged.
This provides:
1. Traceability of which image variants contributed to a result
2. Debugging capability when a recognizer misbehaves
3. A record of each confidence recalibration

The audit logger:
- Gracefully handles failures (never breaks extraction if logging fails)
- Supports correlation IDs to trace all passes of one receipt
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from receipt_interpreter.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """
    Central audit logging service for the interpretation pipeline.

    Events go to the structured local log. Severity decides the level.
    """

    def __init__(self, logger_name: str = "receipt_interpreter.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # Logging must never take an extraction down with it
            return False

        return True

    def log_image_decode_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log that an input bitmap could not be decoded."""
        self.log(AuditEventBuilder.image_decode_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_quality_analyzed(
        self,
        brightness: float,
        contrast: float,
        sharpness: float,
        has_good_lighting: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.quality_analyzed(
            brightness=brightness,
            contrast=contrast,
            sharpness=sharpness,
            has_good_lighting=has_good_lighting,
            correlation_id=correlation_id,
        ))

    def log_stage_skipped(
        self,
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a preprocessing stage that fell back to its input."""
        self.log(AuditEventBuilder.preprocessing_stage_skipped(
            stage=stage,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_preprocessing_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.preprocessing_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_pass_started(
        self,
        variant: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.pass_started(
            variant=variant,
            correlation_id=correlation_id,
        ))

    def log_pass_completed(
        self,
        variant: str,
        extraction_id: UUID,
        confidence: float,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a pass that produced a result."""
        self.log(AuditEventBuilder.pass_completed(
            variant=variant,
            extraction_id=extraction_id,
            confidence=confidence,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    def log_pass_failed(
        self,
        variant: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a pass that contributed nothing to fusion."""
        self.log(AuditEventBuilder.pass_failed(
            variant=variant,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    def log_result_validated(
        self,
        extraction_id: UUID,
        original_confidence: float,
        adjusted_confidence: float,
        adjustments: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.result_validated(
            extraction_id=extraction_id,
            original_confidence=original_confidence,
            adjusted_confidence=adjusted_confidence,
            adjustments=adjustments,
            correlation_id=correlation_id,
        ))

    def log_fusion_completed(
        self,
        extraction_id: UUID,
        pass_count: int,
        confidence: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.fusion_completed(
            extraction_id=extraction_id,
            pass_count=pass_count,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an extraction call and pass it
    through every pass.
    """
    return uuid4()
