"""
Audit Models for the Receipt Interpreter

Every pass of the interpretation pipeline emits audit events.
This provides:
1. Traceability of which passes contributed to a result
2. Debugging information when a pass fails
3. A record of every confidence adjustment

DESIGN DECISION: Audit events are append-only and carry a correlation ID
shared by all events of one extraction call.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every stage of the pipeline has its own event type.
    """
    # Image processing
    IMAGE_DECODE_FAILED = "image_decode_failed"
    QUALITY_ANALYZED = "quality_analyzed"
    PREPROCESSING_STAGE_SKIPPED = "preprocessing_stage_skipped"
    PREPROCESSING_FAILED = "preprocessing_failed"

    # Recognition passes
    PASS_STARTED = "pass_started"
    PASS_COMPLETED = "pass_completed"
    PASS_FAILED = "pass_failed"

    # Scoring
    RESULT_VALIDATED = "result_validated"
    FUSION_COMPLETED = "fusion_completed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'image', 'pass', 'extraction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all passes of one receipt)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.pass_started("original", correlation_id)
        event = AuditEventBuilder.fusion_completed(extraction_id, 3, 0.82, correlation_id)
    """

    @staticmethod
    def image_decode_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_DECODE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="image",
            correlation_id=correlation_id,
            description="Image could not be decoded",
            error_message=error_message,
        )

    @staticmethod
    def quality_analyzed(
        brightness: float,
        contrast: float,
        sharpness: float,
        has_good_lighting: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUALITY_ANALYZED,
            severity=AuditSeverity.DEBUG,
            entity_type="image",
            correlation_id=correlation_id,
            description=f"Image brightness measured at {brightness:.0%}",
            details={
                "brightness": round(brightness, 4),
                "contrast": round(contrast, 4),
                "sharpness": round(sharpness, 4),
                "has_good_lighting": has_good_lighting,
            },
        )

    @staticmethod
    def preprocessing_stage_skipped(
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREPROCESSING_STAGE_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="image",
            correlation_id=correlation_id,
            description=f"Preprocessing stage '{stage}' left the image unchanged",
            details={"stage": stage},
            error_message=error_message,
        )

    @staticmethod
    def preprocessing_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREPROCESSING_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="image",
            correlation_id=correlation_id,
            description="Preprocessing failed, using the unprocessed image",
            error_message=error_message,
        )

    @staticmethod
    def pass_started(
        variant: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASS_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="pass",
            correlation_id=correlation_id,
            description=f"Recognition pass started: {variant}",
            details={"variant": variant},
        )

    @staticmethod
    def pass_completed(
        variant: str,
        extraction_id: UUID,
        confidence: float,
        line_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASS_COMPLETED,
            entity_type="pass",
            entity_id=extraction_id,
            correlation_id=correlation_id,
            description=f"Pass {variant} completed with {confidence:.0%} confidence",
            details={
                "variant": variant,
                "confidence": confidence,
                "line_count": line_count,
            },
        )

    @staticmethod
    def pass_failed(
        variant: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASS_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="pass",
            correlation_id=correlation_id,
            description=f"Pass {variant} contributed nothing",
            details={"variant": variant},
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def result_validated(
        extraction_id: UUID,
        original_confidence: float,
        adjusted_confidence: float,
        adjustments: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESULT_VALIDATED,
            severity=AuditSeverity.DEBUG,
            entity_type="extraction",
            entity_id=extraction_id,
            correlation_id=correlation_id,
            description=(
                f"Confidence recalibrated from {original_confidence:.0%} "
                f"to {adjusted_confidence:.0%}"
            ),
            details={
                "original_confidence": original_confidence,
                "adjusted_confidence": adjusted_confidence,
                "adjustments": adjustments,
            },
        )

    @staticmethod
    def fusion_completed(
        extraction_id: UUID,
        pass_count: int,
        confidence: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FUSION_COMPLETED,
            entity_type="extraction",
            entity_id=extraction_id,
            correlation_id=correlation_id,
            description=f"Fused {pass_count} passes into one result",
            details={
                "pass_count": pass_count,
                "confidence": confidence,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
