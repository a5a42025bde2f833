"""
Custom exceptions for the image pipeline.
Provides structured error handling with rich context for debugging and monitoring.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for routing and handling."""
    VALIDATION = "validation"
    ENVELOPE = "envelope"
    NOT_FOUND = "not_found"
    AWS_SERVICE = "aws_service"
    CONFIGURATION = "configuration"
    DELIVERY = "delivery"


@dataclass
class ErrorContext:
    """Rich context for error tracking and debugging."""
    correlation_id: Optional[str] = None
    message_id: Optional[str] = None
    image_id: Optional[str] = None
    field_name: Optional[str] = None
    expected: Optional[str] = None
    actual_value: Optional[Any] = None
    s3_bucket: Optional[str] = None
    s3_key: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    additional_data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert context to dictionary for logging."""
        return {
            "correlation_id": self.correlation_id,
            "message_id": self.message_id,
            "image_id": self.image_id,
            "field_name": self.field_name,
            "expected": self.expected,
            "actual_value": str(self.actual_value) if self.actual_value is not None else None,
            "s3_bucket": self.s3_bucket,
            "s3_key": self.s3_key,
            "timestamp": self.timestamp,
            **self.additional_data,
        }


class PipelineError(Exception):
    """Base exception for all image pipeline errors."""

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.VALIDATION,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.original_exception = original_exception

    def to_dict(self) -> dict:
        """Serialize exception for logging and monitoring."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "original_exception": str(self.original_exception) if self.original_exception else None,
        }


class ValidationError(PipelineError):
    """Raised when an upload or update message fails validation."""

    def __init__(
        self,
        message: str,
        field_name: str,
        expected: str,
        actual: Any,
        context: Optional[ErrorContext] = None,
    ):
        ctx = context or ErrorContext()
        ctx.field_name = field_name
        ctx.expected = expected
        ctx.actual_value = actual

        super().__init__(
            message=message,
            context=ctx,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
        )
        self.field_name = field_name
        self.expected = expected
        self.actual = actual


class EnvelopeError(PipelineError):
    """Raised when a message body is not parseable JSON."""

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            context=context,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.ENVELOPE,
            original_exception=original_exception,
        )


class RecordNotFoundError(PipelineError):
    """Raised when an update targets an image record that does not exist."""

    def __init__(self, image_id: str, context: Optional[ErrorContext] = None):
        ctx = context or ErrorContext()
        ctx.image_id = image_id

        super().__init__(
            message=f"Image not found in table: {image_id}",
            context=ctx,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOT_FOUND,
        )
        self.image_id = image_id


class AWSServiceError(PipelineError):
    """Raised when AWS service calls fail."""

    def __init__(
        self,
        message: str,
        service_name: str,
        operation: str,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        ctx = context or ErrorContext()
        ctx.additional_data["aws_service"] = service_name
        ctx.additional_data["operation"] = operation

        super().__init__(
            message=message,
            context=ctx,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.AWS_SERVICE,
            original_exception=original_exception,
        )
        self.service_name = service_name
        self.operation = operation


class S3Error(AWSServiceError):
    """Raised when S3 operations fail."""

    def __init__(
        self,
        message: str,
        bucket: str,
        key: str,
        operation: str = "GetObject",
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        ctx = context or ErrorContext()
        ctx.s3_bucket = bucket
        ctx.s3_key = key

        super().__init__(
            message=message,
            service_name="S3",
            operation=operation,
            context=ctx,
            original_exception=original_exception,
        )
        self.bucket = bucket
        self.key = key


class ObjectNotFoundError(S3Error):
    """Raised when the uploaded object cannot be found in its bucket."""


class DynamoDBError(AWSServiceError):
    """Raised when image table operations fail."""

    def __init__(
        self,
        message: str,
        table_name: str,
        operation: str,
        image_id: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        ctx = context or ErrorContext()
        ctx.image_id = image_id
        ctx.additional_data["table_name"] = table_name

        super().__init__(
            message=message,
            service_name="DynamoDB",
            operation=operation,
            context=ctx,
            original_exception=original_exception,
        )


class SESError(AWSServiceError):
    """Raised when sending a notification email fails."""

    def __init__(
        self,
        message: str,
        recipient: str,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
    ):
        ctx = context or ErrorContext()
        ctx.additional_data["recipient"] = recipient

        super().__init__(
            message=message,
            service_name="SES",
            operation="SendEmail",
            context=ctx,
            original_exception=original_exception,
        )


class ConfigurationError(PipelineError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: str,
        context: Optional[ErrorContext] = None,
    ):
        ctx = context or ErrorContext()
        ctx.additional_data["config_key"] = config_key

        super().__init__(
            message=message,
            context=ctx,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
        )
        self.config_key = config_key


class BatchProcessingError(PipelineError):
    """Raised to make the queue redeliver a batch that had failed messages."""

    def __init__(
        self,
        message: str,
        failed_message_ids: list[str],
        context: Optional[ErrorContext] = None,
    ):
        ctx = context or ErrorContext()
        ctx.additional_data["failed_message_ids"] = failed_message_ids

        super().__init__(
            message=message,
            context=ctx,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.DELIVERY,
        )
        self.failed_message_ids = failed_message_ids
