"""
Ingestion validator: turns queued upload notifications into image records.

Every failure here is retryable. The queue redelivers failed messages and,
once the receive budget is spent, moves them to the dead-letter queue where
the compensator removes the object.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from image_pipeline.config import DEFAULT_IMAGE_EXTENSIONS
from image_pipeline.dispatch import Consumer, DeliveryPolicy
from image_pipeline.envelopes import decode_envelope
from image_pipeline.exceptions import ErrorContext, PipelineError, ValidationError
from image_pipeline.logging_config import image_logger
from image_pipeline.models import (
    ImageRecord,
    MessageOutcome,
    MessageResult,
    UploadNotification,
)
from image_pipeline.record_store import ImageTable
from image_pipeline.storage import ObjectStore

logger = logging.getLogger(__name__)


def file_extension(key: str) -> str:
    """Lower-cased text from the last ``.`` of the key, or ``""``."""
    dot = key.rfind(".")
    return key[dot:].lower() if dot >= 0 else ""


class IngestionValidator(Consumer):
    """Validates uploads and creates their records."""

    policy = DeliveryPolicy.RETRY_TO_DEAD_LETTER

    def __init__(
        self,
        object_store: ObjectStore,
        image_table: ImageTable,
        allowed_extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.object_store = object_store
        self.image_table = image_table
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        decoded = decode_envelope(record)
        if not decoded.recognized:
            logger.info("Not an S3 event notification, skipping")
            return [MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_NOT_APPLICABLE,
                detail="unrecognized envelope",
            )]

        return [self.validate_upload(upload, message_id) for upload in decoded.uploads]

    def check_extension(self, upload: UploadNotification) -> None:
        extension = file_extension(upload.key)
        if extension not in self.allowed_extensions:
            raise ValidationError(
                message=f"Invalid image type: {upload.key}",
                field_name="extension",
                expected=", ".join(self.allowed_extensions),
                actual=extension or None,
                context=ErrorContext(
                    image_id=upload.key,
                    s3_bucket=upload.bucket,
                    s3_key=upload.key,
                ),
            )

    def validate_upload(self, upload: UploadNotification, message_id: str) -> MessageResult:
        """
        Validate one upload and insert its record.

        The object is read back before the record is written, so a record
        never points at an object that was not there.
        """
        log = image_logger(logger, upload.key, s3_bucket=upload.bucket, s3_key=upload.key)
        log.info(f"Processing new image: {upload.key} from bucket: {upload.bucket}")

        try:
            self.check_extension(upload)
            self.object_store.get(upload.bucket, upload.key)
            created = self.image_table.create(
                ImageRecord.new_upload(upload.key, upload.bucket, now=self._clock())
            )
        except PipelineError as e:
            log.error(
                f"Error processing image {upload.key}: {e.message}",
                extra={
                    "error": e.to_dict(),
                    "outcome": MessageOutcome.RETRYABLE_FAILURE.value,
                },
            )
            return MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.RETRYABLE_FAILURE,
                image_id=upload.key,
                detail=e.message,
                error=e.to_dict(),
            )

        if created:
            log.info(f"Successfully recorded image {upload.key}")
        return MessageResult(
            message_id=message_id,
            outcome=MessageOutcome.APPLIED,
            image_id=upload.key,
            detail="created" if created else "already recorded",
        )
