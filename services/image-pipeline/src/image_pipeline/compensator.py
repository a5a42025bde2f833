"""
Compensator for the image-process dead-letter queue.

A dead-lettered upload never received a record, so its object is removed.
One message can carry several uploads and only some of them may have been
recorded; an upload whose record exists keeps its object. Nothing here
raises: the dead-letter queue has no further retry path and its messages
must never be reconsidered.
"""

import logging

from image_pipeline.dispatch import Consumer, DeliveryPolicy
from image_pipeline.envelopes import decode_envelope
from image_pipeline.exceptions import DynamoDBError, S3Error
from image_pipeline.logging_config import image_logger
from image_pipeline.models import MessageOutcome, MessageResult, UploadNotification
from image_pipeline.record_store import ImageTable
from image_pipeline.storage import ObjectStore

logger = logging.getLogger(__name__)


class Compensator(Consumer):
    """Deletes objects whose uploads exhausted the validator's retries."""

    policy = DeliveryPolicy.ABSORB

    def __init__(self, object_store: ObjectStore, image_table: ImageTable):
        self.object_store = object_store
        self.image_table = image_table

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        decoded = decode_envelope(record)
        if not decoded.recognized:
            logger.warning("Dead-lettered message is not an S3 event notification, dropping")
            return [MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_NOT_APPLICABLE,
                detail="unrecognized envelope",
            )]

        return [self.remove(upload, message_id) for upload in decoded.uploads]

    def remove(self, upload: UploadNotification, message_id: str) -> MessageResult:
        log = image_logger(logger, upload.key, s3_bucket=upload.bucket, s3_key=upload.key)

        try:
            recorded = self.image_table.get(upload.key) is not None
        except DynamoDBError as e:
            log.error(
                f"Could not check record for {upload.key}, keeping object: {e.message}",
                extra={"error": e.to_dict()},
            )
            return MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_INVALID,
                image_id=upload.key,
                detail=e.message,
                error=e.to_dict(),
            )

        if recorded:
            log.info(f"Image {upload.key} has a record, keeping object")
            return MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_NOT_APPLICABLE,
                image_id=upload.key,
                detail="record exists",
            )

        log.info(f"Deleting invalid image: {upload.key} from bucket: {upload.bucket}")
        try:
            self.object_store.delete(upload.bucket, upload.key)
        except S3Error as e:
            log.error(
                f"Failed to delete invalid image {upload.key}: {e.message}",
                extra={"error": e.to_dict()},
            )
            return MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_INVALID,
                image_id=upload.key,
                detail=e.message,
                error=e.to_dict(),
            )

        log.info(f"Successfully deleted invalid image: {upload.key}")
        return MessageResult(
            message_id=message_id,
            outcome=MessageOutcome.APPLIED,
            image_id=upload.key,
            detail="deleted",
        )
