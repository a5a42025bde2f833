"""
Status merger: applies a moderation decision to an existing record.

``status``, ``reason`` and ``reviewDate`` are written by one UpdateItem
call, so no reader can observe a status without its reason and date.
"""

import logging

from image_pipeline.dispatch import Consumer, DeliveryPolicy
from image_pipeline.envelopes import decode_push_message
from image_pipeline.exceptions import ErrorContext, RecordNotFoundError, ValidationError
from image_pipeline.logging_config import image_logger
from image_pipeline.models import (
    STATUS_UPDATE_MESSAGE_TYPE,
    MessageOutcome,
    MessageResult,
    StatusUpdate,
    parse_body,
)
from image_pipeline.record_store import ImageTable

logger = logging.getLogger(__name__)

MESSAGE_TYPE_ATTRIBUTE = "message_type"


class StatusMerger(Consumer):
    """Merges status-update messages into existing image records."""

    policy = DeliveryPolicy.BEST_EFFORT_SKIP

    def __init__(self, image_table: ImageTable):
        self.image_table = image_table

    def check_message_type(self, attributes: dict, message_id: str) -> None:
        message_type = attributes.get(MESSAGE_TYPE_ATTRIBUTE)
        if message_type != STATUS_UPDATE_MESSAGE_TYPE:
            raise ValidationError(
                message=f"Unexpected message_type: {message_type}",
                field_name=MESSAGE_TYPE_ATTRIBUTE,
                expected=STATUS_UPDATE_MESSAGE_TYPE,
                actual=message_type,
                context=ErrorContext(message_id=message_id),
            )

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        message = decode_push_message(record)
        self.check_message_type(message.attributes, message_id)
        update = parse_body(StatusUpdate, message.body, message_id)

        log = image_logger(logger, update.id)

        if self.image_table.get(update.id) is None:
            raise RecordNotFoundError(update.id, context=ErrorContext(message_id=message_id))

        log.info(
            f"Updating status for image {update.id} to: {update.update.status.value} "
            f"with reason: {update.update.reason}"
        )
        self.image_table.update_fields(update.id, update.to_fields())

        log.info(f"Successfully updated status for image {update.id}")
        return [MessageResult(
            message_id=message_id,
            outcome=MessageOutcome.APPLIED,
            image_id=update.id,
            detail=f"status={update.update.status.value}",
        )]
