"""
Metadata merger: sets one caption/date/name field on an existing record.
"""

import logging

from image_pipeline.dispatch import Consumer, DeliveryPolicy
from image_pipeline.envelopes import decode_push_message
from image_pipeline.exceptions import ErrorContext, RecordNotFoundError, ValidationError
from image_pipeline.logging_config import image_logger
from image_pipeline.models import (
    MessageOutcome,
    MessageResult,
    MetadataType,
    MetadataUpdate,
    parse_body,
)
from image_pipeline.record_store import ImageTable

logger = logging.getLogger(__name__)

METADATA_TYPE_ATTRIBUTE = "metadata_type"


def resolve_metadata_type(attributes: dict, message_id: str) -> MetadataType:
    """
    Map the ``metadata_type`` attribute onto its allow-listed type.

    Raises:
        ValidationError: If the attribute is missing or not allow-listed
    """
    raw = attributes.get(METADATA_TYPE_ATTRIBUTE)
    try:
        return MetadataType(raw)
    except ValueError:
        raise ValidationError(
            message=(
                f"Invalid metadata type: {raw}. Valid types: "
                f"{', '.join(t.value for t in MetadataType)}"
            ),
            field_name=METADATA_TYPE_ATTRIBUTE,
            expected="|".join(t.value for t in MetadataType),
            actual=raw,
            context=ErrorContext(message_id=message_id),
        )


class MetadataMerger(Consumer):
    """Merges metadata messages into existing image records."""

    policy = DeliveryPolicy.BEST_EFFORT_SKIP

    def __init__(self, image_table: ImageTable):
        self.image_table = image_table

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        message = decode_push_message(record)
        update = parse_body(MetadataUpdate, message.body, message_id)
        metadata_type = resolve_metadata_type(message.attributes, message_id)
        field_name = metadata_type.field_name

        log = image_logger(logger, update.id, metadata_type=metadata_type.value)

        if self.image_table.get(update.id) is None:
            raise RecordNotFoundError(update.id, context=ErrorContext(message_id=message_id))

        log.info(
            f"Updating {metadata_type.value} (attribute: {field_name}) "
            f"for image {update.id} to: {update.value}"
        )
        self.image_table.update_fields(update.id, {field_name: update.value})

        log.info(f"Successfully updated metadata {field_name}")
        return [MessageResult(
            message_id=message_id,
            outcome=MessageOutcome.APPLIED,
            image_id=update.id,
            detail=f"set {field_name}",
        )]
