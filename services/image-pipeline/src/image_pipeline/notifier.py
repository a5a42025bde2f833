"""
Status notifier driven by the image table's change stream.

An email goes out only for MODIFY events whose new image carries a status
different from the old image's. Inserts, removals and modifications that
leave the status alone are ignored, and send failures are only logged.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from boto3.dynamodb.types import TypeDeserializer

from image_pipeline.dispatch import Consumer, DeliveryPolicy
from image_pipeline.logging_config import image_logger
from image_pipeline.mailer import Mailer, render_status_email, status_subject
from image_pipeline.models import MessageOutcome, MessageResult

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()

DEFAULT_IMAGE_ID = "Unknown Image"
DEFAULT_REASON = "No reason provided"


class ChangeKind(Enum):
    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"
    UNKNOWN = "UNKNOWN"


def deserialize_image(image: Optional[dict]) -> dict:
    """Convert a stream image in DynamoDB JSON into plain Python values."""
    if not image:
        return {}
    return {name: _deserializer.deserialize(value) for name, value in image.items()}


@dataclass(frozen=True)
class RecordChange:
    """One change-stream event with its before and after images."""
    kind: ChangeKind
    before: dict = field(default_factory=dict)
    after: dict = field(default_factory=dict)

    @classmethod
    def from_stream_record(cls, record: dict) -> "RecordChange":
        try:
            kind = ChangeKind(record.get("eventName"))
        except ValueError:
            kind = ChangeKind.UNKNOWN
        images = record.get("dynamodb") or {}
        return cls(
            kind=kind,
            before=deserialize_image(images.get("OldImage")),
            after=deserialize_image(images.get("NewImage")),
        )

    @property
    def status_changed(self) -> bool:
        new_status = self.after.get("status")
        return bool(new_status) and new_status != self.before.get("status")


def should_notify(change: RecordChange) -> bool:
    return change.kind is ChangeKind.MODIFY and change.status_changed


class StatusNotifier(Consumer):
    """Emails the configured recipient when an image's status transitions."""

    policy = DeliveryPolicy.BEST_EFFORT_SKIP

    def __init__(
        self,
        mailer: Mailer,
        source: str,
        recipient: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.mailer = mailer
        self.source = source
        self.recipient = recipient
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        change = RecordChange.from_stream_record(record)
        if not should_notify(change):
            logger.debug(
                "Status hasn't changed or no status present, no notification needed",
                extra={"event_name": change.kind.value},
            )
            return [MessageResult(
                message_id=message_id,
                outcome=MessageOutcome.SKIPPED_NOT_APPLICABLE,
                image_id=change.after.get("id") or change.before.get("id"),
            )]

        after = change.after
        image_id = after.get("id") or DEFAULT_IMAGE_ID
        status = after["status"]
        log = image_logger(logger, image_id, event_name=change.kind.value)

        html_body = render_status_email(
            image_id=image_id,
            status=status,
            reason=after.get("reason") or DEFAULT_REASON,
            review_date=after.get("reviewDate") or self._clock().isoformat(),
        )

        log.info(f"Sending status notification email to {self.recipient}")
        self.mailer.send(self.source, self.recipient, status_subject(image_id), html_body)
        log.info(f"Successfully sent status notification email to {self.recipient}")

        return [MessageResult(
            message_id=message_id,
            outcome=MessageOutcome.APPLIED,
            image_id=image_id,
            detail=f"notified status={status}",
        )]
