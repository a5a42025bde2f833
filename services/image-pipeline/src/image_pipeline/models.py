"""
Data models for the image pipeline.
The image record is the only persisted shape; update envelopes and
processing outcomes are transient.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from image_pipeline.exceptions import ErrorContext, ValidationError


class MetadataType(str, Enum):
    """Allowed values of the ``metadata_type`` message attribute."""
    CAPTION = "Caption"
    DATE = "Date"
    NAME = "name"

    @property
    def field_name(self) -> str:
        return METADATA_FIELDS[self]


# Each metadata type owns exactly one record field.
METADATA_FIELDS = {
    MetadataType.CAPTION: "caption",
    MetadataType.DATE: "date",
    MetadataType.NAME: "name",
}

STATUS_UPDATE_MESSAGE_TYPE = "status_update"


class ReviewStatus(str, Enum):
    """Moderation decisions accepted by the status merger."""
    PASS = "Pass"
    REJECT = "Reject"


class ImageRecord(BaseModel):
    """
    One record per uploaded object, keyed by the object key.

    ``upload_time`` and ``bucket`` are written once by the validator.
    ``caption``, ``date`` and ``name`` are each owned by one metadata type;
    ``status``, ``reason`` and ``review_date`` are written together by the
    status merger.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    upload_time: Optional[str] = Field(None, alias="uploadTime")
    bucket: Optional[str] = None
    caption: Optional[str] = None
    date: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    review_date: Optional[str] = Field(None, alias="reviewDate")

    @classmethod
    def new_upload(cls, key: str, bucket: str, now: Optional[datetime] = None) -> "ImageRecord":
        """Build the record the validator inserts for a freshly validated upload."""
        uploaded = now or datetime.now(timezone.utc)
        return cls(id=key, upload_time=uploaded.isoformat(), bucket=bucket)

    @classmethod
    def from_item(cls, item: dict) -> "ImageRecord":
        return cls.model_validate(item)

    def to_item(self) -> dict:
        """Table item in wire format; unset optional fields are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class MetadataUpdate(BaseModel):
    """Body of a ``metadata_type`` message."""
    id: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class StatusDecision(BaseModel):
    status: ReviewStatus
    reason: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    """Body of a ``message_type=status_update`` message."""
    id: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    update: StatusDecision

    def to_fields(self) -> dict:
        """The status triple, always written as one unit."""
        return {
            "status": self.update.status.value,
            "reason": self.update.reason,
            "reviewDate": self.date,
        }


@dataclass(frozen=True)
class UploadNotification:
    """An object-created notification, with the key already normalized."""
    bucket: str
    key: str
    event_name: str = "ObjectCreated:Put"


class MessageOutcome(Enum):
    """What happened to one delivered message."""
    APPLIED = "applied"
    SKIPPED_NOT_APPLICABLE = "skipped_not_applicable"
    SKIPPED_INVALID = "skipped_invalid"
    RETRYABLE_FAILURE = "retryable_failure"


@dataclass
class MessageResult:
    """Outcome of processing a single message."""
    message_id: str
    outcome: MessageOutcome
    image_id: Optional[str] = None
    detail: Optional[str] = None
    error: Optional[dict] = None


@dataclass
class BatchResult:
    """Aggregated outcomes of one delivered batch."""
    results: list[MessageResult] = field(default_factory=list)

    def add(self, result: MessageResult) -> MessageResult:
        self.results.append(result)
        return result

    def count(self, outcome: MessageOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def applied_count(self) -> int:
        return self.count(MessageOutcome.APPLIED)

    @property
    def retryable_message_ids(self) -> list[str]:
        """IDs of messages that should be redelivered, in delivery order."""
        seen: list[str] = []
        for r in self.results:
            if r.outcome is MessageOutcome.RETRYABLE_FAILURE and r.message_id not in seen:
                seen.append(r.message_id)
        return seen

    @property
    def total_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            **{outcome.value: self.count(outcome) for outcome in MessageOutcome},
            "retryable_message_ids": self.retryable_message_ids,
        }


def parse_body(model: type[BaseModel], body: Any, message_id: Optional[str] = None):
    """
    Validate a message body against ``model``.

    Raises:
        ValidationError: Naming the first offending field
    """
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field_name = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ValidationError(
            message=f"Invalid {model.__name__} message: {field_name}: {first.get('msg', 'invalid')}",
            field_name=field_name,
            expected=first.get("type", "valid value"),
            actual=first.get("input"),
            context=ErrorContext(
                message_id=message_id,
                image_id=body.get("id") if isinstance(body, dict) and isinstance(body.get("id"), str) else None,
            ),
        )
