"""
Decoding of upload notifications out of their forwarding envelopes.

An S3 object-created event can reach the pipeline bare, inside an SQS
record body, inside an SNS notification, or inside an SNS notification
that was itself delivered through SQS. ``decode_envelope`` tries a fixed,
ordered list of shapes and returns the first structural match. Anything
else decodes to ``UNRECOGNIZED``; ``decode_envelope`` never raises.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import unquote_plus

from image_pipeline.exceptions import EnvelopeError
from image_pipeline.models import UploadNotification
from image_pipeline.router import message_attributes_from_sns

logger = logging.getLogger(__name__)

MAX_ENVELOPE_DEPTH = 4

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class EnvelopeShape(Enum):
    """The layer that directly carried the S3 event."""
    BARE_EVENT = "bare_event"
    QUEUE_WRAPPED = "queue_wrapped"
    TOPIC_WRAPPED = "topic_wrapped"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecodedEnvelope:
    shape: EnvelopeShape
    uploads: tuple[UploadNotification, ...] = ()
    depth: int = 0

    @property
    def recognized(self) -> bool:
        return self.shape is not EnvelopeShape.UNRECOGNIZED


UNRECOGNIZED = DecodedEnvelope(EnvelopeShape.UNRECOGNIZED)


def normalize_key(raw_key: str) -> str:
    """
    Object keys arrive URL-encoded with spaces as ``+``.

    Raises:
        ValueError: If the key has a malformed escape or is not UTF-8
    """
    if _MALFORMED_ESCAPE.search(raw_key):
        raise ValueError(f"Malformed percent escape in key: {raw_key!r}")
    return unquote_plus(raw_key, errors="strict")


def _parse_json(payload: Any) -> Optional[Any]:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if not isinstance(payload, str):
        return payload
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return None


def _upload_from_record(record: Any) -> Optional[UploadNotification]:
    if not isinstance(record, dict) or record.get("eventSource") != "aws:s3":
        return None

    event_name = record.get("eventName") or ""
    if not event_name.startswith("ObjectCreated"):
        return None

    s3 = record.get("s3") or {}
    bucket = (s3.get("bucket") or {}).get("name")
    raw_key = (s3.get("object") or {}).get("key")
    if not bucket or not raw_key:
        logger.warning("S3 record without bucket or key, ignoring")
        return None

    try:
        key = normalize_key(raw_key)
    except ValueError as e:
        logger.warning(f"S3 record with undecodable key, ignoring: {e}")
        return None

    return UploadNotification(
        bucket=bucket,
        key=key,
        event_name=event_name,
    )


def _queue_body(payload: dict) -> Optional[Any]:
    body = payload.get("body")
    return body if isinstance(body, (str, dict)) else None


def _topic_message(payload: dict) -> Optional[Any]:
    sns = payload.get("Sns")
    if isinstance(sns, dict):
        return sns.get("Message")
    message = payload.get("Message")
    return message if isinstance(message, (str, dict)) else None


# Wrapper shapes, tried in order after the bare-event probe.
_WRAPPERS: tuple[tuple[EnvelopeShape, Callable[[dict], Optional[Any]]], ...] = (
    (EnvelopeShape.QUEUE_WRAPPED, _queue_body),
    (EnvelopeShape.TOPIC_WRAPPED, _topic_message),
)


def decode_envelope(payload: Any, _depth: int = 0) -> DecodedEnvelope:
    """
    Unwrap ``payload`` down to the S3 object-created records it carries.

    Args:
        payload: An SQS record, SNS record, SNS notification, bare S3 event,
            or the JSON text of any of those

    Returns:
        DecodedEnvelope with at least one upload, or UNRECOGNIZED
    """
    if _depth > MAX_ENVELOPE_DEPTH:
        return UNRECOGNIZED

    payload = _parse_json(payload)
    if not isinstance(payload, dict):
        return UNRECOGNIZED

    records = payload.get("Records")
    if isinstance(records, list):
        uploads = tuple(
            upload for upload in map(_upload_from_record, records) if upload
        )
        if not uploads:
            return UNRECOGNIZED
        return DecodedEnvelope(EnvelopeShape.BARE_EVENT, uploads, depth=_depth)

    for shape, probe in _WRAPPERS:
        inner = probe(payload)
        if inner is None:
            continue
        decoded = decode_envelope(inner, _depth + 1)
        if not decoded.recognized:
            return decoded
        if decoded.shape is EnvelopeShape.BARE_EVENT:
            return DecodedEnvelope(shape, decoded.uploads, depth=decoded.depth)
        return decoded

    return UNRECOGNIZED


@dataclass(frozen=True)
class PushMessage:
    """Body and flattened attributes of a message pushed by the topic."""
    body: Any
    attributes: dict


def decode_push_message(record: dict) -> PushMessage:
    """
    Extract the JSON body and attributes of an SNS-delivered record.

    Raises:
        EnvelopeError: If the record carries no message or it is not JSON
    """
    sns = record.get("Sns") if isinstance(record.get("Sns"), dict) else record
    message = sns.get("Message")
    if message is None:
        raise EnvelopeError("Push record carries no Message")

    if isinstance(message, (str, bytes)):
        try:
            body = json.loads(message)
        except json.JSONDecodeError as e:
            raise EnvelopeError(
                f"Message body is not valid JSON: {e}",
                original_exception=e,
            )
    else:
        body = message

    return PushMessage(body=body, attributes=message_attributes_from_sns(sns))
