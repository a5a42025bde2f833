"""
Image Pipeline - serverless ingestion and moderation of uploaded images.

Uploads are validated into image records, enriched by metadata and status
mergers, and status transitions are emailed from the table's change stream.
Lambda entry points live in ``image_pipeline.handler``.
"""

from image_pipeline.compensator import Compensator
from image_pipeline.envelopes import DecodedEnvelope, EnvelopeShape, decode_envelope
from image_pipeline.exceptions import (
    AWSServiceError,
    BatchProcessingError,
    ConfigurationError,
    DynamoDBError,
    EnvelopeError,
    ObjectNotFoundError,
    PipelineError,
    RecordNotFoundError,
    S3Error,
    SESError,
    ValidationError,
)
from image_pipeline.metadata_merger import MetadataMerger
from image_pipeline.models import (
    BatchResult,
    ImageRecord,
    MessageOutcome,
    MessageResult,
    MetadataType,
    ReviewStatus,
)
from image_pipeline.notifier import StatusNotifier
from image_pipeline.status_merger import StatusMerger
from image_pipeline.validator import IngestionValidator

__all__ = [
    "IngestionValidator",
    "Compensator",
    "MetadataMerger",
    "StatusMerger",
    "StatusNotifier",
    "decode_envelope",
    "DecodedEnvelope",
    "EnvelopeShape",
    "ImageRecord",
    "MetadataType",
    "ReviewStatus",
    "MessageOutcome",
    "MessageResult",
    "BatchResult",
    "PipelineError",
    "ValidationError",
    "EnvelopeError",
    "RecordNotFoundError",
    "AWSServiceError",
    "S3Error",
    "ObjectNotFoundError",
    "DynamoDBError",
    "SESError",
    "ConfigurationError",
    "BatchProcessingError",
]

__version__ = "1.0.0"
