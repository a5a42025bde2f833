"""
AWS Lambda entry points for the image pipeline.

One handler per component:
- validate_upload_handler: image-process queue -> IngestionValidator
- remove_image_handler: image-process dead-letter queue -> Compensator
- add_metadata_handler: topic, metadata_type filter -> MetadataMerger
- update_status_handler: topic, message_type filter -> StatusMerger
- status_mailer_handler: image table stream -> StatusNotifier

Clients and components are built once per process and reused across
invocations.
"""

import time
from functools import cached_property
from typing import Any, Optional

from image_pipeline.clients import ClientFactory
from image_pipeline.compensator import Compensator
from image_pipeline.config import Settings
from image_pipeline.dispatch import Consumer, Deadline, build_batch_response
from image_pipeline.logging_config import configure_logging, set_correlation_id
from image_pipeline.mailer import Mailer
from image_pipeline.metadata_merger import MetadataMerger
from image_pipeline.notifier import StatusNotifier
from image_pipeline.record_store import ImageTable
from image_pipeline.status_merger import StatusMerger
from image_pipeline.storage import ObjectStore
from image_pipeline.validator import IngestionValidator

settings = Settings.from_env()

logger = configure_logging(
    level=settings.log_level,
    service_name="image-pipeline",
)


class Runtime:
    """Pipeline components wired to one client factory."""

    def __init__(self, settings: Settings, factory: Optional[ClientFactory] = None):
        self.settings = settings
        self.factory = factory or ClientFactory(settings)

    @cached_property
    def object_store(self) -> ObjectStore:
        return ObjectStore(self.factory.s3())

    @cached_property
    def image_table(self) -> ImageTable:
        self.settings.require("image_table_name")
        return ImageTable(self.factory.dynamodb().Table(self.settings.image_table_name))

    @cached_property
    def validator(self) -> IngestionValidator:
        return IngestionValidator(
            self.object_store,
            self.image_table,
            allowed_extensions=self.settings.allowed_extensions,
        )

    @cached_property
    def compensator(self) -> Compensator:
        return Compensator(self.object_store, self.image_table)

    @cached_property
    def metadata_merger(self) -> MetadataMerger:
        return MetadataMerger(self.image_table)

    @cached_property
    def status_merger(self) -> StatusMerger:
        return StatusMerger(self.image_table)

    @cached_property
    def notifier(self) -> StatusNotifier:
        self.settings.require("ses_email_from", "ses_email_to", "ses_region")
        return StatusNotifier(
            Mailer(self.factory.ses()),
            source=self.settings.ses_email_from,
            recipient=self.settings.ses_email_to,
        )


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        _runtime = Runtime(settings)
    return _runtime


def set_runtime(runtime: Optional[Runtime]) -> None:
    """Replace the process-wide runtime (tests, local runs)."""
    global _runtime
    _runtime = runtime


def run_consumer(component: Consumer, event: dict, context: Any, runtime: Runtime) -> dict:
    """
    Run one component over the records of a Lambda event.

    Returns:
        The partial batch response for the triggering event source
    """
    start_time = time.perf_counter()
    correlation_id = set_correlation_id(getattr(context, "aws_request_id", None))
    records = event.get("Records") or []

    logger.info(
        f"{type(component).__name__} invocation started",
        extra={"metrics": {"record_count": len(records), "correlation_id": correlation_id}},
    )

    deadline = Deadline.from_context(context, runtime.settings.deadline_safety_ms)
    result = component.process_batch(records, deadline)
    response = build_batch_response(
        result,
        component.policy,
        report_batch_item_failures=runtime.settings.report_batch_item_failures,
    )

    duration_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"{type(component).__name__} invocation complete",
        extra={
            "duration_ms": round(duration_ms, 2),
            "metrics": result.to_dict(),
        },
    )
    return response


def validate_upload_handler(event: dict, context: Any) -> dict:
    runtime = get_runtime()
    return run_consumer(runtime.validator, event, context, runtime)


def remove_image_handler(event: dict, context: Any) -> dict:
    runtime = get_runtime()
    return run_consumer(runtime.compensator, event, context, runtime)


def add_metadata_handler(event: dict, context: Any) -> dict:
    runtime = get_runtime()
    return run_consumer(runtime.metadata_merger, event, context, runtime)


def update_status_handler(event: dict, context: Any) -> dict:
    runtime = get_runtime()
    return run_consumer(runtime.status_merger, event, context, runtime)


def status_mailer_handler(event: dict, context: Any) -> dict:
    runtime = get_runtime()
    return run_consumer(runtime.notifier, event, context, runtime)
