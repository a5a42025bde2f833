"""
Per-message processing loop shared by every consumer.

Components report an explicit ``MessageOutcome`` per message; the loop here
isolates failures to the message that caused them and turns the aggregated
outcomes into the delivery response according to the component's policy.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from image_pipeline.exceptions import BatchProcessingError, PipelineError
from image_pipeline.logging_config import log_execution_time, set_message_id
from image_pipeline.models import BatchResult, MessageOutcome, MessageResult

logger = logging.getLogger(__name__)


class DeliveryPolicy(Enum):
    """How a component's failures affect redelivery of its input."""
    RETRY_TO_DEAD_LETTER = "retry_to_dead_letter"
    BEST_EFFORT_SKIP = "best_effort_skip"
    ABSORB = "absorb"


class Deadline:
    """Invocation deadline derived from the Lambda context."""

    def __init__(self, remaining_ms: Optional[Callable[[], int]] = None, safety_ms: int = 0):
        self._remaining_ms = remaining_ms
        self.safety_ms = safety_ms

    @classmethod
    def from_context(cls, context: Any, safety_ms: int = 0) -> "Deadline":
        remaining = getattr(context, "get_remaining_time_in_millis", None)
        return cls(remaining if callable(remaining) else None, safety_ms)

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        """A deadline ``seconds`` from now, for callers without a Lambda context."""
        ends_at = time.monotonic() + seconds
        return cls(lambda: int((ends_at - time.monotonic()) * 1000))

    def remaining_ms(self) -> Optional[int]:
        if self._remaining_ms is None:
            return None
        return self._remaining_ms() - self.safety_ms

    @property
    def expired(self) -> bool:
        remaining = self.remaining_ms()
        return remaining is not None and remaining <= 0


NO_DEADLINE = Deadline()


def failure_outcome(policy: DeliveryPolicy) -> MessageOutcome:
    if policy is DeliveryPolicy.RETRY_TO_DEAD_LETTER:
        return MessageOutcome.RETRYABLE_FAILURE
    return MessageOutcome.SKIPPED_INVALID


def message_id_of(record: dict) -> str:
    """Delivery ID of an SQS, SNS or DynamoDB stream record."""
    if "messageId" in record:
        return str(record["messageId"])
    sns = record.get("Sns")
    if isinstance(sns, dict) and sns.get("MessageId"):
        return str(sns["MessageId"])
    if "eventID" in record:
        return str(record["eventID"])
    return "unknown"


def build_batch_response(
    result: BatchResult,
    policy: DeliveryPolicy,
    report_batch_item_failures: bool = True,
) -> dict:
    """
    Translate outcomes into the Lambda response.

    Only the retry-to-dead-letter policy ever asks for redelivery. With
    partial batch responses enabled the failed message IDs are reported;
    otherwise the whole batch is failed by raising.

    Raises:
        BatchProcessingError: If messages failed and partial responses are off
    """
    if policy is not DeliveryPolicy.RETRY_TO_DEAD_LETTER:
        return {"batchItemFailures": []}

    failed = result.retryable_message_ids
    if failed and not report_batch_item_failures:
        raise BatchProcessingError(
            message=f"{len(failed)} message(s) failed and will be redelivered",
            failed_message_ids=failed,
        )
    return {"batchItemFailures": [{"itemIdentifier": mid} for mid in failed]}


class Consumer:
    """
    Base class for a component consuming a batch of delivery records.

    Subclasses set ``policy`` and implement ``process_record``.
    """

    policy: DeliveryPolicy = DeliveryPolicy.BEST_EFFORT_SKIP

    def process_record(self, record: dict, message_id: str) -> list[MessageResult]:
        raise NotImplementedError

    @log_execution_time(logger)
    def process_batch(self, records: list[dict], deadline: Deadline = NO_DEADLINE) -> BatchResult:
        """
        Process every record, never letting one record's failure stop the rest.

        Args:
            records: Delivery records from the triggering event
            deadline: Records not started before it count as failures

        Returns:
            BatchResult with one or more results per record
        """
        result = BatchResult()

        for record in records:
            message_id = message_id_of(record)
            set_message_id(message_id)

            if deadline.expired:
                logger.warning(
                    "Invocation deadline reached before message was processed",
                    extra={"outcome": failure_outcome(self.policy).value},
                )
                result.add(MessageResult(
                    message_id=message_id,
                    outcome=failure_outcome(self.policy),
                    detail="deadline exceeded",
                ))
                continue

            try:
                for message_result in self.process_record(record, message_id):
                    result.add(message_result)
            except PipelineError as e:
                logger.error(
                    f"{type(self).__name__} failed on message: {e.message}",
                    extra={"error": e.to_dict(), "image_id": e.context.image_id},
                )
                result.add(MessageResult(
                    message_id=message_id,
                    outcome=failure_outcome(self.policy),
                    image_id=e.context.image_id,
                    detail=e.message,
                    error=e.to_dict(),
                ))
            except Exception as e:
                logger.error(
                    f"Unexpected error in {type(self).__name__}: {e}",
                    exc_info=True,
                )
                result.add(MessageResult(
                    message_id=message_id,
                    outcome=failure_outcome(self.policy),
                    detail=str(e),
                    error={"type": type(e).__name__, "message": str(e)},
                ))

        set_message_id("")
        logger.info(
            f"{type(self).__name__} batch complete",
            extra={"metrics": result.to_dict()},
        )
        return result
