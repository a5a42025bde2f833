"""End-to-end flows through the topic, the queues and every handler."""

from unittest.mock import Mock

import pytest

from fakes import FakeQueue, FakeTopic, LambdaContext, s3_event
from image_pipeline import handler
from image_pipeline.config import Settings
from image_pipeline.handler import Runtime, set_runtime
from image_pipeline.router import IMAGE_PROCESS_QUEUE, IMAGE_PROCESS_REDRIVE

STATUS_MESSAGE = {
    "id": "sunset.png",
    "date": "2024-03-01",
    "update": {"status": "Reject", "reason": "blurry"},
}


class Pipeline:
    """The deployed topology wired to in-memory services."""

    def __init__(self, object_store, image_table, notifier):
        runtime = Runtime(Settings.from_env({"IMAGE_TABLE_NAME": "test-image-table"}), factory=Mock())
        runtime.object_store = object_store
        runtime.image_table = image_table
        runtime.notifier = notifier
        set_runtime(runtime)

        self.image_table = image_table
        self.dead_letter = FakeQueue(batch_size=IMAGE_PROCESS_REDRIVE.dead_letter_batch_size)
        self.queue = FakeQueue(
            max_receive_count=IMAGE_PROCESS_REDRIVE.max_receive_count,
            batch_size=IMAGE_PROCESS_QUEUE.batch_size,
            dead_letter=self.dead_letter,
        )
        self.topic = FakeTopic(self.queue, {
            "add-metadata": lambda event: handler.add_metadata_handler(event, LambdaContext()),
            "update-status": lambda event: handler.update_status_handler(event, LambdaContext()),
        })

    def upload(self, bucket, key):
        return self.deliver(s3_event(bucket, key))

    def deliver(self, event):
        self.topic.publish(event)
        return self.queue.drain(lambda event: handler.validate_upload_handler(event, LambdaContext()))

    def compensate(self):
        return self.dead_letter.drain(lambda event: handler.remove_image_handler(event, LambdaContext()))

    def publish(self, message, attributes):
        delivered = self.topic.publish(message, attributes)
        self.queue.drain(lambda event: handler.validate_upload_handler(event, LambdaContext()))
        return delivered

    def flush_stream(self):
        records = self.image_table.drain_stream()
        if records:
            handler.status_mailer_handler({"Records": records}, LambdaContext())


@pytest.fixture
def pipeline(object_store, image_table, notifier):
    yield Pipeline(object_store, image_table, notifier)
    set_runtime(None)


class TestUploadFlow:
    """Uploads through the image-process queue."""

    def test_valid_upload_is_recorded(self, pipeline, image_table):
        deliveries = pipeline.upload("photos", "sunset.png")

        assert deliveries == 1
        record = image_table.items["sunset.png"]
        assert set(record) == {"id", "bucket", "uploadTime"}
        assert record["bucket"] == "photos"

    def test_invalid_upload_is_dead_lettered_and_removed(self, pipeline, object_store, image_table):
        object_store.put("photos", "notes.txt")

        deliveries = pipeline.upload("photos", "notes.txt")

        assert deliveries == 3
        assert len(pipeline.queue) == 0
        assert len(pipeline.dead_letter) == 1

        pipeline.compensate()

        assert ("photos", "notes.txt") in object_store.deleted
        assert ("photos", "notes.txt") not in object_store.objects
        assert len(pipeline.dead_letter) == 0
        assert "notes.txt" not in image_table.items

    def test_mixed_envelope_keeps_recorded_object(self, pipeline, object_store, image_table):
        object_store.put("photos", "notes.txt")
        event = s3_event("photos", "sunset.png")
        event["Records"] += s3_event("photos", "notes.txt")["Records"]

        deliveries = pipeline.deliver(event)
        pipeline.compensate()

        assert deliveries == 3
        assert "sunset.png" in image_table.items
        assert ("photos", "sunset.png") in object_store.objects
        assert object_store.deleted == [("photos", "notes.txt")]
        assert "notes.txt" not in image_table.items

    def test_redelivered_upload_keeps_enrichment(self, pipeline, image_table):
        pipeline.upload("photos", "sunset.png")
        pipeline.publish({"id": "sunset.png", "value": "Golden hour"}, {"metadata_type": "Caption"})

        pipeline.upload("photos", "sunset.png")

        assert image_table.items["sunset.png"]["caption"] == "Golden hour"


class TestEnrichmentFlow:
    """Metadata and review messages published to the topic."""

    def test_caption_is_merged(self, pipeline, image_table):
        pipeline.upload("photos", "sunset.png")

        delivered = pipeline.publish(
            {"id": "sunset.png", "value": "Golden hour"}, {"metadata_type": "Caption"}
        )

        assert delivered == ["image-process", "add-metadata"]
        assert image_table.items["sunset.png"]["caption"] == "Golden hour"

    def test_metadata_for_missing_record_is_dropped(self, pipeline, image_table):
        pipeline.publish({"id": "missing.png", "value": "x"}, {"metadata_type": "Caption"})

        assert image_table.items == {}
        assert len(pipeline.queue) == 0
        assert len(pipeline.dead_letter) == 0

    def test_unfiltered_attribute_value_reaches_queue_only(self, pipeline, image_table):
        pipeline.upload("photos", "sunset.png")

        delivered = pipeline.publish({"id": "sunset.png", "value": "x"}, {"metadata_type": "Location"})

        assert delivered == ["image-process"]
        assert "location" not in image_table.items["sunset.png"]
        assert len(pipeline.dead_letter) == 0


class TestReviewFlow:
    """Status updates and the notification they trigger."""

    def test_status_update_sends_one_email(self, pipeline, image_table, mailer):
        pipeline.upload("photos", "sunset.png")
        pipeline.flush_stream()

        delivered = pipeline.publish(STATUS_MESSAGE, {"message_type": "status_update"})
        pipeline.flush_stream()

        assert delivered == ["image-process", "update-status"]
        record = image_table.items["sunset.png"]
        assert record["status"] == "Reject"
        assert record["reason"] == "blurry"
        assert record["reviewDate"] == "2024-03-01"
        assert len(mailer.sent) == 1
        assert mailer.sent[0]["subject"] == "Photo Status Update: sunset.png"
        assert "REJECTED" in mailer.sent[0]["html"]

    def test_reapplied_status_sends_no_email(self, pipeline, image_table, mailer):
        pipeline.upload("photos", "sunset.png")
        pipeline.publish(STATUS_MESSAGE, {"message_type": "status_update"})
        pipeline.flush_stream()
        before = dict(image_table.items["sunset.png"])

        pipeline.publish(STATUS_MESSAGE, {"message_type": "status_update"})
        pipeline.flush_stream()

        assert image_table.items["sunset.png"] == before
        assert len(mailer.sent) == 1

    def test_metadata_after_review_sends_no_email(self, pipeline, mailer):
        pipeline.upload("photos", "sunset.png")
        pipeline.publish(STATUS_MESSAGE, {"message_type": "status_update"})
        pipeline.flush_stream()

        pipeline.publish({"id": "sunset.png", "value": "Ana"}, {"metadata_type": "name"})
        pipeline.flush_stream()

        assert len(mailer.sent) == 1
