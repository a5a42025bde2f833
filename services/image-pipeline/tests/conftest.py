"""Pytest fixtures and configuration."""

import os
from datetime import datetime, timezone

import pytest

os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["IMAGE_TABLE_NAME"] = "test-image-table"
os.environ["SES_EMAIL_FROM"] = "noreply@example.com"
os.environ["SES_EMAIL_TO"] = "moderators@example.com"
os.environ["SES_REGION"] = "eu-west-1"

from fakes import (  # noqa: E402
    FakeImageTable,
    FakeMailer,
    FakeObjectStore,
    s3_event,
    sqs_record,
)
from image_pipeline.compensator import Compensator  # noqa: E402
from image_pipeline.metadata_merger import MetadataMerger  # noqa: E402
from image_pipeline.notifier import StatusNotifier  # noqa: E402
from image_pipeline.status_merger import StatusMerger  # noqa: E402
from image_pipeline.validator import IngestionValidator  # noqa: E402

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def object_store():
    store = FakeObjectStore()
    store.put("photos", "sunset.png")
    return store


@pytest.fixture
def image_table():
    return FakeImageTable()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def validator(object_store, image_table):
    return IngestionValidator(object_store, image_table)


@pytest.fixture
def compensator(object_store, image_table):
    return Compensator(object_store, image_table)


@pytest.fixture
def metadata_merger(image_table):
    return MetadataMerger(image_table)


@pytest.fixture
def status_merger(image_table):
    return StatusMerger(image_table)


@pytest.fixture
def notifier(mailer):
    return StatusNotifier(
        mailer,
        source="noreply@example.com",
        recipient="moderators@example.com",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def sunset_record(image_table, validator):
    """Image table already holding the record for photos/sunset.png."""
    validator.process_batch([sqs_record(s3_event("photos", "sunset.png"))])
    image_table.drain_stream()
    image_table.writes.clear()
    return image_table.items["sunset.png"]
