"""Tests for the S3, DynamoDB and SES adapters against mocked clients."""

import io
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from image_pipeline.clients import ClientFactory, boto_config
from image_pipeline.config import Settings
from image_pipeline.exceptions import (
    DynamoDBError,
    ObjectNotFoundError,
    RecordNotFoundError,
    S3Error,
    SESError,
)
from image_pipeline.mailer import Mailer
from image_pipeline.models import ImageRecord
from image_pipeline.record_store import ImageTable
from image_pipeline.storage import ObjectStore


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestObjectStore:
    """Tests for ObjectStore."""

    def test_get_returns_bytes(self):
        s3 = Mock()
        s3.get_object.return_value = {"Body": io.BytesIO(b"\x89PNG")}

        assert ObjectStore(s3).get("photos", "a.png") == b"\x89PNG"
        s3.get_object.assert_called_once_with(Bucket="photos", Key="a.png")

    def test_get_missing_key(self):
        s3 = Mock()
        s3.get_object.side_effect = client_error("NoSuchKey", "GetObject")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            ObjectStore(s3).get("photos", "a.png")

        assert exc_info.value.context.s3_key == "a.png"

    def test_get_other_failure(self):
        s3 = Mock()
        s3.get_object.side_effect = client_error("AccessDenied", "GetObject")

        with pytest.raises(S3Error) as exc_info:
            ObjectStore(s3).get("photos", "a.png")

        assert not isinstance(exc_info.value, ObjectNotFoundError)

    def test_delete(self):
        s3 = Mock()
        ObjectStore(s3).delete("photos", "a.txt")
        s3.delete_object.assert_called_once_with(Bucket="photos", Key="a.txt")

    def test_delete_failure(self):
        s3 = Mock()
        s3.delete_object.side_effect = client_error("AccessDenied", "DeleteObject")

        with pytest.raises(S3Error) as exc_info:
            ObjectStore(s3).delete("photos", "a.txt")

        assert exc_info.value.operation == "DeleteObject"


class TestImageTable:
    """Tests for ImageTable."""

    def test_get_existing(self):
        table = Mock()
        table.get_item.return_value = {"Item": {"id": "a.png", "bucket": "photos", "reviewDate": "2024-03-01"}}

        record = ImageTable(table).get("a.png")

        assert record.bucket == "photos"
        assert record.review_date == "2024-03-01"
        table.get_item.assert_called_once_with(Key={"id": "a.png"}, ConsistentRead=True)

    def test_get_missing(self):
        table = Mock()
        table.get_item.return_value = {}

        assert ImageTable(table).get("a.png") is None

    def test_get_failure(self):
        table = Mock()
        table.get_item.side_effect = client_error("ProvisionedThroughputExceededException")

        with pytest.raises(DynamoDBError):
            ImageTable(table).get("a.png")

    def test_create_is_conditional_insert(self):
        table = Mock()
        record = ImageRecord(id="a.png", upload_time="2024-03-01T10:00:00+00:00", bucket="photos")

        assert ImageTable(table).create(record) is True
        table.put_item.assert_called_once_with(
            Item={"id": "a.png", "uploadTime": "2024-03-01T10:00:00+00:00", "bucket": "photos"},
            ConditionExpression="attribute_not_exists(id)",
        )

    def test_create_existing_returns_false(self):
        table = Mock()
        table.put_item.side_effect = client_error("ConditionalCheckFailedException", "PutItem")

        assert ImageTable(table).create(ImageRecord(id="a.png", bucket="photos")) is False

    def test_create_failure(self):
        table = Mock()
        table.put_item.side_effect = client_error("InternalServerError", "PutItem")

        with pytest.raises(DynamoDBError) as exc_info:
            ImageTable(table).create(ImageRecord(id="a.png", bucket="photos"))


    def test_update_fields_single_atomic_call(self):
        table = Mock()

        ImageTable(table).update_fields(
            "a.png", {"status": "Pass", "reason": "ok", "reviewDate": "2024-03-01"}
        )

        table.update_item.assert_called_once_with(
            Key={"id": "a.png"},
            UpdateExpression="SET #f0 = :v0, #f1 = :v1, #f2 = :v2",
            ExpressionAttributeNames={"#f0": "reason", "#f1": "reviewDate", "#f2": "status"},
            ExpressionAttributeValues={":v0": "ok", ":v1": "2024-03-01", ":v2": "Pass"},
            ConditionExpression="attribute_exists(id)",
        )

    def test_update_missing_record(self):
        table = Mock()
        table.update_item.side_effect = client_error("ConditionalCheckFailedException", "UpdateItem")

        with pytest.raises(RecordNotFoundError) as exc_info:
            ImageTable(table).update_fields("a.png", {"caption": "x"})

        assert exc_info.value.image_id == "a.png"

    def test_update_requires_fields(self):
        with pytest.raises(ValueError):
            ImageTable(Mock()).update_fields("a.png", {})


class TestMailer:
    """Tests for Mailer."""

    def test_send(self):
        ses = Mock()
        ses.send_email.return_value = {"MessageId": "ses-1"}

        message_id = Mailer(ses).send("from@example.com", "to@example.com", "Subject", "<p>hi</p>")

        assert message_id == "ses-1"
        kwargs = ses.send_email.call_args.kwargs
        assert kwargs["Source"] == "from@example.com"
        assert kwargs["Destination"] == {"ToAddresses": ["to@example.com"]}
        assert kwargs["Message"]["Body"]["Html"]["Data"] == "<p>hi</p>"

    def test_send_failure(self):
        ses = Mock()
        ses.send_email.side_effect = client_error("MessageRejected", "SendEmail")

        with pytest.raises(SESError) as exc_info:
            Mailer(ses).send("from@example.com", "to@example.com", "Subject", "<p>hi</p>")

        assert exc_info.value.context.additional_data["recipient"] == "to@example.com"


class TestClientFactory:
    """Tests for ClientFactory."""

    def test_clients_are_cached(self):
        session = Mock()
        factory = ClientFactory(Settings.from_env({}), session=session)

        assert factory.s3() is factory.s3()
        assert factory.dynamodb() is factory.dynamodb()
        session.client.assert_called_once()
        session.resource.assert_called_once()

    def test_endpoint_override(self):
        session = Mock()
        settings = Settings.from_env({"LOCALSTACK_ENDPOINT": "http://localhost:4566"})

        ClientFactory(settings, session=session).s3()

        kwargs = session.client.call_args.kwargs
        assert kwargs["endpoint_url"] == "http://localhost:4566"
        assert kwargs["config"] is boto_config

    def test_ses_uses_mail_region(self):
        session = Mock()
        settings = Settings.from_env({"AWS_REGION": "us-east-1", "SES_REGION": "eu-west-1"})

        ClientFactory(settings, session=session).ses()

        session.client.assert_called_once_with(
            "ses", config=boto_config, region_name="eu-west-1"
        )

    def test_reset_drops_clients(self):
        session = Mock()
        factory = ClientFactory(Settings.from_env({}), session=session)

        factory.s3()
        factory.reset()
        factory.s3()

        assert session.client.call_count == 2
