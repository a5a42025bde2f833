"""
Image table adapter over a DynamoDB ``Table`` resource.

Creation is a conditional insert, so a redelivered upload never clobbers a
record that mergers have already enriched. Field updates are conditional on
the record existing, so no update path can create a record.
"""

import logging
from typing import Optional

from botocore.exceptions import ClientError

from image_pipeline.exceptions import DynamoDBError, RecordNotFoundError
from image_pipeline.models import ImageRecord

logger = logging.getLogger(__name__)


def _is_conditional_check_failed(exc: Exception) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class ImageTable:
    """Keyed storage for image records."""

    def __init__(self, table):
        self.table = table

    @property
    def name(self) -> str:
        return getattr(self.table, "name", "image-table")

    def get(self, image_id: str) -> Optional[ImageRecord]:
        try:
            response = self.table.get_item(Key={"id": image_id}, ConsistentRead=True)
        except Exception as e:
            raise DynamoDBError(
                message=f"Failed to read image {image_id}: {e}",
                table_name=self.name,
                operation="GetItem",
                image_id=image_id,
                original_exception=e,
            )

        item = response.get("Item")
        return ImageRecord.from_item(item) if item else None

    def create(self, record: ImageRecord) -> bool:
        """
        Insert a new record.

        Returns:
            True if the record was inserted, False if one already existed
        """
        try:
            self.table.put_item(
                Item=record.to_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
        except Exception as e:
            if _is_conditional_check_failed(e):
                logger.info(
                    f"Image {record.id} already recorded",
                    extra={"image_id": record.id},
                )
                return False
            raise DynamoDBError(
                message=f"Failed to create image {record.id}: {e}",
                table_name=self.name,
                operation="PutItem",
                image_id=record.id,
                original_exception=e,
            )
        return True

    def update_fields(self, image_id: str, fields: dict) -> None:
        """
        Set ``fields`` on an existing record in a single atomic update.

        Raises:
            RecordNotFoundError: If no record with ``image_id`` exists
            DynamoDBError: For any other failure
        """
        if not fields:
            raise ValueError("update_fields requires at least one field")

        names = {}
        values = {}
        assignments = []
        for idx, (field_name, value) in enumerate(sorted(fields.items())):
            names[f"#f{idx}"] = field_name
            values[f":v{idx}"] = value
            assignments.append(f"#f{idx} = :v{idx}")

        try:
            self.table.update_item(
                Key={"id": image_id},
                UpdateExpression="SET " + ", ".join(assignments),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression="attribute_exists(id)",
            )
        except Exception as e:
            if _is_conditional_check_failed(e):
                raise RecordNotFoundError(image_id)
            raise DynamoDBError(
                message=f"Failed to update image {image_id}: {e}",
                table_name=self.name,
                operation="UpdateItem",
                image_id=image_id,
                original_exception=e,
            )
