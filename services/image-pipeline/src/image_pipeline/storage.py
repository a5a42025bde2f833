"""
Object storage adapter over the S3 client.
"""

import logging

from botocore.exceptions import ClientError

from image_pipeline.exceptions import ObjectNotFoundError, S3Error

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class ObjectStore:
    """Reads and deletes uploaded objects."""

    def __init__(self, s3_client):
        self.s3 = s3_client

    def get(self, bucket: str, key: str) -> bytes:
        """
        Read an object back from storage.

        Raises:
            ObjectNotFoundError: If the bucket or key does not exist
            S3Error: For any other failure
        """
        try:
            response = self.s3.get_object(Bucket=bucket, Key=key)
            content = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    message=f"Object not found: s3://{bucket}/{key}",
                    bucket=bucket,
                    key=key,
                    original_exception=e,
                )
            raise S3Error(
                message=f"Failed to read from S3: {e}",
                bucket=bucket,
                key=key,
                original_exception=e,
            )
        except Exception as e:
            raise S3Error(
                message=f"Failed to read from S3: {e}",
                bucket=bucket,
                key=key,
                original_exception=e,
            )

        logger.debug(
            f"Read {len(content)} bytes from S3",
            extra={"s3_bucket": bucket, "s3_key": key},
        )
        return content

    def delete(self, bucket: str, key: str) -> None:
        """
        Delete an object.

        Raises:
            S3Error: If the delete call fails
        """
        try:
            self.s3.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            raise S3Error(
                message=f"Failed to delete from S3: {e}",
                bucket=bucket,
                key=key,
                operation="DeleteObject",
                original_exception=e,
            )
