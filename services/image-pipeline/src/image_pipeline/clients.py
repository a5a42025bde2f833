"""
Construction of the AWS clients the pipeline components depend on.

Clients are created once per process and passed into each component, so
tests can substitute fakes without patching module globals.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config

from image_pipeline.config import Settings

logger = logging.getLogger(__name__)

# Short timeouts keep a stuck call inside the invocation deadline.
boto_config = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=3,
    read_timeout=5,
)


class ClientFactory:
    """Creates and caches AWS clients for one set of settings."""

    def __init__(self, settings: Settings, session: Optional[boto3.session.Session] = None):
        self.settings = settings
        self._session = session or boto3.session.Session()
        self._s3_client = None
        self._dynamodb_resource = None
        self._ses_client = None

    def _kwargs(self, region: Optional[str] = None) -> dict:
        kwargs = {
            "config": boto_config,
            "region_name": region or self.settings.aws_region,
        }
        if self.settings.localstack_endpoint:
            kwargs["endpoint_url"] = self.settings.localstack_endpoint
        return kwargs

    def s3(self):
        """Get or create the S3 client."""
        if self._s3_client is None:
            self._s3_client = self._session.client("s3", **self._kwargs())
        return self._s3_client

    def dynamodb(self):
        """Get or create the DynamoDB resource."""
        if self._dynamodb_resource is None:
            self._dynamodb_resource = self._session.resource("dynamodb", **self._kwargs())
        return self._dynamodb_resource

    def ses(self):
        """Get or create the SES client in the configured mail region."""
        if self._ses_client is None:
            self._ses_client = self._session.client(
                "ses", **self._kwargs(region=self.settings.ses_region)
            )
        return self._ses_client

    def reset(self):
        """Drop cached clients."""
        self._s3_client = None
        self._dynamodb_resource = None
        self._ses_client = None
