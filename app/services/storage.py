# app/services/storage.py
import logging
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class Storage:
    """Thin wrapper around the S3 bucket that holds uploaded code files."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream"):
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload of %s to bucket %s failed: %s", key, self.bucket, e)
            raise StorageError(f"Could not store {key}") from e

    def get(self, key: str) -> tuple[bytes, str]:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Fetch of %s from bucket %s failed: %s", key, self.bucket, e)
            raise StorageError(f"Could not fetch {key}") from e

        content_type = obj.get("ContentType") or "application/octet-stream"
        return obj["Body"].read(), content_type

    def delete(self, key: str):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Delete of %s from bucket %s failed: %s", key, self.bucket, e)
            raise StorageError(f"Could not delete {key}") from e


@lru_cache
def get_storage() -> Storage:
    settings = get_settings()
    s3 = boto3.client(
        "s3",
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )
    return Storage(s3, settings.aws_s3_bucket_name)
