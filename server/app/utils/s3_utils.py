from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterator, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.utils import logger
from app.utils.errors import BlobNotFoundError, StorageError

log_lock = Lock()

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_missing(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in _MISSING_CODES


class S3BlobStore:
    """
    Blob storage backed by a single S3 bucket.
    Keys look like '<category>/<uuid>-<original name>'.
    """

    def __init__(self, bucket_name: str, region_name: str, endpoint_url: Optional[str] = None, client=None):
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        if client is None:
            try:
                client = boto3.client("s3", region_name=region_name, endpoint_url=endpoint_url)
            except (BotoCoreError, ClientError) as e:
                raise RuntimeError(f"Failed to initialize S3 client: {str(e)}")
        self.client = client

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return
        except ClientError as e:
            if not _is_missing(e):
                logger.error(f"Failed to access S3 bucket {self.bucket_name}: {str(e)}")
                raise StorageError(f"Failed to access bucket: {str(e)}") from e
        kwargs = {"Bucket": self.bucket_name}
        if self.region_name and self.region_name != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region_name}
        try:
            self.client.create_bucket(**kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to create S3 bucket {self.bucket_name}: {str(e)}")
            raise StorageError(f"Failed to create bucket: {str(e)}") from e
        logger.info(f"Created S3 bucket: {self.bucket_name}")

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}"

    def upload(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        content_disposition: Optional[str] = None,
    ) -> str:
        kwargs = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": data,
            "ContentType": content_type or "application/octet-stream",
        }
        if metadata:
            kwargs["Metadata"] = metadata
        if content_disposition:
            kwargs["ContentDisposition"] = content_disposition
        with log_lock:
            logger.debug(f"Uploading S3 object: {key} ({len(data)} bytes) to bucket: {self.bucket_name}")
        try:
            self.client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {key} to bucket {self.bucket_name}: {str(e)}")
            raise StorageError(f"Failed to upload blob: {str(e)}") from e
        return self.url_for(key)

    def download(self, key: str) -> bytes:
        with log_lock:
            logger.debug(f"Downloading S3 object: {key} from bucket: {self.bucket_name}")
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(key)
            logger.error(f"Failed to download {key} from bucket {self.bucket_name}: {str(e)}")
            raise StorageError(f"Failed to download blob: {str(e)}") from e
        except BotoCoreError as e:
            logger.error(f"Failed to download {key} from bucket {self.bucket_name}: {str(e)}")
            raise StorageError(f"Failed to download blob: {str(e)}") from e

    def get_properties(self, key: str) -> Dict[str, Any]:
        try:
            head = self.client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(key)
            raise StorageError(f"Failed to read blob properties: {str(e)}") from e
        return {
            "contentType": head.get("ContentType"),
            "contentLength": head.get("ContentLength", 0),
            "lastModified": head.get("LastModified"),
            "metadata": head.get("Metadata", {}),
        }

    def exists(self, key: str) -> bool:
        try:
            self.get_properties(key)
            return True
        except BlobNotFoundError:
            return False

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete {key} from bucket {self.bucket_name}: {str(e)}")
            raise StorageError(f"Failed to delete blob: {str(e)}") from e

    def list_blobs(self, prefix: str = "") -> Iterator[Dict[str, Any]]:
        """Yield {name, size, lastModified} for every object under prefix."""
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get("Contents", []):
                    if obj["Key"].endswith("/"):
                        continue
                    last_modified = obj.get("LastModified")
                    yield {
                        "name": obj["Key"],
                        "size": obj.get("Size", 0),
                        "lastModified": last_modified if isinstance(last_modified, datetime) else None,
                    }
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to list bucket {self.bucket_name} with prefix '{prefix}': {str(e)}")
            raise StorageError(f"Failed to list blobs: {str(e)}") from e
