"""Object storage backends for publishing bundles."""

from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Optional, Tuple

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from bundler.errors import UploadError

ProgressCallback = Callable[[int], None]

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def parse_location(location: str) -> Tuple[str, Optional[str]]:
    """Split "s3://bucket/some/key" (or "bucket/some/key") into bucket and key.

    Returns:
        (bucket, key) where key is None if the location names only a bucket
    """
    location = location.strip()
    if location.startswith("s3://"):
        location = location[len("s3://"):]
    bucket, _, key = location.partition("/")
    if not bucket:
        raise ValueError(f"no bucket in storage location {location!r}")
    return bucket, key or None


class ObjectStore(ABC):
    """The two operations publishing needs from an object store."""

    bucket: str

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if an object exists; a missing object is not an error."""
        ...

    @abstractmethod
    def upload_stream(
        self,
        key: str,
        stream: BinaryIO,
        content_type: str = "application/zip",
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Upload a stream to key.

        Args:
            key: Object key
            stream: Binary stream, read to the end
            content_type: MIME type stored with the object
            progress: Called with the number of bytes sent since the previous call
        """
        ...


class S3ObjectStore(ObjectStore):
    """
    S3 (or S3-compatible) object store.

    Credentials come from boto3's default chain; retries are boto3's own.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket

        if client is None:
            client_kwargs = {
                "service_name": "s3",
                "config": Config(signature_version="s3v4"),
            }
            if region:
                client_kwargs["region_name"] = region
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client(**client_kwargs)

        self.client = client
        logger.debug(f"S3 object store for bucket {bucket} (endpoint={endpoint_url}, region={region})")

    def exists(self, key: str) -> bool:
        key = key.lstrip("/")
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
                return False
            raise UploadError(self.bucket, key, e)
        except BotoCoreError as e:
            raise UploadError(self.bucket, key, e)

    def upload_stream(
        self,
        key: str,
        stream: BinaryIO,
        content_type: str = "application/zip",
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        key = key.lstrip("/")
        try:
            self.client.upload_fileobj(
                stream,
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
                Callback=progress,
            )
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise UploadError(self.bucket, key, e)

        logger.info(f"Uploaded s3://{self.bucket}/{key}")
