"""
Object storage — S3-compatible client (Cloudflare R2)
=====================================================

Purpose
-------
Stores uploaded documents and hands out temporary download links:
- Initialize an S3 client with Signature V4 against a custom endpoint
- Generate collision-free, organization-prefixed object keys
- Upload bytes with ContentType + metadata
- Generate presigned GET URLs
- Delete objects, check existence, read object metadata

Configuration (from `nova.database.config.config.settings`)
-----------------------------------------------------------
- R2_ENDPOINT_URL      : S3-compatible endpoint
- R2_ACCESS_KEY_ID     : Access key ID
- R2_SECRET_ACCESS_KEY : Secret access key
- REGION               : Region name ("auto" for R2)
- BUCKET_NAME          : Documents bucket

Security Notes
--------------
- Credentials are never logged.
- Presigned URLs grant temporary access; the default lifetime is one hour.

The client is built once by the application lifespan and shared through
``app.state.blob_store``. boto3 is synchronous; async callers go through
``run_in_threadpool``.
"""

import logging
import re
import secrets
import string
import time
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_KEY_ALPHABET = string.ascii_lowercase + string.digits


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9._-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def generate_key(organization_id: str, filename: str) -> str:
    """
    Object key for a new upload.

    Format: ``{organization_id}/{epoch_millis}-{13 random base36 chars}-{sanitized filename}``.
    """
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(13))
    return f"{organization_id}/{timestamp}-{suffix}-{sanitize_filename(filename)}"


def get_client(settings):
    """
    Initialize and return a low-level S3 client configured for Signature V4.

    Uses:
        - settings.R2_ENDPOINT_URL
        - settings.R2_ACCESS_KEY_ID
        - settings.R2_SECRET_ACCESS_KEY
        - settings.REGION

    Returns:
        botocore.client.S3: An S3 client ready for object operations.
    """
    return boto3.client(
        "s3",
        endpoint_url=settings.R2_ENDPOINT_URL,
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name=settings.REGION,
        config=Config(signature_version="s3v4"),
    )


class BlobStore:
    """
    Document storage in one bucket.

    Parameters
    ----------
    s3_client : botocore.client.S3
        Client returned by `get_client()` (tests wrap it in a botocore ``Stubber``).
    bucket : str
        Target bucket.
    """

    def __init__(self, s3_client, bucket: str) -> None:
        self.s3_client = s3_client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings) -> "BlobStore":
        return cls(get_client(settings), settings.BUCKET_NAME)

    def generate_key(self, organization_id: str, filename: str) -> str:
        return generate_key(organization_id, filename)

    def upload(self, key: str, body: bytes, content_type: str, metadata: Optional[dict] = None) -> str:
        """
        Upload bytes under `key`.

        Args:
            key (str): Object key.
            body (bytes): File content.
            content_type (str): MIME type stored as ContentType.
            metadata (dict | None): User metadata (string values).

        Returns:
            str: The key.
        """
        params = {"Bucket": self.bucket, "Key": key, "Body": body, "ContentType": content_type}
        if metadata:
            params["Metadata"] = {name: str(value) for name, value in metadata.items()}
        self.s3_client.put_object(**params)
        logger.info("Uploaded %s (%d bytes)", key, len(body))
        return key

    def download_url(self, key: str, expires: int = 3600) -> str:
        """
        Generate a presigned URL for downloading an object.

        Args:
            key (str): Object key in the bucket.
            expires (int, optional): URL expiration in seconds (default: 3600).

        Returns:
            str: A presigned URL that allows temporary GET access.
        """
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires,
        )

    def delete(self, key: str) -> None:
        self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("Deleted %s", key)

    def exists(self, key: str) -> bool:
        """True when the object exists; a 404 from HEAD means it does not."""
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def metadata(self, key: str) -> dict:
        """
        Object metadata.

        Returns:
            dict: {'content_type', 'content_length', 'last_modified', 'etag', 'metadata'}
        """
        response = self.s3_client.head_object(Bucket=self.bucket, Key=key)
        return {
            "content_type": response.get("ContentType"),
            "content_length": response.get("ContentLength"),
            "last_modified": response.get("LastModified"),
            "etag": response.get("ETag"),
            "metadata": response.get("Metadata", {}),
        }
