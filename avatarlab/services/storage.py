"""Object storage service for generated assets."""

import logging
from io import BytesIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from avatarlab.config import get_settings
from avatarlab.errors import StorageError

logger = logging.getLogger(__name__)

settings = get_settings()


class StorageService:
    """Service for managing object storage (MinIO/S3)."""

    def __init__(self, public_base_url: str = settings.public_storage_base):
        self._client = None
        self._ready_buckets: set[str] = set()
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            endpoint_url = f"{'https' if settings.minio_use_ssl else 'http'}://{settings.minio_endpoint}"
            self._client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.minio_access_key,
                aws_secret_access_key=settings.minio_secret_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def _ensure_bucket(self, bucket: str):
        """Create bucket if it doesn't exist."""
        if bucket in self._ready_buckets:
            return
        try:
            self.client.head_bucket(Bucket=bucket)
        except ClientError:
            self.client.create_bucket(Bucket=bucket)
        self._ready_buckets.add(bucket)

    def upload_bytes(self, bucket: str, key: str, content: bytes, content_type: str) -> str:
        """
        Upload an object.
        Returns the storage key.
        """
        try:
            self._ensure_bucket(bucket)
            self.client.upload_fileobj(
                BytesIO(content),
                bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload {bucket}/{key}: {e}") from e

        logger.info(f"Uploaded {len(content)} bytes to {bucket}/{key}")
        return key

    def public_url(self, bucket: str, key: str) -> str:
        """Stable public URL of an object."""
        return f"{self.public_base_url}/{bucket}/{key}"

    def health_check(self, bucket: str = settings.images_bucket) -> bool:
        """Check if storage is accessible."""
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except Exception:
            return False


# Singleton instance
storage_service = StorageService()


def get_storage() -> StorageService:
    return storage_service
