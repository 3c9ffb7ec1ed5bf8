"""Object storage upload targets (S3-compatible, e.g. DigitalOcean Spaces).

Clients upload bytes straight to storage with a short-lived presigned PUT
URL, then record the resulting public URL as a client file or a comment
attachment.  Keys are `<uuid>-<file name>` so repeated names never collide.
"""

import logging
import uuid
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

from clientdesk.config import settings
from clientdesk.middleware.exceptions import CollaboratorUnavailable
from clientdesk.schemas.annotation import UploadTarget

logger = logging.getLogger(__name__)


class ObjectStorage:
    def __init__(
        self,
        bucket: str | None = None,
        endpoint: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        expires_in: int | None = None,
    ):
        self.bucket = bucket if bucket is not None else settings.storage_bucket
        self.endpoint = endpoint or settings.storage_endpoint
        self.region = region or settings.storage_region
        self.access_key = access_key if access_key is not None else settings.storage_access_key
        self.secret_key = secret_key if secret_key is not None else settings.storage_secret_key
        self.expires_in = expires_in or settings.upload_url_expiry_seconds
        self._client = None

    def is_configured(self) -> bool:
        return bool(self.bucket and self.access_key and self.secret_key)

    def _get_client(self):
        """Lazy-load the boto3 S3 client."""
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                region_name=self.region,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
            )
        return self._client

    def public_url(self, key: str) -> str:
        host = urlparse(self.endpoint).netloc
        return f"https://{self.bucket}.{host}/{key}"

    def request_upload_target(self, file_name: str, content_type: str) -> UploadTarget:
        """Presign a public-read PUT for a fresh object key.

        Raises:
            CollaboratorUnavailable: storage is not configured or refused to sign
        """
        if not self.is_configured():
            raise CollaboratorUnavailable("Object storage", "storage credentials are not configured")

        key = f"{uuid.uuid4()}-{file_name}"
        try:
            upload_url = self._get_client().generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "ContentType": content_type,
                    "ACL": "public-read",
                },
                ExpiresIn=self.expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Could not presign upload for %s: %s", key, exc)
            raise CollaboratorUnavailable("Object storage", str(exc)) from exc

        logger.info("Issued upload target %s (%s)", key, content_type)
        return UploadTarget(
            upload_url=upload_url,
            public_url=self.public_url(key),
            key=key,
            expires_in=self.expires_in,
        )


_storage: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the process-wide storage client."""
    global _storage
    if _storage is None:
        _storage = ObjectStorage()
    return _storage
