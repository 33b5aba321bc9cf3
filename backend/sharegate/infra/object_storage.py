import asyncio
import logging
from datetime import timedelta
from urllib.parse import quote

from minio import Minio

from ..config import Settings

logger = logging.getLogger("sharegate.storage")


def _content_disposition(filename: str) -> str:
    # RFC 6266 filename* keeps non-ascii names intact
    return f"attachment; filename*=UTF-8''{quote(filename)}"


class MinioObjectLocator:
    """Presigned GET URLs for objects in a single MinIO/S3 bucket."""

    def __init__(self, client: Minio, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioObjectLocator":
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key or None,
            secret_key=settings.minio_secret_key or None,
            secure=settings.minio_secure,
        )
        return cls(client, settings.minio_bucket)

    async def presign(
        self,
        key: str,
        *,
        expires_in: int,
        download: bool = False,
        filename: str | None = None,
    ) -> str:
        response_headers = None
        if download:
            response_headers = {
                "response-content-disposition": _content_disposition(filename or key.rsplit("/", 1)[-1])
            }
        # minio's client is synchronous; keep it off the event loop
        url = await asyncio.to_thread(
            self._client.presigned_get_object,
            self._bucket,
            key,
            expires=timedelta(seconds=expires_in),
            response_headers=response_headers,
        )
        logger.debug("object_presigned bucket=%s key=%s download=%s", self._bucket, key, download)
        return url
