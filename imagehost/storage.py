"""
Object storage gateway — existence checks, scoped upload tokens, uploads,
and public URLs for content keys in an S3-compatible bucket.
"""

import logging
from datetime import timedelta

import urllib3
from minio import Minio
from minio.error import MinioException, S3Error

from imagehost.exceptions import UploadError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "NotFound", "ResourceNotFound"}


class ObjectStoreGateway:
    def __init__(
        self,
        client: Minio,
        bucket: str,
        domain: str,
        http: urllib3.PoolManager | None = None,
        token_expires: int = 3600,
    ):
        self._client = client
        self._bucket = bucket
        self._domain = domain.rstrip("/")
        self._http = http or urllib3.PoolManager()
        self._token_expires = timedelta(seconds=token_expires)

    @classmethod
    def from_config(cls, config):
        client = Minio(
            endpoint=config["STORAGE_ENDPOINT"],
            access_key=config["STORAGE_ACCESS_KEY"],
            secret_key=config["STORAGE_SECRET_KEY"],
            secure=config["STORAGE_SECURE"],
            region=config["STORAGE_REGION"],
        )
        return cls(
            client,
            bucket=config["STORAGE_BUCKET"],
            domain=config["STORAGE_DOMAIN"],
            token_expires=config["STORAGE_UPLOAD_TOKEN_EXPIRES"],
        )

    def exists(self, key: str) -> bool:
        """Return True if ``key`` is already stored.

        Errors other than "not found" are logged and reported as False, so a
        flaky check costs a redundant upload instead of a failed request.
        """
        try:
            self._client.stat_object(bucket_name=self._bucket, object_name=key)
        except S3Error as e:
            if e.code not in _NOT_FOUND_CODES:
                logger.error(f"Existence check for {key} failed: {e}")
            return False
        except (MinioException, urllib3.exceptions.HTTPError) as e:
            logger.error(f"Existence check for {key} failed: {e}")
            return False
        return True

    def upload_token(self, key: str) -> str:
        """Presigned PUT URL valid only for ``key`` in this bucket."""
        return self._client.presigned_put_object(
            bucket_name=self._bucket,
            object_name=key,
            expires=self._token_expires,
        )

    def put(
        self,
        key: str,
        data: bytes,
        token: str | None = None,
        content_type: str = "image/png",
    ) -> None:
        if token is None:
            token = self.upload_token(key)
        try:
            resp = self._http.request(
                "PUT",
                token,
                body=data,
                headers={"Content-Type": content_type},
            )
        except urllib3.exceptions.HTTPError as e:
            logger.error(f"Upload of {key} failed: {e}")
            raise UploadError() from e

        if not 200 <= resp.status < 300:
            logger.error(f"Upload of {key} rejected with status {resp.status}")
            raise UploadError()
        logger.debug(f"Stored {key} ({len(data)} bytes)")

    def public_url(self, key: str) -> str:
        return f"{self._domain}/{key}"
