"""
Upload orchestration — hash the bytes, skip the remote upload when the
object already exists, and record the event in the ledger.
"""

import logging
import secrets
from collections import namedtuple

from imagehost.exceptions import ValidationError
from imagehost.hashing import DEFAULT_EXTENSION, content_key

logger = logging.getLogger(__name__)

SHORT_ID_BYTES = 6

UploadResult = namedtuple("UploadResult", ["image_url", "key", "short_id", "duplicate"])


def new_short_id() -> str:
    return secrets.token_urlsafe(SHORT_ID_BYTES)


class UploadOrchestrator:
    def __init__(self, store, ledger, extension: str = DEFAULT_EXTENSION):
        self.store = store
        self.ledger = ledger
        self.extension = extension

    def handle_upload(self, user_id, file_bytes, origin_address=None) -> UploadResult:
        if not file_bytes:
            raise ValidationError()

        key = content_key(file_bytes, self.extension)

        duplicate = self.store.exists(key)
        if duplicate:
            logger.info(f"File with key {key} already exists, skipping upload")
        else:
            token = self.store.upload_token(key)
            # UploadError propagates; nothing is recorded for a failed put
            self.store.put(key, file_bytes, token)
            logger.info(f"Uploaded {key} for user {user_id}")

        upload = self.ledger.record(
            user_id, key, origin_address, short_id=new_short_id()
        )

        return UploadResult(
            image_url=self.store.public_url(key),
            key=key,
            short_id=upload.short_id,
            duplicate=duplicate,
        )
