"""Per-user record of upload events."""

from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from imagehost.exceptions import NotFoundError, StorageIOError
from imagehost.models import Upload, new_id

DEFAULT_LIMIT = 50


class UploadLedger:
    def __init__(self, session):
        self.session = session

    def record(self, user_id, key, origin_address=None, short_id=None, uploaded_at=None):
        """Append one upload row and return it.

        ``key`` is the object-storage key. The ledger key stored on the row is
        ``<user_id>/<key>/<timestamp>-<row id prefix>``, so the same object can
        appear in any number of rows.
        """
        upload_id = new_id()
        uploaded_at = uploaded_at or datetime.now(timezone.utc)
        upload = Upload(
            id=upload_id,
            user_id=user_id,
            key=f"{user_id}/{key}/{uploaded_at:%Y%m%d%H%M%S%f}-{upload_id[:6]}",
            object_key=key,
            short_id=short_id,
            uploaded_at=uploaded_at,
            ip=origin_address,
        )
        try:
            self.session.add(upload)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e
        return upload

    def list_by_user(self, user_id, limit=DEFAULT_LIMIT):
        try:
            return (
                self.session.query(Upload)
                .filter_by(user_id=user_id)
                .order_by(Upload.uploaded_at.desc(), Upload.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageIOError() from e

    def find_by_short_id(self, short_id):
        try:
            upload = self.session.query(Upload).filter_by(short_id=short_id).first()
        except SQLAlchemyError as e:
            raise StorageIOError() from e
        if upload is None:
            raise NotFoundError("Upload not found.")
        return upload
