"""Content fingerprints used as object-storage keys."""

import hashlib

from imagehost.exceptions import ValidationError

ALGORITHM = "sha256"
DEFAULT_EXTENSION = "png"


def content_digest(data: bytes) -> str:
    """Return the hex SHA-256 digest of ``data``."""
    if data is None:
        raise ValidationError()
    return hashlib.new(ALGORITHM, data).hexdigest()


def content_key(data: bytes, extension: str = DEFAULT_EXTENSION) -> str:
    """Return the storage key for ``data``: ``"<digest>.<extension>"``.

    The extension does not depend on the actual image type, so a JPEG is
    stored as ``<digest>.png`` too.
    """
    return f"{content_digest(data)}.{extension}"
