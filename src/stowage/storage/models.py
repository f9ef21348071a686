"""Data model types returned by storage clients."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class BucketInfo:
    """A top-level container.

    Attributes:
        name: The bucket name (a directory name on the filesystem).
        created: Creation time, when the backend reports one.
    """

    name: str
    created: datetime | None = None


@dataclass
class ObjectMetadata:
    """Result of a stat, get or listing.

    Attributes:
        key: The object key, relative to its bucket.
        etag: Opaque content hash tag, compared only for equality.
        size: Size in bytes.
        last_modified: Last modification time.
        content_type: MIME type, when the backend reports one.
    """

    key: str
    etag: str = ""
    size: int = 0
    last_modified: datetime | None = None
    content_type: str = "application/octet-stream"
