"""Client capability protocol for stowage.

Every backend (local filesystem, S3-compatible object store) implements the
same operation set with the same observable semantics, so command drivers
never branch on the backend kind.
"""

from typing import AsyncIterator, Protocol

from stowage.acl import BucketACL
from stowage.storage.models import BucketInfo, ObjectMetadata
from stowage.storage.streams import AsyncReader, ChunkReader
from stowage.urls import ResolvedURL


class ClientCapability(Protocol):
    """Uniform handle to one target URL.

    Bucket-level methods act on the bucket the URL names. Object-level
    methods take an explicit bucket and key; :meth:`location` returns the
    pair the URL itself names.

    Attributes:
        url: The resolved target this client was built for.
    """

    url: ResolvedURL

    def location(self) -> tuple[str, str]:
        """Return the ``(bucket, key)`` the client's URL names."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def make_bucket(self) -> None:
        """Create the bucket.

        Raises:
            BucketAlreadyOwnedByYou: If the bucket already exists.
        """
        ...

    async def bucket_exists(self) -> None:
        """Check the bucket is reachable.

        Raises:
            AccessDenied: If the bucket exists but is not accessible.
            NoSuchBucket: If the bucket does not exist.
        """
        ...

    async def remove_bucket(self) -> None:
        """Remove the bucket.

        Raises:
            NoSuchBucket: If the bucket does not exist.
        """
        ...

    async def set_bucket_acl(self, acl: str | BucketACL) -> None:
        """Apply a canned ACL to the bucket.

        Raises:
            InvalidBucketACL: Before any request, if ``acl`` is not canned.
        """
        ...

    async def get_bucket_acl(self) -> BucketACL:
        """Return the bucket's canned ACL."""
        ...

    def list_buckets(self) -> AsyncIterator[BucketInfo]:
        """Lazily list buckets.

        An error ends the sequence where it occurs. Consume inside
        ``contextlib.aclosing`` so the generator is closed on early exit.
        """
        ...

    def list_objects(
        self, bucket: str, prefix: str = "", recursive: bool = False
    ) -> AsyncIterator[ObjectMetadata]:
        """Lazily list objects under ``prefix``.

        Args:
            bucket: The bucket name.
            prefix: Key prefix to list under.
            recursive: When False, only keys with no further ``/`` after
                ``prefix`` are returned.
        """
        ...

    async def put_object(self, bucket: str, key: str, size: int, reader: AsyncReader) -> str:
        """Store exactly ``size`` bytes read from ``reader``.

        Returns:
            The ETag of the stored object.

        Raises:
            SizeMismatch: If ``reader`` yields fewer or more than ``size`` bytes.
        """
        ...

    async def stat_object(self, bucket: str, key: str) -> ObjectMetadata:
        """Return an object's metadata.

        Raises:
            NoSuchKey: If the object does not exist.
        """
        ...

    async def get_object(
        self, bucket: str, key: str, offset: int = 0, length: int = 0
    ) -> tuple[ChunkReader, ObjectMetadata]:
        """Open an object for reading.

        ``offset=0, length=0`` reads the whole object; a non-zero ``length``
        reads that many bytes from ``offset``.

        Raises:
            NoSuchKey: If the object does not exist.
            InvalidRange: If the range lies beyond the object's size.
        """
        ...

    async def remove_object(self, bucket: str, key: str) -> None:
        """Delete an object.

        Raises:
            NoSuchKey: If the object does not exist.
        """
        ...
