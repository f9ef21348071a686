"""Local filesystem client for stowage.

Implements the ClientCapability protocol on the local filesystem. The
client's URL path plays the role of the bucket for bucket-level operations;
object operations address ``{bucket}/{key}`` where ``bucket`` is a directory
path and an empty key names the bucket path itself.

Writes use the temp-fsync-rename pattern so an interrupted copy never leaves
a truncated file under the final name.
"""

import errno
import hashlib
import logging
import os
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path

from stowage.acl import BucketACL, acl_to_mode, mode_to_acl
from stowage.errors import (
    AccessDenied,
    BucketNotEmpty,
    InvalidArgument,
    InvalidRange,
    NoSuchBucket,
    NoSuchKey,
    SizeMismatch,
    from_os_error,
)
from stowage.storage.models import BucketInfo, ObjectMetadata
from stowage.storage.streams import AsyncReader, ChunkReader, count_remaining
from stowage.urls import ResolvedURL
from stowage.validation import validate_bucket_acl

logger = logging.getLogger(__name__)

# Streaming chunk size: 64 KB
_CHUNK_SIZE = 64 * 1024


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)


def _object_context(bucket: str, key: str) -> tuple[str, str]:
    """Split an empty-key object address into its parent folder and file name."""
    if key:
        return bucket, key
    path = Path(bucket)
    return str(path.parent), path.name


def _file_md5(path: Path) -> str:
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_CHUNK_SIZE)
            if not chunk:
                break
            md5.update(chunk)
    return md5.hexdigest()


class FilesystemClient:
    """Client that stores objects as files on the local filesystem.

    Attributes:
        url: The resolved filesystem URL.
        root: The directory (or file) the URL names.
    """

    def __init__(self, url: ResolvedURL) -> None:
        self.url = url
        self.root = Path(url.path)

    def location(self) -> tuple[str, str]:
        return str(self.root), ""

    def _object_path(self, bucket: str, key: str) -> Path:
        """Return the filesystem path for an object.

        Args:
            bucket: Directory path acting as the bucket.
            key: Object key relative to ``bucket``, or empty for the bucket
                path itself.
        """
        path = Path(bucket)
        return path / key if key else path

    async def close(self) -> None:
        """No-op for the filesystem client."""
        pass

    # -- Buckets ------------------------------------------------------------

    async def make_bucket(self) -> None:
        """Create the directory the URL names, including missing parents."""
        try:
            self.root.mkdir(parents=True)
        except OSError as exc:
            raise from_os_error(exc, str(self.root)) from exc
        logger.info("Created folder %s", self.root, extra={"bucket": str(self.root)})

    async def bucket_exists(self) -> None:
        if not self.root.is_dir():
            raise NoSuchBucket(str(self.root))
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise AccessDenied(str(self.root))

    async def remove_bucket(self) -> None:
        if not self.root.is_dir():
            raise NoSuchBucket(str(self.root))
        try:
            self.root.rmdir()
        except OSError as exc:
            if exc.errno in (errno.ENOTEMPTY, errno.EEXIST):
                raise BucketNotEmpty(str(self.root)) from exc
            raise from_os_error(exc, str(self.root)) from exc

    async def set_bucket_acl(self, acl: str | BucketACL) -> None:
        """Apply an ACL as the directory's permission bits."""
        acl = validate_bucket_acl(acl)
        await self.bucket_exists()
        try:
            os.chmod(self.root, acl_to_mode(acl))
        except OSError as exc:
            raise from_os_error(exc, str(self.root)) from exc

    async def get_bucket_acl(self) -> BucketACL:
        if not self.root.is_dir():
            raise NoSuchBucket(str(self.root))
        try:
            return mode_to_acl(self.root.stat().st_mode)
        except OSError as exc:
            raise from_os_error(exc, str(self.root)) from exc

    async def list_buckets(self) -> AsyncIterator[BucketInfo]:
        """Yield the sub-directories of the URL path, sorted by name."""
        if not self.root.is_dir():
            raise NoSuchBucket(str(self.root))
        try:
            with os.scandir(self.root) as it:
                entries = sorted((e for e in it if e.is_dir()), key=lambda e: e.name)
        except OSError as exc:
            raise from_os_error(exc, str(self.root)) from exc
        for entry in entries:
            try:
                created = _mtime(entry.stat())
            except FileNotFoundError:
                continue
            yield BucketInfo(name=entry.name, created=created)

    # -- Objects ------------------------------------------------------------

    async def list_objects(
        self, bucket: str, prefix: str = "", recursive: bool = False
    ) -> AsyncIterator[ObjectMetadata]:
        """Yield files under ``bucket`` whose relative key starts with ``prefix``.

        Directories are walked one at a time as the consumer pulls; entries
        within a directory come in name order.
        """
        base = Path(bucket)
        if not base.is_dir():
            raise NoSuchBucket(bucket)

        head, sep, _ = prefix.rpartition("/")
        start = base / head if sep else base
        if not start.is_dir():
            return

        async for meta in self._walk(base, start, prefix, recursive):
            yield meta

    async def _walk(
        self, base: Path, directory: Path, prefix: str, recursive: bool
    ) -> AsyncIterator[ObjectMetadata]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            raise from_os_error(exc, str(base)) from exc
        for entry in entries:
            key = Path(entry.path).relative_to(base).as_posix()
            if entry.is_dir(follow_symlinks=False):
                # Only descend where keys below can still match the prefix.
                if recursive and (key + "/").startswith(prefix[: len(key) + 1]):
                    async for meta in self._walk(base, Path(entry.path), prefix, recursive):
                        yield meta
                continue
            if not entry.is_file() or not key.startswith(prefix):
                continue
            try:
                st = entry.stat()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise from_os_error(exc, str(base), key) from exc
            yield ObjectMetadata(key=key, size=st.st_size, last_modified=_mtime(st))

    async def put_object(self, bucket: str, key: str, size: int, reader: AsyncReader) -> str:
        """Stream exactly ``size`` bytes from ``reader`` into a file.

        Returns:
            The hex-encoded MD5 of the stored data.
        """
        if size < 0:
            raise InvalidArgument(f"Invalid size {size} for '{key}'.")
        path = self._object_path(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise from_os_error(exc, *_object_context(bucket, key)) from exc

        md5 = hashlib.md5()
        written = 0
        tmp = path.with_name(f"{path.name}.tmp.{uuid.uuid4().hex[:8]}")
        try:
            fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            try:
                while written < size:
                    chunk = await reader.read(min(_CHUNK_SIZE, size - written))
                    if not chunk:
                        break
                    os.write(fd, chunk)
                    md5.update(chunk)
                    written += len(chunk)
                if written != size:
                    raise SizeMismatch(size, written, key)
                extra = await count_remaining(reader)
                if extra:
                    raise SizeMismatch(size, size + extra, key)
                os.fsync(fd)
            finally:
                os.close(fd)
            tmp.rename(path)
        except Exception as exc:
            # Clean up temp file on failure
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise from_os_error(exc, *_object_context(bucket, key)) from exc
            raise

        return md5.hexdigest()

    async def stat_object(self, bucket: str, key: str) -> ObjectMetadata:
        path = self._object_path(bucket, key)
        try:
            st = path.stat()
            if not path.is_file():
                raise NoSuchKey(bucket, key)
            etag = _file_md5(path)
        except OSError as exc:
            raise from_os_error(exc, *_object_context(bucket, key)) from exc
        return ObjectMetadata(
            key=key or path.name,
            etag=etag,
            size=st.st_size,
            last_modified=_mtime(st),
        )

    async def get_object(
        self, bucket: str, key: str, offset: int = 0, length: int = 0
    ) -> tuple[ChunkReader, ObjectMetadata]:
        path = self._object_path(bucket, key)
        if not path.is_file():
            raise NoSuchKey(bucket, key)
        try:
            st = path.stat()
        except OSError as exc:
            raise from_os_error(exc, *_object_context(bucket, key)) from exc
        if offset < 0 or length < 0:
            raise InvalidArgument(f"Invalid range offset={offset} length={length}.")
        if offset + length > st.st_size or (offset and offset >= st.st_size):
            raise InvalidRange()

        meta = ObjectMetadata(key=key or path.name, size=st.st_size, last_modified=_mtime(st))
        count = length if length else st.st_size - offset
        return ChunkReader(self._read_range(path, offset, count)), meta

    async def _read_range(self, path: Path, offset: int, count: int) -> AsyncIterator[bytes]:
        """Yield ``count`` bytes from ``offset`` in 64 KB chunks."""
        remaining = count
        try:
            with open(path, "rb") as f:
                if offset > 0:
                    f.seek(offset)
                while remaining > 0:
                    chunk = f.read(min(_CHUNK_SIZE, remaining))
                    if not chunk:
                        break
                    yield chunk
                    remaining -= len(chunk)
        except OSError as exc:
            raise from_os_error(exc, str(path.parent), path.name) from exc

    async def remove_object(self, bucket: str, key: str) -> None:
        """Delete a file, then prune empty parent directories up to the bucket."""
        path = self._object_path(bucket, key)
        if not path.is_file():
            raise NoSuchKey(bucket, key)
        try:
            path.unlink()
        except OSError as exc:
            raise from_os_error(exc, *_object_context(bucket, key)) from exc

        bucket_dir = Path(bucket)
        parent = path.parent
        while key and parent != bucket_dir and bucket_dir in parent.parents:
            try:
                parent.rmdir()  # Only removes empty dirs
            except OSError:
                break
            parent = parent.parent
