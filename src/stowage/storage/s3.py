"""S3-compatible object-store client for stowage.

Maps the ClientCapability operations onto S3 REST calls through aiobotocore.
Request signing is left to botocore; the host profile's ``api`` picks the
signature version (``s3v2`` -> ``s3``, ``s3v4`` -> ``s3v4``) and empty
credentials send unsigned requests.

Uploads larger than the minimum part size go through a multipart sequence
laid out by :func:`stowage.storage.multipart.get_part_size`. An upload
interrupted by a failed request is left in place; the next attempt for the
same key finds it, keeps every part whose size and MD5 still match, and sends
only the rest.
"""

import contextlib
import hashlib
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

import botocore
from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from stowage.acl import BucketACL, canned_acl_from_grants
from stowage.config import HostConfig
from stowage.errors import (
    InvalidArgument,
    InvalidRange,
    SizeMismatch,
    from_botocore_error,
    from_client_error,
)
from stowage.storage.models import BucketInfo, ObjectMetadata
from stowage.storage.multipart import get_part_size, needs_multipart
from stowage.storage.streams import AsyncReader, ChunkReader, count_remaining, read_exactly
from stowage.urls import ResolvedURL, encode_key
from stowage.validation import validate_bucket_acl, validate_bucket_name

logger = logging.getLogger(__name__)

# Streaming chunk size: 64 KB (matches the filesystem client)
_CHUNK_SIZE = 64 * 1024

_SIGNATURE_VERSIONS = {"s3v2": "s3", "s3v4": "s3v4"}


@contextlib.contextmanager
def _translate_errors(bucket: str = "", key: str = "") -> Iterator[None]:
    """Re-raise botocore failures as stowage backend errors."""
    try:
        yield
    except ClientError as e:
        raise from_client_error(e, bucket, key) from e
    except BotoCoreError as e:
        raise from_botocore_error(e) from e


def _parse_content_range(value: str) -> int | None:
    """Return the total size from a ``bytes a-b/total`` header."""
    _, _, total = value.rpartition("/")
    return int(total) if total.isdigit() else None


class ObjectStoreClient:
    """Client for one S3-compatible endpoint.

    Attributes:
        url: The resolved object-store URL.
        host_config: Access profile the registry resolved for the host.
    """

    def __init__(self, url: ResolvedURL, host_config: HostConfig) -> None:
        self.url = url
        self.host_config = host_config
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    def location(self) -> tuple[str, str]:
        return self.url.bucket, self.url.key

    def _object_url(self, bucket: str, key: str = "") -> str:
        """Render the request URL for logging, key percent-encoded."""
        url = f"{self.url.endpoint}/{bucket}"
        return f"{url}/{encode_key(key)}" if key else url

    def _bucket(self) -> str:
        if not self.url.bucket:
            raise InvalidArgument(f"No bucket in URL '{self.url}'.")
        return self.url.bucket

    async def init(self) -> None:
        """Create the aiobotocore S3 client for the endpoint."""
        if self._client is not None:
            return
        if self.host_config.access_key_id and self.host_config.secret_access_key:
            self._session.set_credentials(
                self.host_config.access_key_id, self.host_config.secret_access_key
            )
            signature = _SIGNATURE_VERSIONS.get(self.host_config.api, "s3v4")
        else:
            signature = botocore.UNSIGNED
        client_kwargs: dict = {
            "region_name": self.host_config.region,
            "endpoint_url": self.url.endpoint,
            "config": BotoConfig(
                signature_version=signature,
                s3={"addressing_style": "path"},
            ),
        }
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()
        logger.debug(
            "Object-store client initialized: endpoint=%s api=%s",
            self.url.endpoint,
            self.host_config.api,
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def _s3(self) -> Any:
        await self.init()
        return self._client

    # -- Buckets ------------------------------------------------------------

    async def make_bucket(self) -> None:
        """Create the bucket the URL names.

        Raises:
            InvalidBucketName: Before any request, if the name breaks S3 rules.
            BucketAlreadyOwnedByYou / BucketAlreadyExists: As reported.
        """
        bucket = self._bucket()
        validate_bucket_name(bucket)
        kwargs: dict[str, Any] = {"Bucket": bucket}
        if self.host_config.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self.host_config.region
            }
        client = await self._s3()
        logger.debug("PUT %s", self._object_url(bucket))
        with _translate_errors(bucket):
            await client.create_bucket(**kwargs)

    async def bucket_exists(self) -> None:
        bucket = self._bucket()
        client = await self._s3()
        logger.debug("HEAD %s", self._object_url(bucket))
        with _translate_errors(bucket):
            await client.head_bucket(Bucket=bucket)

    async def remove_bucket(self) -> None:
        bucket = self._bucket()
        client = await self._s3()
        logger.debug("DELETE %s", self._object_url(bucket))
        with _translate_errors(bucket):
            await client.delete_bucket(Bucket=bucket)

    async def set_bucket_acl(self, acl: str | BucketACL) -> None:
        acl = validate_bucket_acl(acl)
        bucket = self._bucket()
        client = await self._s3()
        logger.debug("PUT %s?acl (%s)", self._object_url(bucket), acl)
        with _translate_errors(bucket):
            await client.put_bucket_acl(Bucket=bucket, ACL=acl.value)

    async def get_bucket_acl(self) -> BucketACL:
        bucket = self._bucket()
        client = await self._s3()
        logger.debug("GET %s?acl", self._object_url(bucket))
        with _translate_errors(bucket):
            resp = await client.get_bucket_acl(Bucket=bucket)
        return canned_acl_from_grants(resp.get("Grants", []))

    async def list_buckets(self) -> AsyncIterator[BucketInfo]:
        client = await self._s3()
        logger.debug("GET %s/", self.url.endpoint)
        with _translate_errors():
            resp = await client.list_buckets()
        for entry in resp.get("Buckets", []):
            yield BucketInfo(name=entry["Name"], created=entry.get("CreationDate"))

    # -- Objects ------------------------------------------------------------

    async def list_objects(
        self, bucket: str, prefix: str = "", recursive: bool = False
    ) -> AsyncIterator[ObjectMetadata]:
        """Yield objects page by page; the next page is requested only once
        the consumer has pulled every entry of the current one."""
        client = await self._s3()
        kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if not recursive:
            kwargs["Delimiter"] = "/"
        paginator = client.get_paginator("list_objects_v2")
        with _translate_errors(bucket, prefix):
            async for page in paginator.paginate(**kwargs):
                for obj in page.get("Contents", []):
                    yield ObjectMetadata(
                        key=obj["Key"],
                        etag=obj.get("ETag", "").strip('"'),
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    )

    async def put_object(self, bucket: str, key: str, size: int, reader: AsyncReader) -> str:
        """Upload exactly ``size`` bytes from ``reader``.

        Returns:
            The ETag of the stored object, quotes stripped.
        """
        if size < 0:
            raise InvalidArgument(f"Invalid size {size} for '{key}'.")
        if needs_multipart(size):
            return await self._put_multipart(bucket, key, size, reader)

        data = await read_exactly(reader, size)
        if len(data) != size:
            raise SizeMismatch(size, len(data), key)
        extra = await count_remaining(reader)
        if extra:
            raise SizeMismatch(size, size + extra, key)

        client = await self._s3()
        logger.debug("PUT %s (%d bytes)", self._object_url(bucket, key), size)
        with _translate_errors(bucket, key):
            resp = await client.put_object(
                Bucket=bucket, Key=key, Body=data, ContentLength=size
            )
        return resp.get("ETag", "").strip('"')

    async def _find_upload(self, bucket: str, key: str) -> tuple[str | None, dict[int, tuple[int, str]]]:
        """Look for an unfinished multipart upload of ``key``.

        Returns:
            The upload id of the most recently initiated upload (or None)
            and its uploaded parts as ``{part_number: (size, etag)}``.
        """
        client = await self._s3()
        with _translate_errors(bucket, key):
            resp = await client.list_multipart_uploads(Bucket=bucket, Prefix=key)
        uploads = [u for u in resp.get("Uploads", []) if u.get("Key") == key]
        if not uploads:
            return None, {}
        upload = max(uploads, key=lambda u: u["Initiated"])
        upload_id = upload["UploadId"]

        parts: dict[int, tuple[int, str]] = {}
        paginator = client.get_paginator("list_parts")
        with _translate_errors(bucket, key):
            async for page in paginator.paginate(Bucket=bucket, Key=key, UploadId=upload_id):
                for part in page.get("Parts", []):
                    parts[part["PartNumber"]] = (part["Size"], part["ETag"].strip('"'))
        logger.info(
            "Resuming multipart upload %s of %s with %d parts already stored",
            upload_id,
            self._object_url(bucket, key),
            len(parts),
            extra={"bucket": bucket, "key": key},
        )
        return upload_id, parts

    async def _abort_upload(self, bucket: str, key: str, upload_id: str) -> None:
        client = await self._s3()
        try:
            await client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError):
            logger.warning("Failed to abort multipart upload %s", upload_id)

    async def _put_multipart(self, bucket: str, key: str, size: int, reader: AsyncReader) -> str:
        client = await self._s3()
        part_size = get_part_size(size)

        upload_id, stored = await self._find_upload(bucket, key)
        if upload_id is None:
            with _translate_errors(bucket, key):
                resp = await client.create_multipart_upload(Bucket=bucket, Key=key)
            upload_id = resp["UploadId"]
            logger.debug(
                "POST %s?uploads -> %s (part size %d)",
                self._object_url(bucket, key),
                upload_id,
                part_size,
            )

        manifest = []
        offset = 0
        part_number = 1
        while offset < size:
            want = min(part_size, size - offset)
            data = await read_exactly(reader, want)
            if len(data) != want:
                await self._abort_upload(bucket, key, upload_id)
                raise SizeMismatch(size, offset + len(data), key)

            md5 = hashlib.md5(data).hexdigest()
            if stored.get(part_number) == (want, md5):
                etag = md5
            else:
                with _translate_errors(bucket, key):
                    resp = await client.upload_part(
                        Bucket=bucket,
                        Key=key,
                        UploadId=upload_id,
                        PartNumber=part_number,
                        Body=data,
                        ContentLength=want,
                    )
                etag = resp["ETag"].strip('"')
            manifest.append({"ETag": f'"{etag}"', "PartNumber": part_number})
            offset += want
            part_number += 1

        extra = await count_remaining(reader)
        if extra:
            await self._abort_upload(bucket, key, upload_id)
            raise SizeMismatch(size, size + extra, key)

        with _translate_errors(bucket, key):
            resp = await client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": manifest},
            )
        return resp.get("ETag", "").strip('"')

    async def stat_object(self, bucket: str, key: str) -> ObjectMetadata:
        client = await self._s3()
        logger.debug("HEAD %s", self._object_url(bucket, key))
        with _translate_errors(bucket, key):
            resp = await client.head_object(Bucket=bucket, Key=key)
        return ObjectMetadata(
            key=key,
            etag=resp.get("ETag", "").strip('"'),
            size=resp.get("ContentLength", 0),
            last_modified=resp.get("LastModified"),
            content_type=resp.get("ContentType", "application/octet-stream"),
        )

    async def get_object(
        self, bucket: str, key: str, offset: int = 0, length: int = 0
    ) -> tuple[ChunkReader, ObjectMetadata]:
        if offset < 0 or length < 0:
            raise InvalidArgument(f"Invalid range offset={offset} length={length}.")
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if length:
            kwargs["Range"] = f"bytes={offset}-{offset + length - 1}"
        elif offset:
            kwargs["Range"] = f"bytes={offset}-"

        client = await self._s3()
        logger.debug("GET %s %s", self._object_url(bucket, key), kwargs.get("Range", ""))
        with _translate_errors(bucket, key):
            resp = await client.get_object(**kwargs)

        total = resp.get("ContentLength", 0)
        if resp.get("ContentRange"):
            total = _parse_content_range(resp["ContentRange"]) or total
        if length and offset + length > total:
            # Servers clamp an over-long range; report it instead of
            # returning fewer bytes than requested.
            resp["Body"].close()
            raise InvalidRange()

        meta = ObjectMetadata(
            key=key,
            etag=resp.get("ETag", "").strip('"'),
            size=total,
            last_modified=resp.get("LastModified"),
            content_type=resp.get("ContentType", "application/octet-stream"),
        )
        return ChunkReader(self._stream_body(resp["Body"], bucket, key)), meta

    async def _stream_body(self, body: Any, bucket: str, key: str) -> AsyncIterator[bytes]:
        with _translate_errors(bucket, key):
            async with body as stream:
                while True:
                    chunk = await stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk

    async def remove_object(self, bucket: str, key: str) -> None:
        """Delete an object after checking it exists.

        S3 deletes are idempotent, so existence is checked first to report
        a missing object.
        """
        await self.stat_object(bucket, key)
        client = await self._s3()
        logger.debug("DELETE %s", self._object_url(bucket, key))
        with _translate_errors(bucket, key):
            await client.delete_object(Bucket=bucket, Key=key)
