"""Resumable copy driver.

A copy first expands its sources into the full list of object URLs, records
them in a new session, and then copies each pending URL to its target. Every
completed URL is persisted before the next one starts, so ``session resume``
re-issues exactly the URLs that never finished, in their recorded order.

Targets are derived from the session alone: a target ending in ``/`` is a
directory, and each source URL lands below it at its path relative to the
source argument it came from.
"""

import asyncio
import logging
import os
import posixpath
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass

from stowage.errors import InvalidArgument, NoSuchBucket, StowageError, from_os_error
from stowage.resolver import Resolver
from stowage.session import Session, SessionStore
from stowage.urls import ResolvedURL

logger = logging.getLogger(__name__)

COPY_COMMAND = "cp"

DEFAULT_JOBS = 4


@dataclass
class CopyResult:
    """Outcome of copying one source URL.

    Attributes:
        source: The source URL as recorded in the session.
        target: The target URL it was copied to.
        size: Bytes copied, 0 on failure.
        error: The failure, or None on success.
    """

    source: str
    target: str
    size: int = 0
    error: StowageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


ProgressCallback = Callable[[CopyResult], None]


def _as_directory(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def _is_directory_target(url: ResolvedURL) -> bool:
    """Decide whether a single-object copy should land *inside* ``url``."""
    if url.is_filesystem:
        return url.path.endswith(("/", "\\")) or os.path.isdir(url.path)
    return not url.key or url.key.endswith("/")


def target_for(source: str, sources: list[str], target: str) -> str:
    """Return the target URL string ``source`` copies to.

    ``source`` is matched against the longest recorded source argument it
    equals or lies below. A target without a trailing ``/`` names the single
    destination object itself.
    """
    if not target.endswith("/"):
        return target
    best = ""
    relpath = ""
    for root in sources:
        base = root.rstrip("/")
        if source == root or source == base:
            candidate = posixpath.basename(base)
        elif source.startswith(base + "/"):
            candidate = source[len(base) + 1 :]
        else:
            continue
        if len(root) > len(best):
            best, relpath = root, candidate
    if not best:
        relpath = posixpath.basename(source.rstrip("/"))
    return target + relpath


async def expand_sources(resolver: Resolver, args: list[str], recursive: bool) -> tuple[list[str], list[str]]:
    """Resolve source arguments into the object URLs they cover.

    Returns:
        The source roots (as URL strings) and the expanded object URLs, both
        free of duplicates and in argument order.

    Raises:
        NoSuchKey: If a non-recursive source does not exist.
        InvalidArgument: If the sources expand to nothing.
    """
    roots: list[str] = []
    urls: dict[str, None] = {}
    for arg in args:
        url = resolver.resolve(arg)
        roots.append(str(url))
        client = resolver.client(url)
        try:
            bucket, key = client.location()
            if not recursive:
                await client.stat_object(bucket, key)
                urls.setdefault(str(url))
                continue
            prefix = key if not key or key.endswith("/") else key + "/"
            listed = 0
            try:
                async with aclosing(client.list_objects(bucket, prefix, recursive=True)) as objects:
                    async for obj in objects:
                        urls.setdefault(str(url.join(obj.key[len(prefix) :])))
                        listed += 1
            except NoSuchBucket:
                if not url.is_filesystem:
                    raise
                listed = -1
            if listed < 0 or (listed == 0 and key):
                # A recursive source may also name a single object.
                await client.stat_object(bucket, key)
                urls.setdefault(str(url))
        finally:
            await client.close()

    if not urls:
        raise InvalidArgument("Source argument list is empty.")
    return list(dict.fromkeys(roots)), list(urls)


async def start_copy(
    store: SessionStore,
    resolver: Resolver,
    args: list[str],
    target_arg: str,
    recursive: bool = False,
) -> Session:
    """Expand the sources of a copy and record them in a new session."""
    if not args:
        raise InvalidArgument("Source argument list is empty.")
    target_url = resolver.resolve(target_arg)
    roots, urls = await expand_sources(resolver, args, recursive)

    target = str(target_url)
    if recursive or len(urls) > 1 or _is_directory_target(target_url):
        target = _as_directory(target)
    return store.new_session(COPY_COMMAND, urls, target=target, sources=roots)


async def copy_object(resolver: Resolver, source: str, target: str) -> int:
    """Stream one object from ``source`` to ``target``.

    Returns:
        The number of bytes copied.
    """
    src = resolver.client(resolver.parse(source))
    try:
        dst = resolver.client(resolver.parse(target))
        try:
            dst_bucket, dst_key = dst.location()
            if not dst_key and not dst.url.is_filesystem:
                raise InvalidArgument(f"No object key in target '{target}'.")
            bucket, key = src.location()
            reader, meta = await src.get_object(bucket, key)
            async with reader:
                await dst.put_object(dst_bucket, dst_key, meta.size, reader)
            return meta.size
        finally:
            await dst.close()
    finally:
        await src.close()


async def run_session(
    session: Session,
    resolver: Resolver,
    jobs: int = DEFAULT_JOBS,
    progress: ProgressCallback | None = None,
) -> list[CopyResult]:
    """Copy every pending URL of ``session``.

    Up to ``jobs`` copies run at once and start in recorded order. A failed
    URL is reported and stays pending; the rest carry on. The session file is
    removed once every URL is done.

    Returns:
        One result per URL attempted.
    """
    if jobs < 1:
        raise InvalidArgument(f"Invalid number of jobs {jobs}.")
    semaphore = asyncio.Semaphore(jobs)
    results: list[CopyResult] = []

    async def copy_one(source: str) -> None:
        async with semaphore:
            target = target_for(source, session.sources, session.target)
            result = CopyResult(source=source, target=target)
            try:
                result.size = await copy_object(resolver, source, target)
            except StowageError as exc:
                result.error = exc
            except OSError as exc:
                result.error = from_os_error(exc)
            else:
                session.mark_done(source)
            if result.error is not None:
                logger.debug(
                    "Failed to copy %s: %s",
                    source,
                    result.error.message,
                    extra={"session_id": session.session_id, "url": source, "error": result.error},
                )
            results.append(result)
            if progress is not None:
                progress(result)

    await asyncio.gather(*(copy_one(url) for url in session.pending()))

    if session.is_complete():
        session.delete()
    return results
