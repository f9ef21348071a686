"""Storage clients for stowage."""

import logging

from stowage.hosts import HostRegistry
from stowage.storage.backend import ClientCapability
from stowage.storage.models import BucketInfo, ObjectMetadata
from stowage.urls import ResolvedURL

logger = logging.getLogger(__name__)

__all__ = [
    "BucketInfo",
    "ClientCapability",
    "new_client",
    "ObjectMetadata",
]


def new_client(url: ResolvedURL, registry: HostRegistry) -> ClientCapability:
    """Create a client for one resolved target.

    A fresh client is built for every target; clients are never cached or
    shared between commands.

    Args:
        url: The resolved target URL.
        registry: Host registry supplying credentials for remote URLs.

    Returns:
        A client implementing the ClientCapability protocol.

    Raises:
        NoMatchingHost: If no host pattern matches a remote URL.
        InvalidGlobPattern: If a host pattern is malformed.
    """
    host_config = registry.lookup(url)

    if url.is_filesystem:
        from stowage.storage.local import FilesystemClient

        return FilesystemClient(url)

    from stowage.storage.s3 import ObjectStoreClient

    logger.debug("Using %s dialect for %s", host_config.api, url.host, extra={"url": str(url)})
    return ObjectStoreClient(url, host_config)
