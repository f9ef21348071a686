"""URL resolution for stowage.

Every command-line target is classified without any network I/O as either a
filesystem path or an object-store URL (``scheme://host[:port]/bucket/key``).
Object keys are percent-encoded with a single policy wherever an object URL
is rendered, whether the key came from a user argument or a filesystem walk.
"""

import enum
import os
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from typing import Iterable
from urllib.parse import quote, unquote, urlsplit

from stowage.errors import InvalidArgument

# Schemes that always denote an object-storage endpoint.
_REMOTE_SCHEMES = ("http", "https")

# Characters passed through unencoded besides ASCII alphanumerics and "-_.~".
_KEY_SAFE = "/"


class URLType(enum.Enum):
    """Backend kind a target address resolves to."""

    FILESYSTEM = "fs"
    OBJECT_STORE = "objectstore"


@dataclass(frozen=True)
class ResolvedURL:
    """A classified target address.

    Filesystem URLs carry only ``path``; object-store URLs always carry
    ``host`` (``host[:port]``) and may have an empty ``bucket`` when they name
    the service root.

    Attributes:
        type: Backend kind.
        scheme: ``http`` or ``https`` for object stores, empty for paths.
        host: Host and optional port.
        bucket: Bucket name, possibly empty.
        key: Object key or key prefix, possibly empty.
        path: Filesystem path.
    """

    type: URLType
    scheme: str = ""
    host: str = ""
    bucket: str = ""
    key: str = ""
    path: str = ""

    @property
    def is_filesystem(self) -> bool:
        return self.type is URLType.FILESYSTEM

    @property
    def endpoint(self) -> str:
        """The service endpoint, ``scheme://host[:port]``."""
        if self.is_filesystem:
            return ""
        return f"{self.scheme}://{self.host}"

    def join(self, relpath: str) -> "ResolvedURL":
        """Return the URL of ``relpath`` below this one."""
        relpath = relpath.lstrip("/")
        if self.is_filesystem:
            return replace(self, path=os.path.join(self.path, relpath))
        if not self.bucket:
            bucket, _, key = relpath.partition("/")
            return replace(self, bucket=bucket, key=key)
        key = f"{self.key.rstrip('/')}/{relpath}" if self.key else relpath
        return replace(self, key=key)

    def encoded(self) -> str:
        """Render the URL with its key percent-encoded, as sent on the wire."""
        if self.is_filesystem:
            return self.path
        return self._render(encode_key(self.key))

    def _render(self, key: str) -> str:
        url = self.endpoint
        if self.bucket:
            url += f"/{self.bucket}"
            if key:
                url += f"/{key}"
        return url

    def __str__(self) -> str:
        if self.is_filesystem:
            return self.path
        return self._render(self.key)


def encode_key(key: str) -> str:
    """Percent-encode an object key.

    ASCII alphanumerics, ``-_.~`` and ``/`` pass through; every other
    character is encoded byte-by-byte over its UTF-8 form with uppercase hex.
    Keys decoded from filesystem names with undecodable bytes (surrogate
    escapes) encode back to their original bytes.

    >>> encode_key("test 1 2.txt")
    'test%201%202.txt'
    >>> encode_key("本語")
    '%E6%9C%AC%E8%AA%9E'
    """
    return quote(key.encode("utf-8", "surrogateescape"), safe=_KEY_SAFE)


def decode_key(encoded: str) -> str:
    """Reverse :func:`encode_key` exactly."""
    return unquote(encoded, encoding="utf-8", errors="surrogateescape")


def expand_alias(arg: str, aliases: dict[str, str]) -> str:
    """Expand an ``alias:path`` argument using the configured aliases.

    Arguments that already carry an http(s) scheme, or whose prefix is not a
    known alias, are returned unchanged.
    """
    if urlsplit(arg).scheme in _REMOTE_SCHEMES:
        return arg
    name, sep, rest = arg.partition(":")
    if not sep or name not in aliases:
        return arg
    base = aliases[name].rstrip("/")
    rest = rest.lstrip("/")
    return f"{base}/{rest}" if rest else base


def _matches_remote_host(host: str, remote_hosts: Iterable[str]) -> bool:
    for pattern in remote_hosts:
        if host == pattern or fnmatchcase(host, pattern):
            return True
    return False


def parse_url(arg: str, remote_hosts: Iterable[str] = ()) -> ResolvedURL:
    """Classify a command-line address.

    Args:
        arg: The address as typed (after alias expansion).
        remote_hosts: Configured host patterns. A URL with a scheme other
            than http(s) is still treated as an object store when its host
            matches one of them; it is then addressed over https.

    Returns:
        The resolved URL.

    Raises:
        InvalidArgument: If the argument is empty or blank.
    """
    if not arg or not arg.strip():
        raise InvalidArgument("Unable to validate empty argument.")

    parts = urlsplit(arg)
    scheme = parts.scheme.lower()
    remote = bool(parts.netloc) and (
        scheme in _REMOTE_SCHEMES or _matches_remote_host(parts.netloc, remote_hosts)
    )
    if not remote:
        if scheme == "file":
            return ResolvedURL(type=URLType.FILESYSTEM, path=parts.path or "/")
        return ResolvedURL(type=URLType.FILESYSTEM, path=arg)

    if scheme not in _REMOTE_SCHEMES:
        scheme = "https"
    # Keys may legitimately contain "?" or "#"; split the raw text, not the
    # query/fragment-aware path.
    _, _, path = arg.split("://", 1)[1].partition("/")
    bucket, _, key = path.lstrip("/").partition("/")
    return ResolvedURL(
        type=URLType.OBJECT_STORE,
        scheme=scheme,
        host=parts.netloc,
        bucket=bucket,
        key=key,
    )
