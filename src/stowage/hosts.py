"""Host registry: resolves a URL's host to its stored access profile."""

import logging
from fnmatch import fnmatchcase

from stowage.config import FILESYSTEM_HOST, HostConfig
from stowage.errors import InvalidGlobPattern, NoMatchingHost
from stowage.urls import ResolvedURL

logger = logging.getLogger(__name__)


def _class_char(pattern: str, i: int) -> int:
    """Return the index after one bracket-expression character, or -1.

    A bare ``-`` or ``]`` cannot open a character or end a range.
    """
    if i >= len(pattern) or pattern[i] in "-]":
        return -1
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            return -1
    return i + 1


def _is_valid_glob(pattern: str) -> bool:
    """Reject patterns shell matching cannot parse.

    ``fnmatch`` quietly treats an unclosed ``[`` as a literal and accepts
    empty or half-open classes such as ``[]`` and ``[a-]``; those are
    checked here instead, along with trailing escapes.
    """
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                return False
            i += 2
            continue
        if c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            ranges = 0
            while not (j < n and pattern[j] == "]" and ranges):
                j = _class_char(pattern, j)
                if j < 0:
                    return False
                if j < n and pattern[j] == "-":
                    j = _class_char(pattern, j + 1)
                    if j < 0:
                        return False
                ranges += 1
            i = j + 1
            continue
        i += 1
    return True


def glob_match(pattern: str, host: str, url: str) -> bool:
    """Match ``host`` against a shell-style ``pattern``.

    Raises:
        InvalidGlobPattern: If the pattern is malformed.
    """
    if not _is_valid_glob(pattern):
        raise InvalidGlobPattern(pattern, url)
    return fnmatchcase(host, pattern)


class HostRegistry:
    """Mapping of host patterns to access profiles.

    Loaded once per process from configuration and read-only afterwards.
    Patterns are tried in configuration order, so repeated lookups of the
    same host always return the same profile.
    """

    def __init__(self, hosts: dict[str, HostConfig]) -> None:
        self._hosts = dict(hosts)

    def patterns(self) -> list[str]:
        return list(self._hosts)

    def lookup(self, url: ResolvedURL) -> HostConfig:
        """Return the access profile for ``url``.

        Filesystem URLs bypass the registry and always get the empty ``fs``
        profile. Otherwise an exact host match wins over any glob match.

        Raises:
            NoMatchingHost: If no pattern matches the host.
            InvalidGlobPattern: If a pattern tried during matching is malformed.
        """
        if url.is_filesystem:
            return FILESYSTEM_HOST

        host = url.host
        if host in self._hosts:
            return self._hosts[host]

        for pattern, host_config in self._hosts.items():
            if glob_match(pattern, host, str(url)):
                logger.debug("Host %s matched pattern %s", host, pattern, extra={"url": str(url)})
                return host_config

        raise NoMatchingHost(str(url))
