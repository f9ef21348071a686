"""Error definitions for stowage.

Every failure raised by the core derives from ``StowageError`` and carries a
short machine-readable ``code`` plus enough context (URL, pattern, session id,
bucket, key) to be reported without re-deriving state.
"""

import errno

from botocore.exceptions import BotoCoreError, ClientError

_CONTEXT_FIELDS = ("url", "pattern", "session_id", "bucket", "key", "resource", "http_status")


class StowageError(Exception):
    """Base error with a code and a human-readable message.

    Attributes:
        code: Short error code (e.g. "NoSuchBucket", "NoMatchingHost").
        message: Human-readable error description.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def context(self) -> dict:
        """Return the code, message and whichever context attributes are set."""
        fields = {"code": self.code, "message": self.message}
        for name in _CONTEXT_FIELDS:
            value = getattr(self, name, None)
            if value not in (None, ""):
                fields[name] = value
        return fields


# -- Resolution errors ---------------------------------------------------------


class ResolutionError(StowageError):
    """A URL could not be resolved to a backend or credential."""


class NoMatchingHost(ResolutionError):
    """No configured host pattern matches the URL's host."""

    def __init__(self, url: str) -> None:
        super().__init__(
            code="NoMatchingHost",
            message=f"No matching host found for the given URL '{url}'.",
        )
        self.url = url


class InvalidGlobPattern(ResolutionError):
    """A configured host pattern is not a valid glob."""

    def __init__(self, pattern: str, url: str) -> None:
        super().__init__(
            code="InvalidGlobPattern",
            message=f"Error reading glob URL '{pattern}' while comparing with '{url}'.",
        )
        self.pattern = pattern
        self.url = url


# -- Validation errors ---------------------------------------------------------


class ValidationError(StowageError):
    """Input rejected before any network call."""


class InvalidArgument(ValidationError):
    """An invalid argument was provided."""

    def __init__(self, message: str = "Invalid arguments provided, cannot proceed.") -> None:
        super().__init__(code="InvalidArgument", message=message)


class InvalidBucketACL(ValidationError):
    """The ACL value is not one of the canned bucket ACLs."""

    def __init__(self, acl: str) -> None:
        super().__init__(code="InvalidBucketACL", message=f"Invalid bucket ACL '{acl}'.")
        self.acl = acl


class InvalidBucketName(ValidationError):
    """The specified bucket name is not valid."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="InvalidBucketName",
            message=f"The specified bucket '{bucket}' is not valid.",
        )
        self.bucket = bucket


# -- Backend errors ------------------------------------------------------------


class BackendError(StowageError):
    """An error reported by a storage backend.

    Attributes:
        http_status: The HTTP status the service answered with (or the
            equivalent status for the filesystem backend).
    """

    def __init__(self, code: str, message: str, http_status: int = 400) -> None:
        super().__init__(code=code, message=message)
        self.http_status = http_status


class AccessDenied(BackendError):
    """The resource exists but is not accessible."""

    def __init__(self, resource: str = "") -> None:
        message = f"Access Denied: {resource}" if resource else "Access Denied"
        super().__init__(code="AccessDenied", message=message, http_status=403)
        self.resource = resource


class NoSuchBucket(BackendError):
    """The specified bucket does not exist."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="NoSuchBucket",
            message=f"The specified bucket '{bucket}' does not exist.",
            http_status=404,
        )
        self.bucket = bucket


class NoSuchKey(BackendError):
    """The specified key does not exist."""

    def __init__(self, bucket: str = "", key: str = "") -> None:
        super().__init__(
            code="NoSuchKey",
            message=f"The specified key '{bucket}/{key}' does not exist.",
            http_status=404,
        )
        self.bucket = bucket
        self.key = key


class BucketAlreadyExists(BackendError):
    """The requested bucket name is already in use."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="BucketAlreadyExists",
            message=f"The requested bucket name '{bucket}' is not available.",
            http_status=409,
        )
        self.bucket = bucket


class BucketAlreadyOwnedByYou(BackendError):
    """The bucket already exists and is owned by the caller."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="BucketAlreadyOwnedByYou",
            message=f"Bucket '{bucket}' already exists and you already own it.",
            http_status=409,
        )
        self.bucket = bucket


class BucketNotEmpty(BackendError):
    """The bucket is not empty and cannot be deleted."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            code="BucketNotEmpty",
            message=f"The bucket '{bucket}' you tried to delete is not empty.",
            http_status=409,
        )
        self.bucket = bucket


class InvalidRange(BackendError):
    """The requested range is not satisfiable."""

    def __init__(self, message: str = "The requested range is not satisfiable.") -> None:
        super().__init__(code="InvalidRange", message=message, http_status=416)


class TransportError(BackendError):
    """The request never produced a service response."""

    def __init__(self, message: str) -> None:
        super().__init__(code="TransportError", message=message, http_status=0)


# -- Session errors ------------------------------------------------------------


class SessionError(StowageError):
    """A session record could not be created, loaded or saved."""

    def __init__(self, code: str, message: str, session_id: str = "") -> None:
        super().__init__(code=code, message=message)
        self.session_id = session_id


class SessionDirNotFound(SessionError):
    """The session directory does not exist."""

    def __init__(self, directory: str) -> None:
        super().__init__(
            code="SessionDirNotFound",
            message=f"Session folder '{directory}' does not exist.",
        )
        self.directory = directory


class SessionNotFound(SessionError):
    """No session file exists for the id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code="SessionNotFound",
            message=f"Session '{session_id}' not found.",
            session_id=session_id,
        )


class SessionCorrupt(SessionError):
    """The session file is unreadable or malformed."""

    def __init__(self, session_id: str, reason: str = "") -> None:
        message = f"Session '{session_id}' is unreadable"
        if reason:
            message += f": {reason}"
        super().__init__(code="SessionCorrupt", message=message, session_id=session_id)


class SessionVersionMismatch(SessionError):
    """The session file was written by an incompatible schema version."""

    def __init__(self, session_id: str, version: str, supported: str) -> None:
        super().__init__(
            code="SessionVersionMismatch",
            message=(
                f"Session '{session_id}' has version '{version}', "
                f"only '{supported}' is supported."
            ),
            session_id=session_id,
        )
        self.version = version


# -- Integrity errors ----------------------------------------------------------


class SizeMismatch(StowageError):
    """The declared transfer size differs from the bytes actually read."""

    def __init__(self, expected: int, actual: int, key: str = "") -> None:
        super().__init__(
            code="SizeMismatch",
            message=f"Expected {expected} bytes for '{key}', read {actual}.",
        )
        self.expected = expected
        self.actual = actual
        self.key = key


# -- botocore mapping ----------------------------------------------------------


def from_client_error(exc: ClientError, bucket: str = "", key: str = "") -> BackendError:
    """Map a botocore ``ClientError`` to the matching ``BackendError``.

    HEAD requests carry no error body, so botocore reports the bare status
    code ("404", "403") as the error code; both shapes are handled.

    Args:
        exc: The botocore error.
        bucket: Bucket the request targeted, for context.
        key: Object key the request targeted, for context.

    Returns:
        A ``BackendError`` preserving the service code and HTTP status.
    """
    error = exc.response.get("Error", {})
    code = error.get("Code", "")
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    if not status and code.isdigit():
        status = int(code)

    if code == "NoSuchBucket" or (code in ("404", "NotFound") and not key):
        return NoSuchBucket(bucket)
    if code == "NoSuchKey" or code in ("404", "NotFound"):
        return NoSuchKey(bucket, key)
    if code in ("AccessDenied", "403", "Forbidden"):
        return AccessDenied(f"{bucket}/{key}" if key else bucket)
    if code == "BucketAlreadyExists":
        return BucketAlreadyExists(bucket)
    if code == "BucketAlreadyOwnedByYou":
        return BucketAlreadyOwnedByYou(bucket)
    if code == "BucketNotEmpty":
        return BucketNotEmpty(bucket)
    if code in ("InvalidRange", "416"):
        return InvalidRange()
    return BackendError(
        code=code or "UnknownError",
        message=error.get("Message", str(exc)),
        http_status=status or 400,
    )


def from_botocore_error(exc: BotoCoreError) -> TransportError:
    """Map a botocore transport failure to ``TransportError``."""
    return TransportError(str(exc))


# -- filesystem mapping --------------------------------------------------------


def from_os_error(exc: OSError, bucket: str = "", key: str = "") -> BackendError:
    """Map an ``OSError`` from the filesystem backend to a ``BackendError``.

    A missing path, or a regular file standing where a directory is expected,
    reads as a missing bucket (no key) or a missing key. Other errnos keep
    their symbolic name as the code.
    """
    resource = f"{bucket}/{key}" if key else bucket
    if exc.errno in (errno.ENOENT, errno.ENOTDIR):
        return NoSuchKey(bucket, key) if key else NoSuchBucket(bucket)
    if exc.errno in (errno.EACCES, errno.EPERM):
        return AccessDenied(resource)
    if exc.errno == errno.EEXIST and not key:
        return BucketAlreadyOwnedByYou(bucket)
    if exc.errno == errno.ENOTEMPTY:
        return BucketNotEmpty(bucket)
    code = errno.errorcode.get(exc.errno, "OSError") if exc.errno else "OSError"
    reason = exc.strerror or str(exc)
    return BackendError(
        code=code,
        message=f"{reason}: {resource}" if resource else reason,
        http_status=500,
    )
