"""Input validation helpers for stowage.

These run before any request is issued. Each function raises a
``ValidationError`` subclass on invalid input.
"""

import re

from stowage.acl import BucketACL, is_valid_bucket_acl
from stowage.errors import InvalidArgument, InvalidBucketACL, InvalidBucketName

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# S3 bucket naming rules:
#   - 3-63 characters
#   - lowercase letters, digits, hyphens, and periods
#   - must start and end with a letter or digit
#   - must not be formatted as an IP address
#   - no consecutive periods ("..") allowed

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_bucket_name(name: str) -> None:
    """Validate an S3 bucket name against AWS naming rules.

    Raises:
        InvalidBucketName: If the name violates any S3 bucket naming rule.
    """
    if len(name) < 3 or len(name) > 63:
        raise InvalidBucketName(name)

    if not _BUCKET_RE.match(name):
        raise InvalidBucketName(name)

    if _IP_RE.match(name):
        raise InvalidBucketName(name)

    if ".." in name:
        raise InvalidBucketName(name)


def validate_bucket_acl(acl: str | BucketACL) -> BucketACL:
    """Return ``acl`` as a ``BucketACL``.

    Raises:
        InvalidBucketACL: If the value is not one of the canned ACLs.
    """
    if isinstance(acl, BucketACL):
        return acl
    if not is_valid_bucket_acl(acl):
        raise InvalidBucketACL(acl)
    return BucketACL(acl)


def validate_targets(args: list[str]) -> None:
    """Reject an empty target list or any blank target.

    Raises:
        InvalidArgument: If no target is given or one of them is blank.
    """
    if not args:
        raise InvalidArgument("No target provided.")
    for arg in args:
        if not arg.strip():
            raise InvalidArgument("Unable to validate empty argument.")
