"""Canned bucket ACLs.

A bucket ACL is one of four canned values. On an object store the value is
sent as the ``x-amz-acl`` canned ACL and read back by interpreting the grant
list; on the filesystem it maps to directory permission bits.
"""

import enum
from typing import Any

# S3 predefined group URIs
ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"


class BucketACL(str, enum.Enum):
    """Access policy value attached to a bucket."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"

    def __str__(self) -> str:
        return self.value


_CANNED_ACLS = frozenset(acl.value for acl in BucketACL)


def is_valid_bucket_acl(acl: str) -> bool:
    """True for exactly the four canned values (case-sensitive)."""
    return acl in _CANNED_ACLS


def canned_acl_from_grants(grants: list[dict[str, Any]]) -> BucketACL:
    """Reduce an S3 grant list to the canned ACL it represents.

    Grants to the bucket owner are ignored; group grants decide the value.
    A grant list that matches no canned ACL exactly is reported as the
    closest one that does not overstate access.

    Args:
        grants: The ``Grants`` list of a ``GetBucketAcl`` response.
    """
    all_users: set[str] = set()
    authenticated: set[str] = set()
    for grant in grants:
        grantee = grant.get("Grantee", {})
        if grantee.get("Type") != "Group":
            continue
        permission = grant.get("Permission", "")
        if grantee.get("URI") == ALL_USERS_URI:
            all_users.add(permission)
        elif grantee.get("URI") == AUTHENTICATED_USERS_URI:
            authenticated.add(permission)

    if {"READ", "WRITE"} <= all_users or "FULL_CONTROL" in all_users:
        return BucketACL.PUBLIC_READ_WRITE
    if "READ" in all_users:
        return BucketACL.PUBLIC_READ
    if "READ" in authenticated or "FULL_CONTROL" in authenticated:
        return BucketACL.AUTHENTICATED_READ
    return BucketACL.PRIVATE


# Directory permission bits standing in for each ACL on the filesystem.
_ACL_MODES = {
    BucketACL.PRIVATE: 0o700,
    BucketACL.AUTHENTICATED_READ: 0o750,
    BucketACL.PUBLIC_READ: 0o755,
    BucketACL.PUBLIC_READ_WRITE: 0o777,
}


def acl_to_mode(acl: BucketACL) -> int:
    return _ACL_MODES[acl]


def mode_to_acl(mode: int) -> BucketACL:
    """Interpret directory permission bits as a canned ACL."""
    mode &= 0o777
    if mode & 0o007 == 0o007:
        return BucketACL.PUBLIC_READ_WRITE
    if mode & 0o004:
        return BucketACL.PUBLIC_READ
    if mode & 0o040:
        return BucketACL.AUTHENTICATED_READ
    return BucketACL.PRIVATE
