"""Tests for input validation and canned ACL handling."""

import pytest

from stowage.acl import (
    ALL_USERS_URI,
    AUTHENTICATED_USERS_URI,
    BucketACL,
    acl_to_mode,
    canned_acl_from_grants,
    is_valid_bucket_acl,
    mode_to_acl,
)
from stowage.errors import InvalidArgument, InvalidBucketACL, InvalidBucketName
from stowage.validation import validate_bucket_acl, validate_bucket_name, validate_targets


class TestValidateBucketName:
    """Tests for validate_bucket_name()."""

    # -- Valid names ----------------------------------------------------------

    def test_valid_simple(self):
        """A simple lowercase alphanumeric name passes."""
        validate_bucket_name("my-bucket")

    def test_valid_three_chars(self):
        """Minimum length (3 chars) is accepted."""
        validate_bucket_name("abc")

    def test_valid_63_chars(self):
        """Maximum length (63 chars) is accepted."""
        validate_bucket_name("a" * 63)

    def test_valid_with_dots(self):
        validate_bucket_name("my.bucket.name")

    def test_valid_all_digits(self):
        """Names that are all digits are accepted (as long as not an IP)."""
        validate_bucket_name("123456")

    # -- Invalid names --------------------------------------------------------

    @pytest.mark.parametrize(
        "name",
        ["ab", "a" * 64, "MyBucket", "-my-bucket", "my-bucket-", "my..bucket", "192.168.1.1", "my_bucket"],
    )
    def test_invalid(self, name):
        with pytest.raises(InvalidBucketName) as exc_info:
            validate_bucket_name(name)
        assert exc_info.value.bucket == name


class TestBucketACL:
    """Tests for canned ACL validation."""

    @pytest.mark.parametrize(
        "acl", ["private", "public-read", "public-read-write", "authenticated-read"]
    )
    def test_canned_values_accepted(self, acl):
        assert is_valid_bucket_acl(acl)
        assert validate_bucket_acl(acl) == BucketACL(acl)

    @pytest.mark.parametrize(
        "acl", ["PRIVATE", "Public-Read", "public-READ-write", "", "public", "read"]
    )
    def test_other_values_rejected(self, acl):
        """Case variants and the empty string are not canned ACLs."""
        assert not is_valid_bucket_acl(acl)
        with pytest.raises(InvalidBucketACL) as exc_info:
            validate_bucket_acl(acl)
        assert exc_info.value.acl == acl

    def test_enum_passes_through(self):
        assert validate_bucket_acl(BucketACL.PUBLIC_READ) is BucketACL.PUBLIC_READ

    def test_str_is_value(self):
        assert str(BucketACL.AUTHENTICATED_READ) == "authenticated-read"


class TestCannedACLFromGrants:
    """Tests for reducing S3 grant lists to canned ACLs."""

    def _group(self, uri, permission):
        return {"Grantee": {"Type": "Group", "URI": uri}, "Permission": permission}

    def _owner(self):
        return {
            "Grantee": {"Type": "CanonicalUser", "ID": "owner"},
            "Permission": "FULL_CONTROL",
        }

    def test_owner_only_is_private(self):
        assert canned_acl_from_grants([self._owner()]) is BucketACL.PRIVATE

    def test_public_read(self):
        grants = [self._owner(), self._group(ALL_USERS_URI, "READ")]
        assert canned_acl_from_grants(grants) is BucketACL.PUBLIC_READ

    def test_public_read_write(self):
        grants = [
            self._owner(),
            self._group(ALL_USERS_URI, "READ"),
            self._group(ALL_USERS_URI, "WRITE"),
        ]
        assert canned_acl_from_grants(grants) is BucketACL.PUBLIC_READ_WRITE

    def test_authenticated_read(self):
        grants = [self._owner(), self._group(AUTHENTICATED_USERS_URI, "READ")]
        assert canned_acl_from_grants(grants) is BucketACL.AUTHENTICATED_READ

    def test_empty(self):
        assert canned_acl_from_grants([]) is BucketACL.PRIVATE


class TestDirectoryModes:
    """ACLs map to directory permission bits and back."""

    @pytest.mark.parametrize("acl", list(BucketACL))
    def test_mode_round_trip(self, acl):
        assert mode_to_acl(acl_to_mode(acl)) is acl

    def test_mode_ignores_file_type_bits(self):
        assert mode_to_acl(0o40755) is BucketACL.PUBLIC_READ


class TestValidateTargets:
    """Tests for validate_targets()."""

    def test_accepts_targets(self):
        validate_targets(["a", "https://h/b"])

    def test_empty_list(self):
        with pytest.raises(InvalidArgument):
            validate_targets([])

    def test_blank_target(self):
        with pytest.raises(InvalidArgument):
            validate_targets(["ok", "  "])
