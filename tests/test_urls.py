"""Tests for URL classification, key encoding and alias expansion."""

import pytest

from stowage.errors import InvalidArgument
from stowage.urls import (
    ResolvedURL,
    URLType,
    decode_key,
    encode_key,
    expand_alias,
    parse_url,
)


class TestEncodeKey:
    """Tests for the object key percent-encoding policy."""

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("本語", "%E6%9C%AC%E8%AA%9E"),
            ("本語.1", "%E6%9C%AC%E8%AA%9E.1"),
            (">123>3123123", "%3E123%3E3123123"),
            ("test 1 2.txt", "test%201%202.txt"),
            ("bigfile-1._%", "bigfile-1._%25"),
            ("本b語.1", "%E6%9C%ACb%E8%AA%9E.1"),
        ],
    )
    def test_known_encodings(self, key, expected):
        assert encode_key(key) == expected

    def test_slash_and_unreserved_pass_through(self):
        assert encode_key("a/b-c_d.e~f/") == "a/b-c_d.e~f/"

    def test_uppercase_hex(self):
        assert encode_key("?") == "%3F"
        assert encode_key("\n") == "%0A"

    @pytest.mark.parametrize(
        "key", ["本語", "bigfile-1._%", "test 1 2.txt", "a%20b", "dir/sub dir/ünï.txt", ""]
    )
    def test_decode_reverses_encode(self, key):
        assert decode_key(encode_key(key)) == key

    def test_encoding_is_deterministic(self):
        """The same key always renders the same way, wherever it came from."""
        assert encode_key("本語") == encode_key("本語")

    def test_surrogate_escaped_bytes(self):
        """Undecodable filename bytes encode back to the original bytes."""
        key = b"caf\xe9".decode("utf-8", "surrogateescape")
        assert encode_key(key) == "caf%E9"
        assert decode_key("caf%E9") == key


class TestParseURL:
    """Tests for parse_url()."""

    def test_plain_path_is_filesystem(self):
        url = parse_url("some/dir/file.txt")
        assert url.type is URLType.FILESYSTEM
        assert url.is_filesystem
        assert url.path == "some/dir/file.txt"

    def test_absolute_path(self):
        assert parse_url("/tmp/x").path == "/tmp/x"

    def test_file_scheme(self):
        url = parse_url("file:///tmp/data")
        assert url.is_filesystem
        assert url.path == "/tmp/data"

    def test_https_bucket_and_key(self):
        url = parse_url("https://s3.amazonaws.com/bucket/dir/object.txt")
        assert url.type is URLType.OBJECT_STORE
        assert url.scheme == "https"
        assert url.host == "s3.amazonaws.com"
        assert url.bucket == "bucket"
        assert url.key == "dir/object.txt"
        assert url.endpoint == "https://s3.amazonaws.com"

    def test_host_with_port(self):
        url = parse_url("http://localhost:9000/b")
        assert url.host == "localhost:9000"
        assert url.bucket == "b"
        assert url.key == ""

    def test_service_root(self):
        url = parse_url("https://play.minio.io:9000")
        assert not url.is_filesystem
        assert url.bucket == ""
        assert url.key == ""

    def test_key_keeps_query_and_fragment_characters(self):
        url = parse_url("https://h.example.com/b/what?is#this")
        assert url.key == "what?is#this"

    def test_unknown_scheme_without_matching_host_is_filesystem(self):
        url = parse_url("s3://mybucket/key")
        assert url.is_filesystem

    def test_configured_host_with_other_scheme(self):
        """A configured host makes any scheme an object-store URL over https."""
        url = parse_url("s3://s3.example.com/b/k", remote_hosts=["*.example.com"])
        assert not url.is_filesystem
        assert url.scheme == "https"
        assert url.bucket == "b"

    @pytest.mark.parametrize("arg", ["", "   "])
    def test_blank_argument(self, arg):
        with pytest.raises(InvalidArgument):
            parse_url(arg)

    def test_str_round_trips(self):
        arg = "https://s3.example.com/b/本語 dir/x"
        assert str(parse_url(arg)) == arg
        assert parse_url(str(parse_url(arg))) == parse_url(arg)

    def test_encoded_rendering(self):
        url = parse_url("https://s3.example.com/b/test 1 2.txt")
        assert url.encoded() == "https://s3.example.com/b/test%201%202.txt"


class TestJoin:
    """Tests for ResolvedURL.join()."""

    def test_filesystem(self):
        assert parse_url("dir").join("a/b.txt").path == "dir/a/b.txt"

    def test_object_key_prefix(self):
        url = parse_url("https://h.example.com/b/prefix/").join("x.txt")
        assert url.bucket == "b"
        assert url.key == "prefix/x.txt"

    def test_bucket_only(self):
        url = parse_url("https://h.example.com/b").join("x.txt")
        assert url.key == "x.txt"

    def test_service_root_takes_bucket_from_path(self):
        url = parse_url("https://h.example.com").join("b/k")
        assert (url.bucket, url.key) == ("b", "k")

    def test_join_returns_new_value(self):
        url = ResolvedURL(type=URLType.FILESYSTEM, path="d")
        url.join("x")
        assert url.path == "d"


class TestExpandAlias:
    """Tests for expand_alias()."""

    ALIASES = {"s3": "https://s3.amazonaws.com", "play": "https://play.minio.io:9000/"}

    def test_alias_with_path(self):
        assert expand_alias("s3:bucket/key", self.ALIASES) == "https://s3.amazonaws.com/bucket/key"

    def test_alias_alone(self):
        assert expand_alias("play:", self.ALIASES) == "https://play.minio.io:9000"

    def test_unknown_alias_untouched(self):
        assert expand_alias("nope:bucket", self.ALIASES) == "nope:bucket"

    def test_scheme_untouched(self):
        assert expand_alias("https://s3.amazonaws.com/b", self.ALIASES) == "https://s3.amazonaws.com/b"

    def test_plain_path_untouched(self):
        assert expand_alias("local/dir", self.ALIASES) == "local/dir"
