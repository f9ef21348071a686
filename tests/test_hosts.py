"""Tests for the host registry and client factory."""

import pytest

from stowage.config import FILESYSTEM_HOST, HostConfig
from stowage.errors import InvalidGlobPattern, NoMatchingHost
from stowage.hosts import HostRegistry, glob_match
from stowage.storage import new_client
from stowage.storage.local import FilesystemClient
from stowage.storage.s3 import ObjectStoreClient
from stowage.urls import parse_url

CRED_A = HostConfig(access_key_id="credA", secret_access_key="secretA")
CRED_B = HostConfig(access_key_id="credB", secret_access_key="secretB")


class TestLookup:
    """Tests for HostRegistry.lookup()."""

    def test_exact_match_beats_earlier_glob(self):
        registry = HostRegistry({"*.example.com": CRED_A, "s3.example.com": CRED_B})
        assert registry.lookup(parse_url("https://s3.example.com/b")) == CRED_B
        assert registry.lookup(parse_url("https://x.example.com/b")) == CRED_A

    def test_glob_in_configuration_order(self):
        registry = HostRegistry({"*.example.com": CRED_A, "*.com": CRED_B})
        assert registry.lookup(parse_url("https://x.example.com")) == CRED_A

    def test_port_is_part_of_host(self):
        registry = HostRegistry({"localhost:*": CRED_A})
        assert registry.lookup(parse_url("http://localhost:9000/b")) == CRED_A

    def test_no_matching_host(self):
        registry = HostRegistry({"*.example.com": CRED_A})
        with pytest.raises(NoMatchingHost) as exc_info:
            registry.lookup(parse_url("https://other.org/b"))
        assert exc_info.value.url == "https://other.org/b"
        assert exc_info.value.code == "NoMatchingHost"

    def test_filesystem_bypasses_registry(self):
        registry = HostRegistry({})
        assert registry.lookup(parse_url("/tmp/anything")) == FILESYSTEM_HOST

    def test_invalid_glob(self):
        registry = HostRegistry({"[abc.example.com": CRED_A})
        with pytest.raises(InvalidGlobPattern) as exc_info:
            registry.lookup(parse_url("https://a.example.com"))
        assert exc_info.value.pattern == "[abc.example.com"

    def test_repeated_lookups_agree(self):
        registry = HostRegistry({"*.example.com": CRED_A, "*.com": CRED_B})
        url = parse_url("https://x.example.com")
        assert registry.lookup(url) == registry.lookup(url)


class TestGlobMatch:
    """Tests for glob_match()."""

    @pytest.mark.parametrize(
        "pattern, host",
        [
            ("*.example.com", "a.example.com"),
            ("s3*.amazonaws.com", "s3-eu.amazonaws.com"),
            ("h[0-9]", "h1"),
            ("h[!0-9]", "hx"),
        ],
    )
    def test_matches(self, pattern, host):
        assert glob_match(pattern, host, host)

    def test_case_sensitive(self):
        assert not glob_match("*.example.com", "A.EXAMPLE.COM", "u")

    @pytest.mark.parametrize(
        "pattern", ["[abc", "host\\", "[!", "[]", "[a-]", "[-a]", "[^]", "h[a-z-]"]
    )
    def test_malformed(self, pattern):
        with pytest.raises(InvalidGlobPattern):
            glob_match(pattern, "host", "u")


class TestNewClient:
    """Tests for the client factory."""

    def test_filesystem_client(self):
        client = new_client(parse_url("/tmp/x"), HostRegistry({}))
        assert isinstance(client, FilesystemClient)
        assert client.location() == ("/tmp/x", "")

    def test_object_store_client(self):
        registry = HostRegistry({"*.example.com": CRED_A})
        client = new_client(parse_url("https://s3.example.com/b/k"), registry)
        assert isinstance(client, ObjectStoreClient)
        assert client.host_config == CRED_A
        assert client.location() == ("b", "k")

    def test_unresolvable_host_fails_before_any_client(self):
        with pytest.raises(NoMatchingHost):
            new_client(parse_url("https://nowhere.org/b"), HostRegistry({}))

    def test_fresh_client_per_call(self):
        registry = HostRegistry({"*.example.com": CRED_A})
        url = parse_url("https://s3.example.com/b")
        assert new_client(url, registry) is not new_client(url, registry)
