"""Shared pytest fixtures for stowage tests.

Object-store tests never touch the network: the aiobotocore client is
replaced with an ``AsyncMock`` on the client instance (see
test_storage_s3.py). Filesystem and session tests work under ``tmp_path``.
"""

import pytest

from stowage.config import HostConfig, StowageConfig
from stowage.resolver import Resolver
from stowage.session import SessionStore


@pytest.fixture
def config(tmp_path) -> StowageConfig:
    """A configuration with one glob host, one exact host and a session dir."""
    return StowageConfig(
        hosts={
            "*.example.com": HostConfig(access_key_id="credA", secret_access_key="secretA"),
            "s3.example.com": HostConfig(access_key_id="credB", secret_access_key="secretB"),
            "localhost:*": HostConfig(),
        },
        aliases={"ex": "https://s3.example.com"},
        session_dir=str(tmp_path / "session"),
    )


@pytest.fixture
def resolver(config: StowageConfig) -> Resolver:
    return Resolver(config)


@pytest.fixture
def store(config: StowageConfig) -> SessionStore:
    return SessionStore(config.session_dir)
