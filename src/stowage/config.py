"""Configuration loading and Pydantic models for stowage."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_DIR = Path.home() / ".stowage"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

# Aliases shipped with every fresh configuration.
DEFAULT_ALIASES = {
    "s3": "https://s3.amazonaws.com",
    "play": "https://play.minio.io:9000",
    "localhost": "http://localhost:9000",
}


class HostConfig(BaseModel):
    """Stored access profile for one host pattern."""

    access_key_id: str = ""
    secret_access_key: str = ""
    api: Literal["fs", "s3v2", "s3v4"] = "s3v4"
    region: str = "us-east-1"


# Profile used for every filesystem target.
FILESYSTEM_HOST = HostConfig(access_key_id="", secret_access_key="", api="fs")

# Host patterns known to a fresh configuration; empty credentials mean
# anonymous access.
DEFAULT_HOST_PATTERNS = (
    "localhost:*",
    "127.0.0.1:*",
    "s3*.amazonaws.com",
    "play.minio.io:9000",
)


def _default_hosts() -> dict[str, HostConfig]:
    return {pattern: HostConfig() for pattern in DEFAULT_HOST_PATTERNS}


class LoggingConfig(BaseModel):
    """Logging level and format."""

    level: str = "WARNING"
    format: Literal["text", "json"] = "text"


class StowageConfig(BaseModel):
    """Top-level stowage configuration."""

    hosts: dict[str, HostConfig] = Field(default_factory=_default_hosts)
    aliases: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ALIASES))
    session_dir: str = str(DEFAULT_CONFIG_DIR / "session")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _parse_hosts(data: dict[str, Any] | None) -> dict[str, HostConfig]:
    """Parse the hosts section from YAML data.

    Host records use camel-case keys (``accessKeyId``, ``secretAccessKey``,
    ``api``). Mapping order is kept; glob matching walks it in order. A file
    without a hosts section gets the default patterns.
    """
    if data is None:
        return _default_hosts()
    hosts: dict[str, HostConfig] = {}
    for pattern, record in data.items():
        record = record or {}
        hosts[str(pattern)] = HostConfig(
            access_key_id=record.get("accessKeyId", ""),
            secret_access_key=record.get("secretAccessKey", ""),
            api=str(record.get("api", "s3v4")).lower(),
            region=record.get("region", "us-east-1"),
        )
    return hosts


def _parse_aliases(data: dict[str, Any] | None) -> dict[str, str]:
    """Parse the aliases section, layered over the built-in aliases."""
    aliases = dict(DEFAULT_ALIASES)
    if data is None:
        return aliases
    for name, url in data.items():
        aliases[str(name)] = str(url).rstrip("/")
    return aliases


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "WARNING"),
        "format": data.get("format", "text"),
    }


def load_config(path: Path | None = None) -> StowageConfig:
    """Load a StowageConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file. When omitted, the default
            ``~/.stowage/config.yaml`` is used if present, and built-in
            defaults otherwise.

    Returns:
        A fully populated StowageConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If an explicit config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If a host record names an unknown API.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return StowageConfig()
        path = DEFAULT_CONFIG_PATH

    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    config = StowageConfig(
        hosts=_parse_hosts(raw.get("hosts")),
        aliases=_parse_aliases(raw.get("aliases")),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
    )
    if raw.get("session_dir"):
        config.session_dir = str(Path(raw["session_dir"]).expanduser())
    return config
