"""Turns command-line arguments into clients."""

from stowage.config import StowageConfig
from stowage.hosts import HostRegistry
from stowage.storage import ClientCapability, new_client
from stowage.urls import ResolvedURL, expand_alias, parse_url


class Resolver:
    """Alias expansion, URL classification and client construction.

    Built once per process from the loaded configuration.
    """

    def __init__(self, config: StowageConfig) -> None:
        self.aliases = dict(config.aliases)
        self.registry = HostRegistry(config.hosts)

    def resolve(self, arg: str) -> ResolvedURL:
        """Classify a user argument, expanding an ``alias:`` prefix first."""
        return self.parse(expand_alias(arg, self.aliases))

    def parse(self, url: str) -> ResolvedURL:
        """Classify an already-expanded URL string (e.g. from a session)."""
        return parse_url(url, self.registry.patterns())

    def client(self, url: ResolvedURL) -> ClientCapability:
        return new_client(url, self.registry)
