"""Resolve service keys to ready-to-use API clients.

Services named in configuration get a client up front and never touch the
registry. Anything else is looked up in the registry once; the resulting
client is cached for the life of the process (no TTL, no invalidation).
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .clients.base import RegistryClient, RegistryError, ServiceClient
from .clients.general import GeneralClient
from .models import AgentConfig, ClientInfo

log = logging.getLogger(__name__)

ClientFactory = Callable[[str, ClientInfo], ServiceClient]


class ResolutionError(Exception):
    """Raised when an unknown service cannot be turned into a client."""


class ClientCache:
    """Thread-safe, grow-only mapping of service key to client.

    A discovered service may be cached under a canonical id that differs from
    the key it was requested by; the requested key is then kept as an alias.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: Dict[str, ServiceClient] = {}
        self._aliases: Dict[str, str] = {}

    def get(self, service_key: str) -> Optional[ServiceClient]:
        with self._lock:
            client = self._clients.get(service_key)
            if client is None and service_key in self._aliases:
                client = self._clients.get(self._aliases[service_key])
            return client

    def put(
        self, service_key: str, client: ServiceClient, alias: Optional[str] = None
    ) -> ServiceClient:
        """Cache ``client`` unless the key is already taken; return the cached client.

        A client that loses the race for a key is closed before returning.
        """
        with self._lock:
            cached = self._clients.setdefault(service_key, client)
            if alias and alias != service_key:
                self._aliases[alias] = service_key
        if cached is not client:
            _close_client(client)
        return cached

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._clients)

    def __contains__(self, service_key: object) -> bool:
        return isinstance(service_key, str) and self.get(service_key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
        for client in clients:
            _close_client(client)


def _close_client(client: object) -> None:
    close = getattr(client, "close", None)
    if callable(close):
        close()


def default_client_factory(timeout: float = 10.0) -> ClientFactory:
    def build(service_key: str, info: ClientInfo) -> ServiceClient:
        return GeneralClient(service_key, info, timeout=timeout)

    return build


class ServiceResolver:
    """Hands out clients for known services and discovers the rest."""

    def __init__(
        self,
        cache: ClientCache,
        registry: Optional[RegistryClient],
        protocol: str = "http",
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.protocol = protocol
        self.client_factory = client_factory or default_client_factory()

    @classmethod
    def from_config(
        cls,
        config: AgentConfig,
        registry: Optional[RegistryClient],
        cache: Optional[ClientCache] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> "ServiceResolver":
        resolver = cls(
            cache=cache or ClientCache(),
            registry=registry,
            protocol=config.service.protocol,
            client_factory=client_factory or default_client_factory(config.client_timeout_seconds),
        )
        for service_key in config.services:
            info = config.clients.get(service_key)
            if info is None:
                log.warning("Known service %s has no client configuration", service_key)
                continue
            resolver.cache.put(service_key, resolver.client_factory(service_key, info))
        return resolver

    def resolve(self, service_key: str) -> ServiceClient:
        client = self.cache.get(service_key)
        if client is not None:
            log.info("service %s is known as having a ready-made client", service_key)
            return client
        return self._discover(service_key)

    def fetch_metrics(self, service_key: str) -> str:
        return self.resolve(service_key).fetch_metrics()

    def fetch_configuration(self, service_key: str) -> str:
        return self.resolve(service_key).fetch_configuration()

    def _discover(self, service_key: str) -> ServiceClient:
        log.info("service %s not known as having a ready-made client", service_key)
        if self.registry is None:
            raise ResolutionError(
                f"registry client not configured; required to handle unknown service {service_key}"
            )

        # RegistryError propagates verbatim
        self.registry.is_service_available(service_key)
        log.info("Registry responded with %s service available", service_key)

        try:
            endpoint = self.registry.get_service_endpoint(service_key)
        except RegistryError as exc:
            raise ResolutionError(
                f"on attempting to get ServiceEndpoint for service {service_key}, got error: {exc}"
            ) from exc

        try:
            info = ClientInfo(protocol=self.protocol, host=endpoint.host, port=endpoint.port)
        except ValidationError as exc:
            raise ResolutionError(
                f"registry returned an unusable endpoint for service {service_key}: {exc}"
            ) from exc
        client = self.cache.put(
            endpoint.service_id, self.client_factory(endpoint.service_id, info), alias=service_key
        )
        log.info("Cached client for %s at %s", endpoint.service_id, info.url())
        return client
