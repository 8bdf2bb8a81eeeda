"""HTTP client for a managed service's metrics and configuration routes."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Optional

import httpx

from ..constants import API_CONFIG_ROUTE, API_METRICS_ROUTE
from ..models import ClientInfo
from .base import ClientError
from .retry import RetryPolicy, send_with_retry

log = logging.getLogger(__name__)


class GeneralClient(AbstractContextManager):
    """Thin wrapper around a managed service's HTTP API."""

    def __init__(
        self,
        service_key: str,
        info: ClientInfo,
        timeout: float = 10.0,
        retry: RetryPolicy = RetryPolicy(),
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.service_key = service_key
        self.info = info
        self.retry = retry
        self._client = httpx.Client(
            base_url=info.url(),
            timeout=httpx.Timeout(timeout, connect=5.0),
            transport=transport,
        )

    def __enter__(self) -> "GeneralClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch_metrics(self) -> str:
        return self._get_text(API_METRICS_ROUTE)

    def fetch_configuration(self) -> str:
        return self._get_text(API_CONFIG_ROUTE)

    def _get_text(self, route: str) -> str:
        url = f"{self.info.url()}{route}"
        try:
            response = send_with_retry(self._client.get, route, policy=self.retry)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ClientError(f"{url} returned HTTP {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            log.error("Request to %s for %s failed: %s", url, self.service_key, exc)
            raise ClientError(f"request to {url} failed ({exc.__class__.__name__}: {exc})") from exc
        return response.text
