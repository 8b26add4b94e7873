"""Minimal GraphQL client for the pool indexers."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from dexroute.errors import RateLimited, TransportError

from .retry import is_rate_limited, retry_with_backoff

logger = structlog.get_logger()


class SubgraphClient:
    """POSTs GraphQL queries to one indexer endpoint.

    The httpx client is injected so tests can pass an httpx.MockTransport
    and the pipeline can share one connection pool across sources.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient,
        *,
        max_retries: int = 2,
        base_delay: float = 2.0,
    ) -> None:
        self.url = url
        self.client = client
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        response = await self.client.post(self.url, json={"query": query, "variables": variables})
        response.raise_for_status()
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            message = "; ".join(str(e.get("message", e)) for e in errors)
            raise TransportError(f"Subgraph error: {message}")
        return payload.get("data") or {}

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a query and return its `data` object.

        Raises:
            RateLimited: If the indexer keeps rate limiting after retries
            TransportError: On HTTP, network or GraphQL errors
        """
        try:
            return await retry_with_backoff(
                lambda: self._post(query, variables or {}),
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                source="subgraph",
            )
        except TransportError:
            raise
        except httpx.HTTPError as e:
            logger.warning("subgraph_request_failed", url=self.url, error=str(e))
            if is_rate_limited(e):
                raise RateLimited(f"Subgraph rate limited: {e}") from e
            raise TransportError(f"Subgraph request failed: {e}") from e


__all__ = ["SubgraphClient"]
