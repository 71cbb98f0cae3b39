"""Sync transport: the server-side sync endpoint.

The endpoint accepts two actions posted as JSON:

- ``{"action": "cache"}`` returns ``{"videos": [...], "timestamp": <ms>,
  "totalAvailable": <n>}``, the newest videos without transcripts
- ``{"action": "mutations", "mutations": [...]}`` applies queued mutations
  server side and returns ``{"synced": <n>, "errors": [{"mutationId",
  "error"}]}``
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from offline_sync.sync.remote import send_request
from offline_sync.sync.schemas import CacheSnapshot, MutationBatchResult, PendingMutation
from offline_sync.utils.exceptions import NetworkError, RemoteServiceError, SyncTimeoutError
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class SyncTransport(ABC):
    """Bulk operations of the sync endpoint."""

    @abstractmethod
    async def fetch_snapshot(self) -> CacheSnapshot:
        """Download the newest videos for the offline cache.

        Raises:
            SyncTimeoutError: if the download exceeds its time budget
            RemoteServiceError: on any other failure
        """

    @abstractmethod
    async def push_mutations(self, mutations: List[PendingMutation]) -> MutationBatchResult:
        """Send a batch of mutations to be applied server side."""

    async def close(self) -> None:
        """Release network resources."""


class HttpSyncTransport(SyncTransport):
    """Async HTTP implementation of :class:`SyncTransport`."""

    def __init__(
        self,
        endpoint_url: str,
        pull_timeout: float = 120.0,
        request_timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the transport.

        Args:
            endpoint_url: URL of the sync endpoint
            pull_timeout: Time budget of the cache download in seconds
            request_timeout: Time budget of other requests in seconds
            client: Preconfigured httpx client (tests pass a mock transport)
        """
        self.endpoint_url = endpoint_url
        self.pull_timeout = pull_timeout
        self.request_timeout = request_timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_snapshot(self) -> CacheSnapshot:
        """Post the ``cache`` action and parse the snapshot."""
        client = await self._get_client()
        try:
            response = await send_request(
                client,
                "POST",
                self.endpoint_url,
                json={"action": "cache"},
                timeout=httpx.Timeout(self.pull_timeout),
            )
        except NetworkError as e:
            if isinstance(e.__cause__, httpx.TimeoutException):
                logger.error("cache_pull_timeout", timeout_seconds=self.pull_timeout)
                raise SyncTimeoutError(self.pull_timeout) from e
            raise

        try:
            snapshot = CacheSnapshot.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise RemoteServiceError(f"Malformed cache snapshot: {e}") from e

        logger.info(
            "cache_snapshot_received",
            videos=len(snapshot.videos),
            total_available=snapshot.total_available,
        )
        return snapshot

    async def push_mutations(self, mutations: List[PendingMutation]) -> MutationBatchResult:
        """Post the ``mutations`` action."""
        if not mutations:
            return MutationBatchResult()

        client = await self._get_client()
        response = await send_request(
            client,
            "POST",
            self.endpoint_url,
            json={"action": "mutations", "mutations": [m.to_wire() for m in mutations]},
            timeout=httpx.Timeout(self.request_timeout),
        )
        try:
            result = MutationBatchResult.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise RemoteServiceError(f"Malformed mutation batch response: {e}") from e

        logger.info("mutation_batch_pushed", synced=result.synced, failed=len(result.errors))
        return result
