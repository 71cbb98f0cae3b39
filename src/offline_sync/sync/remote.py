"""Remote video service client used to push queued mutations.

The client is the boundary where HTTP failures become tagged
:class:`~offline_sync.utils.exceptions.RemoteServiceError` values; nothing
past this module inspects status codes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from offline_sync.utils.exceptions import NetworkError, error_from_status
from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class RemoteVideoClient(ABC):
    """Update/delete operations of the remote video service."""

    @abstractmethod
    async def update(self, video_id: int, fields: Dict[str, Any]) -> None:
        """Apply a partial update to a remote video.

        Raises:
            RemoteServiceError: tagged with the failure kind
        """

    @abstractmethod
    async def delete(self, video_id: int) -> None:
        """Delete a remote video.

        Raises:
            RemoteServiceError: tagged with the failure kind
        """

    async def close(self) -> None:
        """Release network resources."""


async def send_request(
    client: httpx.AsyncClient, method: str, url: str, **kwargs: Any
) -> httpx.Response:
    """Send a request, turning transport failures into tagged errors.

    Raises:
        NetworkError: on timeouts and connection failures
        RemoteServiceError: on any non-2xx response
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise NetworkError(f"Request to {url} timed out: {e}") from e
    except httpx.RequestError as e:
        raise NetworkError(f"Failed to reach {url}: {e}") from e

    if response.is_success:
        return response

    raise error_from_status(
        response.status_code,
        f"{method} {url} failed ({response.status_code}): {response.text}",
    )


class HttpVideoClient(RemoteVideoClient):
    """Async HTTP client for ``/api/videos/{id}``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Videos API base URL
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests pass a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def update(self, video_id: int, fields: Dict[str, Any]) -> None:
        """PATCH the changed fields of a video."""
        client = await self._get_client()
        await send_request(
            client,
            "PATCH",
            f"{self.base_url}/{video_id}",
            json={"videoId": video_id, "data": fields},
        )
        logger.debug("remote_video_updated", video_id=video_id, fields=sorted(fields))

    async def delete(self, video_id: int) -> None:
        """DELETE a video."""
        client = await self._get_client()
        await send_request(
            client,
            "DELETE",
            f"{self.base_url}/{video_id}",
            params={"videoId": video_id},
        )
        logger.debug("remote_video_deleted", video_id=video_id)

