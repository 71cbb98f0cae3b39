"""Connectivity monitor.

Tracks whether the remote service is reachable and notifies listeners when
it becomes reachable again, so queued mutations get pushed as soon as
possible.
"""

from typing import Awaitable, Callable, List, Optional

import httpx

from offline_sync.utils.logging import get_logger

logger = get_logger(__name__)

RestoredListener = Callable[[], Awaitable[None]]


class ConnectivityMonitor:
    """Online/offline state machine with restore notifications."""

    def __init__(
        self,
        check_url: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        online: bool = True,
    ):
        """Initialize the monitor.

        Args:
            check_url: URL requested by :meth:`check`
            timeout: Check timeout in seconds
            client: Preconfigured httpx client (tests pass a mock transport)
            online: Initial state
        """
        self.check_url = check_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._online = online
        self._listeners: List[RestoredListener] = []

    @property
    def online(self) -> bool:
        """Last known connectivity state."""
        return self._online

    def add_listener(self, listener: RestoredListener) -> None:
        """Register a coroutine function called on every offline -> online change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RestoredListener) -> None:
        """Unregister a listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def set_online(self, online: bool) -> None:
        """Record the current state and fire listeners on restore."""
        was_online = self._online
        self._online = online
        if online == was_online:
            return

        logger.info("connectivity_changed", online=online)
        if not online:
            return

        for listener in list(self._listeners):
            await listener()

    async def check(self) -> bool:
        """Check reachability of ``check_url`` and update the state.

        Any HTTP response counts as online; only transport failures count as
        offline.
        """
        if not self.check_url:
            return self._online

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        try:
            await self._client.head(self.check_url)
            reachable = True
        except httpx.RequestError as e:
            logger.debug("connectivity_check_failed", url=self.check_url, error=str(e))
            reachable = False

        await self.set_online(reachable)
        return reachable

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
