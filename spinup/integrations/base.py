from abc import ABC, abstractmethod

import httpx

from spinup.common.logging import get_logger


class BaseIntegration(ABC):
    """Common plumbing for outbound service clients.

    Every HTTP call goes through ``http_client()`` so it carries the
    integration's timeout; tests inject an ``httpx`` transport instead of
    patching the network.
    """

    def __init__(
        self,
        name: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.timeout = timeout
        self.logger = get_logger(f"integrations.{name}")
        self._transport = transport

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the credential is accepted and the service answers."""
        ...
