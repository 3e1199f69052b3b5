"""
Base class and call helper shared by the cloud collaborator services.

Every collaborator talks HTTP through one lazily created
``httpx.AsyncClient``. ``call_dependency`` bounds any collaborator
coroutine with a timeout and turns failures into dependency errors.
"""

import asyncio
import logging
from abc import ABC
from typing import Awaitable, Optional, TypeVar

import httpx

from .exceptions import DependencyError, DependencyTimeout

logger = logging.getLogger("speechai.services")

T = TypeVar("T")


async def call_dependency(
    name: str,
    awaitable: Awaitable[T],
    timeout: float,
    passthrough: tuple[type[Exception], ...] = (),
) -> T:
    """
    Await a collaborator call with a deadline.

    Exceptions of the *passthrough* types propagate unchanged.

    Raises:
        DependencyTimeout: the call did not finish within *timeout* seconds
        DependencyError: the call raised anything else
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("%s timed out after %.1fs", name, timeout)
        raise DependencyTimeout(name, timeout) from None
    except (DependencyError, *passthrough):
        raise
    except Exception as e:
        logger.error("%s failed: %s", name, e)
        raise DependencyError(name, e) from e


class CloudService(ABC):
    """
    Common HTTP client handling for cloud collaborators.

    Subclasses build requests; this class owns the client lifecycle.
    """

    def __init__(self, name: str, timeout: float = 60.0, headers: Optional[dict[str, str]] = None):
        self.name = name
        self.timeout = timeout
        self._headers = headers or {}
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(f"speechai.{name}")

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self._headers)
        return self._client

    async def _post_json(self, url: str, payload: dict, params: Optional[dict] = None) -> dict:
        try:
            response = await self.client.post(url, json=payload, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            self.logger.error("%s request error: %s", self.name, e)
            raise

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self.logger.info("%s client closed", self.name)
