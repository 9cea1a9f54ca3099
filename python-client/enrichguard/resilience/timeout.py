"""Timeout primitive and the single-attempt executor.

Provides:
- ``with_async_timeout`` for bounding any awaitable
- ``AttemptExecutor`` performing exactly one GET per call under a hard
  wall-clock timeout
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional
from urllib.parse import quote

import httpx

from ..exceptions import CallTimeoutError
from .results import AttemptResult, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TIMEOUT = 1.5  # Seconds per network round trip
DEFAULT_CALL_TIMEOUT = 3.0  # Seconds for a whole guarded call


async def with_async_timeout(
    coro: Awaitable[Any],
    timeout_seconds: float,
    error_message: str = "Operation timed out",
) -> Any:
    """Execute a coroutine with timeout.

    The coroutine is cancelled when the timeout fires, even if the I/O it
    awaits never completes.

    Args:
        coro: Coroutine to execute
        timeout_seconds: Timeout in seconds
        error_message: Error message for timeout

    Returns:
        Coroutine result

    Raises:
        CallTimeoutError: If timeout is exceeded
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise CallTimeoutError(
            f"{error_message} after {timeout_seconds}s",
            timeout_seconds,
        ) from None


class AttemptExecutor:
    """Performs one network round trip to the enrichment service.

    No retry logic lives here: one call to ``attempt`` is one GET.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize executor.

        Args:
            base_url: Service base URL, identifiers are appended as a path segment
            timeout: Hard per-attempt timeout in seconds
            http_client: Shared HTTP client, created if not given
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    def url_for(self, identifier: str) -> str:
        return f"{self.base_url}/{quote(identifier, safe='')}"

    async def attempt(self, identifier: str) -> AttemptResult:
        """GET ``{base_url}/{identifier}`` once.

        Args:
            identifier: Entity identifier to enrich

        Returns:
            Ok with the decoded JSON object, or Err with the failure kind
        """
        url = self.url_for(identifier)

        try:
            response = await with_async_timeout(
                self._client.get(url),
                self.timeout,
                f"GET {url} timed out",
            )
        except CallTimeoutError as e:
            logger.debug(str(e))
            return AttemptResult.failure(ErrorKind.TIMEOUT, detail=str(e))
        except httpx.TimeoutException as e:
            return AttemptResult.failure(ErrorKind.TIMEOUT, detail=f"{type(e).__name__}: {e}")
        except httpx.TransportError as e:
            return AttemptResult.failure(
                ErrorKind.CONNECTION_ERROR, detail=f"{type(e).__name__}: {e}"
            )

        return self._classify(response)

    def _classify(self, response: httpx.Response) -> AttemptResult:
        status = response.status_code

        if status >= 500:
            return AttemptResult.failure(
                ErrorKind.SERVER_ERROR, status_code=status, detail=response.reason_phrase
            )
        if not response.is_success:
            return AttemptResult.failure(
                ErrorKind.CLIENT_ERROR, status_code=status, detail=response.reason_phrase
            )

        try:
            body = response.json()
        except ValueError as e:
            return AttemptResult.failure(
                ErrorKind.DECODE_ERROR, status_code=status, detail=f"Invalid JSON: {e}"
            )

        if not isinstance(body, dict):
            return AttemptResult.failure(
                ErrorKind.DECODE_ERROR,
                status_code=status,
                detail=f"Expected JSON object, got {type(body).__name__}",
            )

        return AttemptResult.success(body)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()
