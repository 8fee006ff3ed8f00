"""Abstract base class for LLM adapters.

- Async adapters with httpx.AsyncClient
- No retries inside adapters
- No DB access
- No logging of request/response bodies
- Raw provider errors bubble up to router for classification
- Each adapter handles Turn -> provider format conversion internally
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from termsmith.services.llm.types import LLMChunk, LLMRequest

CONNECT_TIMEOUT_S = 10.0


class LLMAdapter(ABC):
    """Abstract base class for LLM provider adapters."""

    provider: str

    def __init__(self, client: httpx.AsyncClient):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
        """
        self._client = client

    @staticmethod
    def _timeout(read_timeout_s: float | None) -> httpx.Timeout:
        """Connect timeout is always bounded; reads are bounded only when configured."""
        return httpx.Timeout(read_timeout_s, connect=CONNECT_TIMEOUT_S)

    @abstractmethod
    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float | None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation. Yields chunks until done=True.

        Args:
            req: The LLM request containing model, messages, and parameters.
            api_key: The API key for authentication.
            timeout_s: Per-read timeout in seconds, None for no read timeout.

        Yields:
            LLMChunk objects until a terminal chunk (done=True).

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
            LLMError: If stream ends without proper terminal marker.
        """
        pass
        # This is an abstract async generator, must yield to be valid
        yield  # type: ignore

    @staticmethod
    async def _iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
        """Yield the payload of each ``data:`` line of a Server-Sent-Events body.

        Blank lines, comments and other SSE fields are skipped. Both providers
        put each JSON event on a single data line.
        """
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            yield line[5:].strip()

    @staticmethod
    async def _raise_for_status(response: httpx.Response) -> None:
        """Raise HTTPStatusError with the error body already read.

        The router classifies on the body after the stream context has closed
        the connection, so it has to be buffered here.
        """
        if response.is_error:
            await response.aread()
        response.raise_for_status()
