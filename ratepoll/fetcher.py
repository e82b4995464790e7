"""
Encapsulates the HTTP exchange with the rates endpoint (httpx) and the
decompression of its body. Keeps network code separate from orchestration.
"""

import gzip
import time
import zlib
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from ratepoll.errors import DecompressionError, RequestBuildError, TransportError


class RawResponse:
    def __init__(
        self,
        status_code: int,
        headers: Dict[str, str] = None,
        body: bytes = b'',
        elapsed: float = 0.0,
    ):
        """Hold a response exactly as it came off the wire, body still encoded."""
        self.status_code = status_code
        self.headers = {key.lower(): value for key, value in (headers or {}).items()}
        self.body = body
        self.elapsed = elapsed

    @property
    def content_type(self) -> str:
        return self.headers.get('content-type', '')

    @property
    def content_encoding(self) -> str:
        return self.headers.get('content-encoding', '')


class HTTPFetcher:
    def __init__(
        self,
        url: str,
        user_agent: str = 'ratepoll/1.0',
        accept_language: str = 'pl-PL,pl;q=0.9,en-US;q=0.8,en;q=0.7',
        timeout: Optional[float] = None,
        client: httpx.AsyncClient = None,
    ):
        """Initialize the fetcher for a single fixed target.

        Args:
            url: Resource fetched by every unit.
            timeout: Per-request timeout in seconds; None waits indefinitely.
            client: Preconfigured client, mainly for tests. Built here when omitted.
        """
        self.url = url
        self.timeout = timeout
        self.headers = {
            'Host': urlparse(url).netloc,
            'User-Agent': user_agent,
            'Accept-Language': accept_language,
            # gzip results in a much smaller response body
            'Accept-Encoding': 'deflate, gzip',
        }
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    def build_request(self) -> httpx.Request:
        try:
            return self._client.build_request('GET', self.url, headers=self.headers)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, TypeError, ValueError) as e:
            raise RequestBuildError(f"Failed to prepare GET request: {e}") from e

    async def perform(self, request: httpx.Request) -> RawResponse:
        """Send the request and read the raw body.

        Latency covers the time until response headers arrive, not the body read.
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to perform GET request: {e}") from e

        elapsed = time.perf_counter() - start_time

        try:
            body = b''
            async for chunk in response.aiter_raw():
                body += chunk
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to read response body: {e}") from e
        finally:
            await response.aclose()

        return RawResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
            elapsed=elapsed,
        )

    async def aclose(self):
        await self._client.aclose()


def decompress(body: bytes, content_encoding: str = '') -> bytes:
    """Decode a response body according to its Content-Encoding header."""
    encoding = content_encoding.strip().lower()

    if encoding in ('', 'identity'):
        return body

    if encoding in ('gzip', 'x-gzip'):
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise DecompressionError(f"Failed to read compressed body content: {e}") from e

    if encoding == 'deflate':
        try:
            return zlib.decompress(body)
        except zlib.error:
            pass
        # some servers send raw deflate without the zlib wrapper
        try:
            return zlib.decompress(body, -zlib.MAX_WBITS)
        except zlib.error as e:
            raise DecompressionError(f"Failed to read deflated body content: {e}") from e

    raise DecompressionError(f"Unsupported content encoding: {content_encoding}")
