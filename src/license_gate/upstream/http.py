import asyncio
import logging
import tempfile
from typing import Any, BinaryIO, Optional

import aiohttp

from license_gate.outcome import NOT_FOUND, Ok, Outcome, TransientFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 64 * 1024


class HttpClient:
    """Base class for clients that talk to the remote feed over HTTP.

    Manages a shared aiohttp.ClientSession for connection pooling and reuse,
    and maps raw HTTP exchanges onto typed outcomes: 404 is NOT_FOUND, any
    other non-200 status, network error, timeout or unparseable body is a
    TransientFailure. Cancellation is never absorbed.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the HttpClient.

        Args:
            timeout: Total timeout in seconds for each request.
        """
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Returns:
            The shared aiohttp ClientSession.
        """
        if self._session is None or self._session.closed:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        """Create a new aiohttp.ClientSession.

        Subclasses can override this to provide custom session configuration.

        Returns:
            A new aiohttp.ClientSession instance.
        """
        connector = aiohttp.TCPConnector(ttl_dns_cache=300)
        return aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )

    async def close(self) -> None:
        """Close the aiohttp session.

        Should be called when done using the client to release resources.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def _get_json(self, url: str) -> Outcome[Any]:
        """Fetch and decode a JSON document.

        Args:
            url: Absolute URL of the document.

        Returns:
            Ok with the decoded document, NOT_FOUND on 404, or TransientFailure.
        """
        logger.debug("GET %s", url)
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status == 404:
                    return NOT_FOUND
                if response.status != 200:
                    return TransientFailure(f"HTTP {response.status} from {url}")
                try:
                    return Ok(await response.json(content_type=None))
                except ValueError as e:
                    return TransientFailure(f"Invalid JSON from {url}: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return TransientFailure(f"Request to {url} failed: {e!r}")

    async def _download(self, url: str) -> Outcome[BinaryIO]:
        """Stream a response body into an anonymous temporary file.

        The file is deleted by the OS as soon as it is closed. On success the
        caller owns the returned file and must close it; on every other path,
        including cancellation while the response is being released, it is
        closed here. Disk writes run in a worker thread.

        Args:
            url: Absolute URL of the content.

        Returns:
            Ok with the rewound temporary file, NOT_FOUND on 404, or TransientFailure.
        """
        logger.debug("GET %s", url)
        tmp: Optional[BinaryIO] = None
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status == 404:
                    return NOT_FOUND
                if response.status != 200:
                    return TransientFailure(f"HTTP {response.status} from {url}")

                tmp = tempfile.TemporaryFile()
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await asyncio.to_thread(tmp.write, chunk)
            tmp.seek(0)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            if tmp is not None:
                tmp.close()
            return TransientFailure(f"Download from {url} failed: {e!r}")
        except BaseException:
            if tmp is not None:
                tmp.close()
            raise
        return Ok(tmp)
