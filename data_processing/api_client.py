# caduceus/data_processing/api_client.py
#
# Hospital Backend HTTP Client
# Asynchronous client for the six source collections. Every failure at the
# fetch boundary is raised as a typed SourceUnavailable subclass carrying the
# message shown to dashboard users; nothing past this module raises.

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

try:
    from config.settings import settings
    from .loaders import Source
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in api_client.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class SourceUnavailable(RuntimeError):
    """A source collection could not be fetched for this cycle."""

    def __init__(self, message: str, source: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status = status


class AuthExpired(SourceUnavailable):
    """Raised on HTTP 401."""


class Forbidden(SourceUnavailable):
    """Raised on HTTP 403."""


class ServerError(SourceUnavailable):
    """Raised on 5xx and any other unexpected status."""


class NetworkError(SourceUnavailable):
    """Raised when no usable response arrived (connection, timeout, bad JSON)."""


def _readable(source: Source) -> str:
    return Source(source).value.replace('_', ' ')


def error_for_status(source: Source, status: int) -> SourceUnavailable:
    """Maps a non-2xx HTTP status onto the matching SourceUnavailable subclass."""
    source_value = Source(source).value
    if status == 401:
        return AuthExpired("Your session has expired. Please log in again.", source_value, status)
    if status == 403:
        return Forbidden(f"You do not have permission to view {_readable(source)} data.", source_value, status)
    if status >= 500:
        return ServerError("Server error occurred. Please try again later.", source_value, status)
    return ServerError(f"Failed to load {_readable(source)} data (HTTP {status}).", source_value, status)


class HospitalApiClient:
    """
    Fetches full source collections from the hospital REST backend.

    Usage:
        async with HospitalApiClient() as client:
            wards = await client.fetch(Source.WARDS)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        endpoints: Optional[Dict[str, str]] = None,
    ):
        self.base_url = (base_url or settings.api.base_url).rstrip('/')
        self.auth_token = auth_token if auth_token is not None else settings.api.auth_token
        self.timeout_seconds = timeout_seconds or settings.api.timeout_seconds
        self.endpoints = dict(endpoints or settings.api.endpoints)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> 'HospitalApiClient':
        headers = {'Accept': 'application/json'}
        if self.auth_token:
            headers['Authorization'] = f"Bearer {self.auth_token}"
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            headers=headers,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def url_for(self, source: Source) -> str:
        path = self.endpoints[Source(source).value]
        return f"{self.base_url}/{path.lstrip('/')}"

    async def fetch(self, source: Source) -> List[Any]:
        """Returns the raw JSON list for `source` or raises a SourceUnavailable subclass."""
        if self.session is None:
            raise RuntimeError("HospitalApiClient must be used as an async context manager.")
        source = Source(source)
        url = self.url_for(source)
        logger.debug(f"Fetching '{source.value}' from {url}")

        try:
            async with self.session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    body = await response.text()
                    logger.error(
                        f"Backend error response for '{source.value}': status={response.status} body={body[:2048]}"
                    )
                    raise error_for_status(source, response.status)
                payload = await response.json(content_type=None)
        except SourceUnavailable:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning(f"Request for '{source.value}' timed out after {self.timeout_seconds}s.")
            raise NetworkError("Network error. Please check your connection.", source.value) from exc
        except aiohttp.ClientError as exc:
            logger.warning(f"Request for '{source.value}' failed: {exc}")
            raise NetworkError("Network error. Please check your connection.", source.value) from exc
        except ValueError as exc:
            logger.error(f"Invalid JSON received for '{source.value}': {exc}")
            raise NetworkError(f"Received an invalid response for {_readable(source)} data.", source.value) from exc

        if not isinstance(payload, list):
            logger.error(f"Expected a JSON list for '{source.value}', got {type(payload).__name__}.")
            raise NetworkError(f"Received an invalid response for {_readable(source)} data.", source.value)

        logger.info(f"Fetched {len(payload)} '{source.value}' records.")
        return payload
