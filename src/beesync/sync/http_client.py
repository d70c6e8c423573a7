"""Base HTTP client with retry logic shared by every upstream service client."""

import logging
import threading
import time
from typing import Any, Optional

import requests

from .. import __version__
from ..errors import SyncCancelled, UpstreamRejected, UpstreamUnavailable
from .retry import RetryConfig, RetryExhausted, retry_with_backoff

__all__ = ["BaseApiClient"]

logger = logging.getLogger(__name__)

READ_METHODS = frozenset({"GET", "HEAD"})


class _TransientError(Exception):
    """Internal: Marks an error as transient/retryable."""

    pass


class BaseApiClient:
    """Base HTTP client with retry logic.

    Handles:
    - Session management
    - Authentication headers (via ``_auth_headers``)
    - Retry with exponential backoff for reads
    - Error classification into UpstreamUnavailable / UpstreamRejected

    Writes are never retried: a create that timed out may still have landed,
    and the next run's read-back decides whether it did.
    """

    DEFAULT_RETRY_CONFIG = RetryConfig(
        max_retries=3,
        base_delay=1.0,
        max_delay=30.0,
        exponential_base=2.0,
        jitter=True,
    )

    USER_AGENT = f"beesync/{__version__}"
    SERVICE_NAME = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Service base URL, endpoints are joined onto it
            timeout: Request timeout in seconds
            retry_config: Configuration for retry with exponential backoff
            session: Optional requests session (for dependency injection/testing)
            cancel_event: Once set, backoff waits end early with SyncCancelled
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.cancel_event = cancel_event

    def _sleep(self, seconds: float) -> None:
        """Backoff wait that ends as soon as the run is cancelled."""
        if self.cancel_event is None:
            time.sleep(seconds)
        elif self.cancel_event.wait(seconds):
            raise SyncCancelled(f"{self.SERVICE_NAME} retry interrupted by cancellation")

    def _auth_headers(self) -> dict:
        """Extra headers for authentication. Subclasses override."""
        return {}

    def _get_headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.USER_AGENT,
        }
        headers.update(self._auth_headers())
        return headers

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Any] = None,
        json: Optional[Any] = None,
        data: Optional[Any] = None,
        auth: Optional[tuple] = None,
        retry: Optional[bool] = None,
        read: Optional[bool] = None,
        ok_statuses: tuple = (),
    ) -> requests.Response:
        """Send a request and return the raw response.

        Args:
            method: HTTP method
            endpoint: Path relative to base_url, or an absolute URL (pagination links)
            params: Query parameters
            json: JSON body
            data: Form body
            auth: Optional basic auth tuple
            retry: Retry transient failures; defaults to True for reads only
            read: Treat the request as a read; defaults to GET/HEAD
            ok_statuses: Non-2xx statuses the caller handles itself

        Raises:
            UpstreamUnavailable: transport failure, or any error status on a read
            UpstreamRejected: error status on a write
        """
        method = method.upper()
        is_read = method in READ_METHODS if read is None else read
        if retry is None:
            retry = is_read

        url = self._url(endpoint)
        kwargs: dict = {"timeout": self.timeout, "headers": self._get_headers()}
        if params is not None:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if auth is not None:
            kwargs["auth"] = auth

        def do_request() -> requests.Response:
            try:
                response = self._session.request(method, url, **kwargs)
            except requests.exceptions.ConnectionError as e:
                raise _TransientError(f"Cannot connect to {self.SERVICE_NAME} at {url}") from e
            except requests.exceptions.Timeout as e:
                raise _TransientError(f"{self.SERVICE_NAME} request timed out") from e
            except requests.exceptions.RequestException as e:
                raise UpstreamUnavailable(f"{self.SERVICE_NAME} request failed: {e}") from e

            if response.status_code in ok_statuses or response.ok:
                return response

            # Server errors and rate limits are worth another try on reads
            if is_read and (response.status_code >= 500 or response.status_code == 429):
                raise _TransientError(
                    f"{self.SERVICE_NAME} error ({response.status_code})"
                )

            message = (
                f"{self.SERVICE_NAME} API error ({response.status_code}): "
                f"{self._error_detail(response)}"
            )
            if response.status_code in (401, 403):
                message = f"{self.SERVICE_NAME} rejected credentials ({response.status_code})"
            if is_read:
                raise UpstreamUnavailable(message)
            raise UpstreamRejected(message, status_code=response.status_code)

        if retry:
            try:
                return retry_with_backoff(
                    do_request,
                    config=self.retry_config,
                    retryable_exceptions=(_TransientError,),
                    sleep=self._sleep,
                )
            except RetryExhausted as e:
                if e.last_error:
                    raise UpstreamUnavailable(str(e.last_error)) from e.last_error
                raise UpstreamUnavailable(f"{self.SERVICE_NAME} request failed after retries") from e

        try:
            return do_request()
        except _TransientError as e:
            raise UpstreamUnavailable(str(e)) from e

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Send a request and decode the JSON body ({} when empty)."""
        response = self._send(method, endpoint, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                f"{self.SERVICE_NAME} returned invalid JSON from {response.url}"
            ) from e

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason or ""
        if isinstance(body, dict):
            for key in ("message", "error", "errors", "reason"):
                if body.get(key):
                    return str(body[key])
        return str(body)[:200]

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
