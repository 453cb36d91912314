"""Executes one logical HTTP call against the Databasin API.

Builds the request, bounds it with a timeout, retries transport failures
through ApiRetryService, refreshes the credential once on 401, and turns
the outcome into either the parsed JSON body or a typed error.
"""

import asyncio
import json
import logging
import time
from urllib.parse import urlencode
from typing import Any, Optional, Sequence, Tuple

import httpx

from basincli import __version__
from basincli.domain.errors import ApiError, NetworkError
from basincli.domain.events.api_events import (
    CredentialRefreshed, RequestFailed, RequestIssued, RequestSucceeded,
)
from basincli.domain.interfaces.credentials import CredentialProvider
from basincli.domain.models.api import RequestSpec
from basincli.domain.models.common import ResponseEnvelope
from basincli.infrastructure.resilience.api_retry import ApiRetryService, EventDispatcher, log_event

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0
MAX_LOGGED_BODY_CHARS = 2000

# Dropped connections and truncated responses; safe to re-send.
RETRYABLE_TRANSPORT_ERRORS = (httpx.NetworkError, httpx.RemoteProtocolError)


class RequestExecutor:
    """Issues RequestSpecs over a shared httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        retry_service: Optional[ApiRetryService] = None,
        default_timeout: float = DEFAULT_TIMEOUT_S,
        debug: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        dispatch_event: EventDispatcher = log_event,
    ):
        """Initializes the executor.

        Args:
            base_url: API root, e.g. 'https://api.databasin.co'.
            credentials: Cached credential owned by this session.
            retry_service: Transport retry policy; its defaults apply when a
                RequestSpec leaves retries/retry_delay unset.
            default_timeout: Seconds allowed per attempt when a RequestSpec has none.
            debug: Log every request at INFO instead of DEBUG.
            client: Pre-built client (not closed by this executor).
            transport: Transport for an executor-owned client (tests pass httpx.MockTransport).
            dispatch_event: Receives request lifecycle events.
        """
        self.base_url = base_url.rstrip("/")
        self.default_timeout = default_timeout
        self.debug = debug
        self._credentials = credentials
        self._retry_service = retry_service or ApiRetryService(dispatch_event=dispatch_event)
        self._dispatch = dispatch_event
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            transport=transport,
            headers={"User-Agent": f"basincli/{__version__}"},
            timeout=httpx.Timeout(default_timeout),
            follow_redirects=True,
        )

    @property
    def credentials(self) -> CredentialProvider:
        return self._credentials

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Request construction ---

    def build_url(self, path: str, params: Optional[Sequence[Tuple[str, Any]]] = None) -> str:
        """Joins base URL and path and appends URL-encoded query parameters in order."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        # httpx.QueryParams groups repeated keys, so the query string is encoded here.
        pairs = [(key, _query_value(value)) for key, value in params or () if value is not None]
        if pairs:
            url += "?" + urlencode(pairs)
        return url

    def build_headers(self, spec: RequestSpec) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(spec.headers)
        if not spec.skip_auth:
            headers["Authorization"] = f"Bearer {self._credentials.resolve()}"
        return headers

    # --- Execution ---

    async def execute(self, spec: RequestSpec) -> ResponseEnvelope:
        """Runs one logical call.

        Returns:
            The parsed JSON body (None for an empty 2xx body).

        Raises:
            NetworkError: Timeout, or transport failure after the retry budget.
            ApiError: Any non-2xx response (401 only after one reauth retry).
            AuthError: No credential could be resolved.
        """
        url = self.build_url(spec.path, spec.params)
        timeout = spec.timeout or self.default_timeout
        debug = self.debug if spec.debug is None else spec.debug

        reauthenticated = False
        while True:
            try:
                return await self._retry_service.execute_with_retry(
                    self._attempt,
                    spec,
                    url,
                    timeout,
                    debug,
                    endpoint_name=f"{spec.method} {spec.path}",
                    max_retries=spec.retries,
                    retry_delay_s=spec.retry_delay,
                )
            except ApiError as e:
                if e.status_code == 401 and not spec.skip_auth and not reauthenticated:
                    logger.info(f"401 from {spec.path}; refreshing credential and retrying once.")
                    self._credentials.invalidate()
                    self._dispatch(CredentialRefreshed(endpoint=spec.path))
                    reauthenticated = True
                    continue
                self._dispatch(RequestFailed(
                    method=spec.method, endpoint=spec.path, error_type=type(e).__name__,
                    error_message=e.message, status_code=e.status_code,
                ))
                raise
            except NetworkError as e:
                self._dispatch(RequestFailed(
                    method=spec.method, endpoint=spec.path, error_type=type(e).__name__, error_message=e.message,
                ))
                raise

    async def _attempt(self, spec: RequestSpec, url: str, timeout: float, debug: bool) -> ResponseEnvelope:
        """Sends a single HTTP attempt and classifies the outcome."""
        headers = self.build_headers(spec)
        log = logger.info if debug else logger.debug
        log(f"[API] {spec.method} {url}")
        if spec.body is not None:
            log(f"[API] Body: {_truncate(json.dumps(spec.body, default=str))}")

        self._dispatch(RequestIssued(method=spec.method, endpoint=spec.path))
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    spec.method,
                    url,
                    headers=headers,
                    json=spec.body,
                    timeout=httpx.Timeout(timeout),
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise NetworkError(f"Request timeout after {timeout:g}s", url=url, timed_out=True) from e
        except RETRYABLE_TRANSPORT_ERRORS as e:
            raise NetworkError(str(e) or type(e).__name__, url=url, retryable=True) from e
        except httpx.TransportError as e:
            raise NetworkError(str(e) or type(e).__name__, url=url) from e
        except httpx.RequestError as e:
            # Redirect loops and undecodable bodies; re-sending would fail the same way.
            raise NetworkError(str(e) or type(e).__name__, url=url) from e

        latency_ms = (time.perf_counter() - started) * 1000
        log(f"[API] {response.status_code} {response.reason_phrase} ({latency_ms:.0f}ms)")

        if response.is_success:
            self._dispatch(RequestSucceeded(
                method=spec.method, endpoint=spec.path, status_code=response.status_code, latency_ms=latency_ms,
            ))
            return _parse_json(response, spec.path)
        raise _api_error(response, spec.path)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _truncate(text: str) -> str:
    if len(text) <= MAX_LOGGED_BODY_CHARS:
        return text
    return text[:MAX_LOGGED_BODY_CHARS] + "..."


def _parse_json(response: httpx.Response, endpoint: str) -> ResponseEnvelope:
    if not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as e:
        raise ApiError(
            f"Invalid JSON response: {e}",
            response.status_code,
            endpoint,
            status_text=response.reason_phrase,
            response_body=_truncate(response.text),
        ) from e


def _api_error(response: httpx.Response, endpoint: str) -> ApiError:
    body: Any = None
    if response.content.strip():
        try:
            body = response.json()
        except ValueError:
            body = _truncate(response.text)

    message = None
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        message = body["message"]
    if not message:
        message = response.reason_phrase or f"HTTP {response.status_code}"

    return ApiError(
        message,
        response.status_code,
        endpoint,
        status_text=response.reason_phrase,
        response_body=body,
    )
