"""Request orchestrator for the four AI edge endpoints.

Issues JSON POSTs to /extract, /caption, /mealplan and /scan with one uniform
policy and hands successful bodies to the normalizer.

**Retry Strategy:**
- Transient errors (timeouts, 5xx, connection failures): retried with exponential
  backoff (0.5s -> 1s), at most MAX_ATTEMPTS (3) attempts in total
- Permanent errors (4xx): fail immediately, no retry
- Body that is not JSON or fails normalization: VALIDATION_ERROR, never retried

**Last-request-wins:**
Every call is an EndpointRequest carrying a per-endpoint, monotonically
increasing sequence number. When a call finishes, its result is applied
(stored as ``latest(endpoint)`` and passed to listeners) only if no newer
request has been issued for the same endpoint since; otherwise the result is
returned marked ``superseded`` and discarded. Different endpoints never
interact.

The HTTP session is injected already authenticated; this module never creates
a process-wide client.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import aiohttp
from pydantic import BaseModel, ConfigDict

from companion.models.errors import RequestError, RequestErrorKind, ValidationError
from companion.models.models import PlanPreferences, Recipe
from companion.models.payloads import Endpoint
from companion.services.images import encode_image
from companion.services.normalizer import NormalizedResponse, normalize
from companion.utils.config import config
from companion.utils.logger import request_logger


class EndpointRequest(BaseModel):
    """One issued call: which endpoint, and its place in that endpoint's sequence."""

    model_config = ConfigDict(frozen=True)

    endpoint: Endpoint
    sequence: int


class CallResult(BaseModel):
    """Outcome of one endpoint call: a normalized value or a RequestError, never both."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    request: EndpointRequest
    value: Optional[Any] = None
    error: Optional[RequestError] = None
    attempts: int = 0
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> NormalizedResponse:
        """Return the value or raise the RequestError."""
        if self.error is not None:
            raise self.error
        return self.value


class _StatusError(Exception):
    """Non-2xx HTTP status from an endpoint."""

    def __init__(self, status: int, reason: str = "") -> None:
        self.status = status
        super().__init__(f"HTTP {status} {reason}".strip())


class _MalformedBody(Exception):
    """2xx response whose body is not JSON."""


ResultListener = Callable[[CallResult], None]


class RequestOrchestrator:
    """Calls the AI edge endpoints with retry, timeout and last-request-wins policy."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: Optional[str] = None,
        *,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        backoff_factor: Optional[float] = None,
        timeouts: Optional[Dict[Endpoint, float]] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            session: Already-authenticated aiohttp session (owned by the caller).
            base_url: Edge functions base URL. Defaults to AI_EDGE_BASE_URL.
            max_attempts: Total attempts per call. Defaults to MAX_ATTEMPTS (3).
            base_delay: First backoff delay in seconds. Defaults to RETRY_BASE_DELAY_SECONDS (0.5).
            backoff_factor: Backoff multiplier. Defaults to RETRY_BACKOFF_FACTOR (2).
            timeouts: Per-endpoint timeout overrides in seconds.

        Raises:
            ValueError: If no base URL is configured or max_attempts is below 1.
        """
        base_url = (base_url or config.AI_EDGE_BASE_URL).rstrip("/")
        if not base_url:
            raise ValueError("AI_EDGE_BASE_URL is required to call the AI endpoints")

        self.session = session
        self.base_url = base_url
        self.max_attempts = max_attempts if max_attempts is not None else config.MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else config.RETRY_BASE_DELAY_SECONDS
        self.backoff_factor = backoff_factor if backoff_factor is not None else config.RETRY_BACKOFF_FACTOR
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {self.max_attempts}")

        self.timeouts = {endpoint: config.timeout_for(endpoint.value) for endpoint in Endpoint}
        if timeouts:
            self.timeouts.update({Endpoint(endpoint): value for endpoint, value in timeouts.items()})

        self._sequences: Dict[Endpoint, int] = {endpoint: 0 for endpoint in Endpoint}
        self._latest: Dict[Endpoint, CallResult] = {}
        self._listeners: List[ResultListener] = []

    # ------------------------------------------------------------------
    # Last-request-wins bookkeeping
    # ------------------------------------------------------------------

    def issue(self, endpoint: Union[Endpoint, str]) -> EndpointRequest:
        """Issue a new request token; any pending call to the same endpoint becomes stale."""
        endpoint = Endpoint(endpoint)
        self._sequences[endpoint] += 1
        return EndpointRequest(endpoint=endpoint, sequence=self._sequences[endpoint])

    def is_current(self, request: EndpointRequest) -> bool:
        return self._sequences[request.endpoint] == request.sequence

    def latest(self, endpoint: Union[Endpoint, str]) -> Optional[CallResult]:
        """Most recently applied result for an endpoint (visible state)."""
        return self._latest.get(Endpoint(endpoint))

    def add_listener(self, listener: ResultListener) -> None:
        """Register a callback invoked with every applied (non-superseded) result."""
        self._listeners.append(listener)

    def _apply(self, result: CallResult) -> CallResult:
        request = result.request
        log = request_logger(request.endpoint.value, request.sequence)
        if not self.is_current(request):
            log.info(f"Discarding superseded result (latest is #{self._sequences[request.endpoint]})")
            return result.model_copy(update={"superseded": True})

        self._latest[request.endpoint] = result
        for listener in self._listeners:
            listener(result)
        return result

    def _reject(self, endpoint: Endpoint, error: ValidationError) -> CallResult:
        """Apply a local input rejection as the newest result for an endpoint."""
        request = self.issue(endpoint)
        request_logger(endpoint.value, request.sequence).warning(f"request rejected before sending: {error}")
        request_error = RequestError(
            RequestErrorKind.VALIDATION_ERROR,
            0,
            endpoint=endpoint.value,
            field=error.field,
            message=error.message,
        )
        return self._apply(CallResult(request=request, error=request_error, attempts=0))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, endpoint: Endpoint, body: str) -> Any:
        """Single attempt: POST the JSON body and decode the JSON response."""
        url = f"{self.base_url}{endpoint.path}"
        timeout = aiohttp.ClientTimeout(total=self.timeouts[endpoint])
        async with self.session.post(
            url,
            data=body,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
        ) as response:
            if response.status >= 400:
                raise _StatusError(response.status, response.reason or "")
            try:
                return await response.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError, UnicodeDecodeError) as e:
                raise _MalformedBody(str(e)) from e

    async def _send_with_retries(self, request: EndpointRequest, body: str) -> tuple:
        """POST with exponential backoff on transient failures.

        Returns:
            Tuple of (decoded JSON body, attempts used).

        Raises:
            RequestError: After exhausting attempts, on a 4xx status, or on a non-JSON body.
        """
        endpoint = request.endpoint
        log = request_logger(endpoint.value, request.sequence)
        delay = self.base_delay
        kind = RequestErrorKind.NETWORK_ERROR
        status: Optional[int] = None
        last_error = ""

        for attempt in range(1, self.max_attempts + 1):
            log.debug(f"POST {endpoint.path} attempt {attempt}/{self.max_attempts}")
            try:
                return await self._post(endpoint, body), attempt
            except asyncio.TimeoutError:
                kind, status = RequestErrorKind.TIMEOUT, None
                last_error = f"no response within {self.timeouts[endpoint]:g}s"
            except _StatusError as e:
                kind, status, last_error = RequestErrorKind.SERVER_ERROR, e.status, str(e)
                if e.status < 500:
                    log.warning(f"{endpoint.path} rejected the request: {e}")
                    raise RequestError(
                        kind, attempt, endpoint=endpoint.value, status=e.status, message=last_error
                    ) from e
            except _MalformedBody as e:
                log.warning(f"{endpoint.path} returned a non-JSON body: {e}")
                raise RequestError(
                    RequestErrorKind.VALIDATION_ERROR,
                    attempt,
                    endpoint=endpoint.value,
                    field="body",
                    message="response body is not valid JSON",
                ) from e
            except aiohttp.ClientError as e:
                kind, status, last_error = RequestErrorKind.NETWORK_ERROR, None, str(e) or type(e).__name__

            if attempt < self.max_attempts:
                log.warning(
                    f"{endpoint.path} failed ({kind.value}: {last_error}), "
                    f"retrying in {delay:g}s (attempt {attempt + 1}/{self.max_attempts})",
                )
                await asyncio.sleep(delay)
                delay *= self.backoff_factor

        log.error(f"{endpoint.path} failed after {self.max_attempts} attempts: {last_error}")
        raise RequestError(kind, self.max_attempts, endpoint=endpoint.value, status=status, message=last_error)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def call(
        self,
        endpoint: Union[Endpoint, str],
        payload: Dict[str, Any],
        *,
        pool: Optional[Iterable[Recipe]] = None,
        source_url: Optional[str] = None,
    ) -> CallResult:
        """Call an endpoint and normalize its response.

        Args:
            endpoint: One of extract, caption, mealplan, scan.
            payload: JSON request body.
            pool: Recipe pool sent with a mealplan request (used to resolve meal titles).
            source_url: URL sent with an extract request.

        Returns:
            CallResult with the normalized value or a RequestError. ``superseded`` is
            True when a newer call to the same endpoint was issued meanwhile.
        """
        endpoint = Endpoint(endpoint)
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError) as e:
            return self._reject(endpoint, ValidationError("payload", f"request body is not JSON-serializable: {e}"))

        request = self.issue(endpoint)
        log = request_logger(endpoint.value, request.sequence)

        try:
            raw, attempts = await self._send_with_retries(request, body)
        except RequestError as e:
            return self._apply(CallResult(request=request, error=e, attempts=e.attempts))

        try:
            value = normalize(endpoint, raw, pool=pool, source_url=source_url)
        except ValidationError as e:
            log.warning(f"{endpoint.path} response rejected: {e}")
            error = RequestError(
                RequestErrorKind.VALIDATION_ERROR,
                attempts,
                endpoint=endpoint.value,
                field=e.field,
                message=e.message,
            )
            return self._apply(CallResult(request=request, error=error, attempts=attempts))

        log.info(f"{endpoint.path} succeeded after {attempts} attempt(s)")
        return self._apply(CallResult(request=request, value=value, attempts=attempts))

    async def extract(self, url: str) -> CallResult:
        """Extract a recipe from a video/page URL."""
        if not url or not url.strip():
            return self._reject(Endpoint.EXTRACT, ValidationError("url", "a recipe link is required"))
        url = url.strip()
        return await self.call(Endpoint.EXTRACT, {"url": url}, source_url=url)

    async def caption(self, image: Any) -> CallResult:
        """Caption a photo (URL, data URI, base64 string, bytes or Path)."""
        try:
            encoded = encode_image(image)
        except ValidationError as e:
            return self._reject(Endpoint.CAPTION, e)
        return await self.call(Endpoint.CAPTION, {"image": encoded})

    async def mealplan(self, pool: Iterable[Recipe], preferences: PlanPreferences) -> CallResult:
        """Ask the planning endpoint for a week plan over a recipe pool."""
        pool = list(pool)
        if not pool:
            return self._reject(Endpoint.MEALPLAN, ValidationError("recipes", "upload recipes first"))
        payload = {
            "recipes": [recipe.to_request_dict() for recipe in pool],
            "preferences": {
                "calories_target": preferences.calories_target,
                "avoid": sorted(preferences.avoid),
                "appliances": sorted(preferences.kitchen.appliances),
            },
        }
        return await self.call(Endpoint.MEALPLAN, payload, pool=pool)

    async def scan(self, image: Any) -> CallResult:
        """Suggest recipes from a fridge photo."""
        try:
            encoded = encode_image(image)
        except ValidationError as e:
            return self._reject(Endpoint.SCAN, e)
        return await self.call(Endpoint.SCAN, {"image": encoded})
