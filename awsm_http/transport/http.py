"""HTTP dispatch over httpx."""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from awsm_http.config import BodyType, ConcreteRequest, WireResponse
from awsm_http.utils import logger, sanitize_url


def _error_message(error: BaseException) -> str:
    message = str(error)
    if not message:
        return type(error).__name__
    return message


def _read_files(files: List[Tuple[str, str]]) -> List[Tuple[str, Tuple[str, bytes]]]:
    """Load file form fields into memory (raises OSError when unreadable)."""
    loaded = []
    for key, path in files:
        file_path = Path(path).expanduser()
        loaded.append((key, (file_path.name, file_path.read_bytes())))
    return loaded


class HttpDispatcher:
    """Sends concrete requests and reports wire-level results.

    Transport failures never raise; they are returned as a
    ``WireResponse`` with ``status=0``.

    Args:
        timeout: Per-request timeout in seconds
        follow_redirects: Follow 3xx responses
        verify: Verify TLS certificates
        retries: Extra attempts on connection-level failures
        retry_wait: Base wait for exponential backoff between attempts
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        verify: bool = True,
        retries: int = 0,
        retry_wait: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify = verify
        self.retries = retries
        self.retry_wait = retry_wait
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "HttpDispatcher":
        return cls(
            timeout=settings.timeout,
            follow_redirects=settings.follow_redirects,
            verify=settings.verify_tls,
            retries=settings.retries,
            retry_wait=settings.retry_wait,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                verify=self.verify,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpDispatcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _build_kwargs(self, request: ConcreteRequest) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": dict(request.headers)}
        if request.body_type == BodyType.FORM_DATA:
            fields: List[Tuple[str, Any]] = [(k, (None, v.encode())) for k, v in request.form]
            fields.extend(_read_files(request.files))
            if fields:
                kwargs["files"] = fields
        elif request.body is not None:
            kwargs["content"] = request.body.encode()
        return kwargs

    async def _send(self, request: ConcreteRequest, kwargs: Dict[str, Any]) -> httpx.Response:
        client = self._get_client()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_wait, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(f"Retrying {request.method.value} {sanitize_url(request.url)} "
                                 f"(attempt {attempt.retry_state.attempt_number})")
                return await client.request(request.method.value, request.url, **kwargs)
        raise RuntimeError("retry loop exited without a result")

    async def dispatch(self, request: ConcreteRequest) -> WireResponse:
        """Send ``request`` and return the raw outcome.

        Returns:
            WireResponse; ``status=0`` and ``error`` set on transport failure
        """
        start = time.perf_counter()
        try:
            kwargs = self._build_kwargs(request)
            response = await self._send(request, kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as e:
            message = _error_message(e)
            logger.warning(f"{request.method.value} {sanitize_url(request.url)} failed: {message}")
            failure = WireResponse.failure(message)
            failure.time = int((time.perf_counter() - start) * 1000)
            return failure

        elapsed = int((time.perf_counter() - start) * 1000)
        content = response.content
        logger.debug(f"{request.method.value} {sanitize_url(request.url)} -> "
                     f"{response.status_code} in {elapsed}ms ({len(content)} bytes)")
        return WireResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            raw_body=response.text,
            time=elapsed,
            size=len(content),
        )
