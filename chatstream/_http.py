"""requests.Session wrapper for the chat endpoint: bearer auth, typed errors, retry."""

import logging
import time
from typing import Any

import requests

from ._exceptions import STATUS_MAP, APIError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
BACKOFF_BASE = 0.5  # seconds, doubled per attempt
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def _error_details(resp: requests.Response) -> tuple[str, str | None]:
    """Extract ``(message, request_id)`` from an error response body.

    Accepts ``{"error": "..."}``, ``{"error": {"message", "request_id"}}`` and
    ``{"detail": "..."}``; a non-JSON body is used as the message verbatim.
    """
    fallback = f"HTTP error! status: {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        return resp.text or fallback, None
    if not isinstance(body, dict):
        return fallback, None

    error = body.get("error")
    if isinstance(error, str):
        return error, body.get("request_id")
    if isinstance(error, dict):
        return (
            error.get("message") or body.get("detail") or fallback,
            error.get("request_id") or body.get("request_id"),
        )
    return body.get("detail") or fallback, body.get("request_id")


def raise_for_status(resp: requests.Response, *, method: str = "", path: str = "") -> None:
    """Close ``resp`` and raise the ChatStreamError subclass for its status."""
    message, request_id = _error_details(resp)
    resp.close()
    exc_cls = STATUS_MAP.get(resp.status_code, APIError)
    raise exc_cls(
        message, status_code=resp.status_code, request_id=request_id, method=method, path=path
    )


def _retry_delay(resp: requests.Response | None, attempt: int) -> float:
    if resp is not None and resp.status_code == 429:
        header = resp.headers.get("Retry-After")
        if header:
            try:
                return float(header)
            except ValueError:
                logger.debug("Ignoring unparseable Retry-After: %s", header)
    return BACKOFF_BASE * (2**attempt)


class HTTPClient:
    """Session bound to one endpoint URL; every call goes through the retry loop."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 300,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._attempts = max(1, max_retries)

        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"
        self._session.headers.update(headers or {})

    @property
    def base_url(self) -> str:
        return self._base_url

    def _send(self, method: str, path: str, *, stream: bool, **kwargs: Any) -> requests.Response:
        url = self._base_url + path
        for attempt in range(self._attempts):
            last_attempt = attempt == self._attempts - 1
            try:
                resp = self._session.request(
                    method, url, timeout=self._timeout, stream=stream, **kwargs
                )
            except (requests.Timeout, requests.ConnectionError) as e:
                logger.warning(
                    "%s %s failed (attempt %d of %d): %s",
                    method,
                    url,
                    attempt + 1,
                    self._attempts,
                    e,
                )
                if last_attempt:
                    raise APIError(str(e), method=method, path=url) from e
                time.sleep(_retry_delay(None, attempt))
                continue
            except requests.RequestException as e:
                # Not retried: redirect loops, malformed URLs or headers.
                raise APIError(str(e), method=method, path=url) from e

            if resp.ok:
                return resp
            if last_attempt or resp.status_code not in RETRY_STATUSES:
                raise_for_status(resp, method=method, path=url)

            delay = _retry_delay(resp, attempt)
            resp.close()
            logger.debug(
                "%s %s returned %d, retrying in %.1fs", method, url, resp.status_code, delay
            )
            time.sleep(delay)

        # Unreachable: the final attempt either returns or raises.
        raise APIError("Max retries exceeded", method=method, path=url)

    def request(self, method: str, path: str = "", **kwargs: Any) -> requests.Response:
        """Send a request; error statuses raise the mapped ChatStreamError."""
        return self._send(method, path, stream=False, **kwargs)

    def stream(self, method: str, path: str = "", **kwargs: Any) -> requests.Response:
        """Send a request for an SSE body; the caller must close the response."""
        kwargs["headers"] = {"Accept": "text/event-stream", **kwargs.get("headers", {})}
        return self._send(method, path, stream=True, **kwargs)

    def close(self) -> None:
        self._session.close()
