"""Single-attempt HTTP transport for hub requests.

Architectural role:
    Leaf network primitive used by `membase.storage.hub`. Executes exactly one
    HTTP request and reports failures as typed `TransportError`s.

Retry behavior:
    None. Retry and backoff belong to `HubClient` read operations.

Timeout behavior:
    The timeout is handed to `httpx`, which aborts connect/read/write on expiry
    rather than abandoning a still-running request. Expiry surfaces as
    `HubTimeoutError`, other network failures as `TransportError`.

Status classification:
    `send` does not inspect status codes. `raise_for_status` maps 4xx to
    `ClientError` and every other non-2xx to `ServerError`; `is_retryable`
    reports whether a failure may succeed on a later attempt.
"""

from __future__ import annotations

from typing import Any

import httpx

from membase.errors import ClientError, HubTimeoutError, ServerError, TransportError


async def send(
    url: str,
    method: str = "POST",
    *,
    headers: dict[str, str] | None = None,
    data: dict[str, Any] | None = None,
    json_body: Any = None,
    files: dict[str, Any] | None = None,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """Send one HTTP request and return the fully read response.

    Args:
        url: Absolute endpoint URL.
        method: HTTP method.
        headers: Request headers.
        data: Form fields (url-encoded, or multipart when `files` is given).
        json_body: JSON-serializable body.
        files: Multipart file fields.
        timeout: Hard timeout in seconds.
        transport: Optional `httpx` transport, used to swap the network layer.

    Returns:
        `httpx.Response` with body already loaded.

    Raises:
        HubTimeoutError: Timeout expired.
        TransportError: Any other network-level failure.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            transport=transport,
        ) as client:
            return await client.request(
                method,
                url,
                data=data,
                json=json_body,
                files=files,
            )
    except httpx.TimeoutException as exc:
        raise HubTimeoutError("Request timeout", url) from exc
    except httpx.RequestError as exc:
        raise TransportError(f"Request failed: {exc}", url) from exc


def raise_for_status(response: httpx.Response) -> httpx.Response:
    """Classify a response status, returning it unchanged on success.

    Raises:
        ClientError: Status in the 4xx range.
        ServerError: Any other non-2xx status.
    """
    status = response.status_code
    if 200 <= status < 300:
        return response

    try:
        url = str(response.request.url)
    except RuntimeError:
        # Response built without a request.
        url = None
    if 400 <= status < 500:
        raise ClientError(status, url)
    raise ServerError(status, url)


def is_retryable(exc: BaseException) -> bool:
    """Return whether a failed attempt may succeed when repeated."""
    if isinstance(exc, ClientError):
        return False
    return isinstance(exc, TransportError)
