"""Hub storage client with an ordered upload queue.

Architectural role:
    Serializes every write from one client instance to the hub and provides
    best-effort reads for conversation history. Consumed by
    `membase.memory.buffered_memory` (mirrored writes) and
    `membase.memory.multi_memory` (preload).

Hub REST surface:
    - `POST /api/upload`: JSON `{Owner, Bucket, ID, Message}`.
    - `POST /api/uploadData`: multipart `file` + `owner`.
    - `POST /api/conversation`: form `owner` (list ids) or `owner` + `id` (records).
    - `POST /api/download`: form `owner` + `id`, raw bytes.

Write path:
    `enqueue_upload` appends an `UploadTask` and signals the single worker. The
    worker drains strictly FIFO with one request in flight and a short pause
    between tasks, so the hub observes writes in submission order. A failed task
    rejects its own completion future and the worker moves on. Uploads are never
    retried.

Read path:
    `list_conversations` and `get_conversation` retry with exponential backoff.
    4xx responses fail immediately; a `null` body counts as a retryable miss.
    Exhausted retries are logged and returned as `None`. `download_hub` is a
    single attempt that returns `None` on any failure.

Cancellation:
    `close()` drops pending tasks without resolving their futures. An upload
    already in flight still completes; `wait_for_upload_queue` waits for it, and
    a worker started afterwards holds off until it is done.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import BaseModel, Field

from membase.config import HubConfig
from membase.errors import RetryExhausted, TransportError
from membase.storage.transport import is_retryable, raise_for_status, send


logger = logging.getLogger(__name__)


UPLOAD_PATH = "/api/upload"
UPLOAD_DATA_PATH = "/api/uploadData"
CONVERSATION_PATH = "/api/conversation"
DOWNLOAD_PATH = "/api/download"


class UploadRecord(BaseModel):
    """Wire body of `POST /api/upload`."""

    owner: str = Field(alias="Owner")
    bucket: str = Field(alias="Bucket")
    id: str = Field(alias="ID")
    message: Any = Field(alias="Message")


@dataclass
class UploadTask:
    """One queued write.

    `completion` is a one-shot future created when the task is enqueued from a
    running event loop. It resolves with the hub acknowledgement or rejects with
    the upload error, and stays pending forever if the queue is closed first.
    """

    owner: str
    bucket: str
    filename: str
    message: Any
    blocking: bool = False
    completion: asyncio.Future | None = field(default=None, repr=False)


def resolve_bucket(message: Any, fallback: str) -> str:
    """Pick the upload bucket for a payload.

    Order: the `name` field of a JSON object payload, then `fallback`. Payloads
    that are not JSON objects, or lack a usable `name`, use `fallback`.
    """
    payload = message
    if isinstance(message, (str, bytes)):
        try:
            payload = json.loads(message)
        except ValueError:
            return fallback

    if isinstance(payload, Mapping):
        name = payload.get("name")
        if isinstance(name, str) and name:
            return name
    return fallback


def _retrieve_exception(future: asyncio.Future) -> None:
    # Marks a rejected fire-and-forget future as observed.
    if not future.cancelled():
        future.exception()


class HubClient:
    """Queue-backed client for the hub storage service.

    Args:
        config: Endpoint, identity, and network policy.
        transport: Optional `httpx` transport for every request.
        sleep: Awaitable used for read-path backoff delays.
        on_upload_error: Called as `(task, exc)` when a non-blocking upload fails.
    """

    def __init__(
        self,
        config: HubConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_upload_error: Callable[[UploadTask, BaseException], Any] | None = None,
    ) -> None:
        self.config = config or HubConfig()
        self._transport = transport
        self._sleep = sleep
        self._on_upload_error = on_upload_error

        self._queue: deque[UploadTask] = deque()
        self._worker: asyncio.Task | None = None
        self._retired: asyncio.Task | None = None
        self._generation = 0

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def membase_id(self) -> str:
        return self.config.membase_id

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        """Whether the drain worker is currently running."""
        return self._worker is not None and not self._worker.done()

    @property
    def _retired_running(self) -> bool:
        return self._retired is not None and not self._retired.done()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def enqueue_upload(
        self,
        owner: str,
        filename: str,
        message: Any,
        bucket: str | None = None,
        *,
        blocking: bool = False,
    ) -> UploadTask:
        """Append an upload task and signal the drain worker.

        Safe to call from synchronous code. Without a running event loop the
        task has no completion future and waits for the next `drain_queue()` or
        `wait_for_upload_queue()` call made from inside a loop.

        Args:
            owner: Hub account owning the record.
            filename: Record id on the hub.
            message: Payload, usually a serialized `Message`.
            bucket: Explicit bucket; resolved from the payload when omitted.
            blocking: Whether a caller will await `completion`.

        Returns:
            The queued `UploadTask`.
        """
        if bucket is None:
            bucket = resolve_bucket(message, self.membase_id or owner)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        completion = None
        if loop is not None:
            completion = loop.create_future()
            completion.add_done_callback(_retrieve_exception)

        task = UploadTask(
            owner=owner,
            bucket=bucket,
            filename=filename,
            message=message,
            blocking=blocking,
            completion=completion,
        )
        self._queue.append(task)
        logger.debug("Queued upload %s/%s (bucket=%s)", owner, filename, bucket)

        if loop is not None:
            self.drain_queue()
        return task

    async def upload_hub(
        self,
        owner: str,
        filename: str,
        message: Any,
        bucket: str | None = None,
        wait: bool = True,
    ) -> Any:
        """Queue an upload, optionally waiting for the hub acknowledgement.

        Returns:
            Hub acknowledgement JSON when `wait` is true, otherwise a
            `{"status": "queued", ...}` marker.

        Raises:
            TransportError: Blocking upload failed.
        """
        task = self.enqueue_upload(owner, filename, message, bucket, blocking=wait)
        if wait:
            return await task.completion
        return {"status": "queued", "message": "Upload task has been queued"}

    def drain_queue(self) -> asyncio.Task | None:
        """Start the drain worker unless it is already running.

        Must be called from inside a running event loop. A running worker
        re-checks the queue before every task, so a second signal is a no-op.

        Returns:
            The active worker task, or `None` when there is nothing to drain.
        """
        if self.is_processing:
            return self._worker
        if not self._queue:
            return None

        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self._drain(self._generation, self._retired))
        return self._worker

    async def _drain(self, generation: int, previous: asyncio.Task | None = None) -> None:
        if previous is not None and not previous.done():
            # worker stopped by close() still finishing its in-flight upload
            await asyncio.wait([previous])

        while self._queue and generation == self._generation:
            task = self._queue.popleft()

            try:
                result = await self._upload(task)
            except Exception as exc:
                logger.error(
                    "Error during upload %s/%s: %s", task.owner, task.filename, exc
                )
                self._reject(task, exc)
            else:
                if task.completion is not None and not task.completion.done():
                    task.completion.set_result(result)

            await asyncio.sleep(self.config.upload_interval_seconds)

    async def _upload(self, task: UploadTask) -> Any:
        record = UploadRecord(
            Owner=task.owner,
            Bucket=task.bucket,
            ID=task.filename,
            Message=task.message,
        )
        response = await self._send(UPLOAD_PATH, json_body=record.model_dump(by_alias=True))
        raise_for_status(response)
        return response.json()

    def _reject(self, task: UploadTask, exc: BaseException) -> None:
        if task.completion is not None and not task.completion.done():
            task.completion.set_exception(exc)

        if not task.blocking and self._on_upload_error is not None:
            try:
                self._on_upload_error(task, exc)
            except Exception:
                logger.exception("Upload error callback failed for %s", task.filename)

    async def wait_for_upload_queue(self) -> None:
        """Block until the queue is empty and no drain, current or stopped, is running."""
        while self._queue or self.is_processing or self._retired_running:
            if self._queue and not self.is_processing:
                self.drain_queue()
            await asyncio.sleep(self.config.idle_poll_seconds)

    async def upload_hub_data(self, owner: str, filename: str, data: bytes) -> Any:
        """Upload raw bytes directly, bypassing the queue.

        Returns:
            Hub acknowledgement JSON, or `None` on failure.
        """
        try:
            response = await self._send(
                UPLOAD_DATA_PATH,
                data={"owner": owner},
                files={"file": (filename, data, "application/octet-stream")},
            )
            raise_for_status(response)
            return response.json()
        except (TransportError, ValueError) as exc:
            logger.error("Error during data upload %s/%s: %s", owner, filename, exc)
            return None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def list_conversations(self, owner: str, max_retries: int | None = None) -> list | None:
        """Return the conversation ids stored for `owner`, or `None` when unavailable."""

        async def call() -> Any:
            response = await self._send(CONVERSATION_PATH, data={"owner": owner})
            raise_for_status(response)
            return response.json()

        try:
            return await self._retry(f"list_conversations({owner})", call, max_retries)
        except RetryExhausted as exc:
            logger.error("Error during list conversations: %s", exc)
            return None

    async def get_conversation(
        self,
        owner: str,
        conversation_id: str,
        max_retries: int | None = None,
    ) -> list | None:
        """Return raw serialized records of one conversation, or `None` when unavailable."""

        async def call() -> Any:
            response = await self._send(
                CONVERSATION_PATH,
                data={"owner": owner, "id": conversation_id},
            )
            raise_for_status(response)
            return response.json()

        try:
            return await self._retry(
                f"get_conversation({owner}, {conversation_id})", call, max_retries
            )
        except RetryExhausted as exc:
            logger.error("Error during get conversation: %s", exc)
            return None

    async def download_hub(self, owner: str, filename: str) -> bytes | None:
        """Fetch one stored record as raw bytes in a single attempt.

        Returns:
            Response body, or `None` for any failure including "not found".
        """
        try:
            response = await self._send(DOWNLOAD_PATH, data={"id": filename, "owner": owner})
            raise_for_status(response)
            return response.content
        except TransportError as exc:
            logger.error("Error during download %s/%s: %s", owner, filename, exc)
            return None

    async def _retry(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        max_retries: int | None = None,
    ) -> Any:
        """Run `call` with bounded retries and exponential backoff.

        Retry policy:
            - `None` results and retryable transport errors are retried.
            - Undecodable bodies are retried.
            - `ClientError` (4xx) stops immediately.
            - Delay before attempt `n + 1` is `backoff_seconds * 2 ** (n - 1)`.

        Raises:
            RetryExhausted: No attempt produced a result.
        """
        attempts = max(1, max_retries if max_retries is not None else self.config.retry_attempts)
        last_error: Exception | None = None
        made = 0

        for attempt in range(attempts):
            made = attempt + 1
            try:
                result = await call()
                if result is not None:
                    return result
                last_error = None
                logger.debug("%s returned no data (attempt %d/%d)", operation, made, attempts)

            except TransportError as exc:
                last_error = exc
                if not is_retryable(exc):
                    logger.warning("%s rejected by hub: %s", operation, exc)
                    break
                logger.debug("%s attempt %d/%d failed: %s", operation, made, attempts, exc)

            except ValueError as exc:
                last_error = exc
                logger.debug("%s returned undecodable body: %s", operation, exc)

            if attempt < attempts - 1:
                await self._sleep(self._backoff(attempt))

        raise RetryExhausted(operation, made, last_error)

    def _backoff(self, attempt: int) -> float:
        """Compute exponential backoff delay for a zero-based attempt."""
        return self.config.backoff_seconds * (2 ** attempt)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop pending uploads and reset processing state.

        Pending completion futures are left unresolved. An upload already in
        flight finishes on the stopped worker.
        """
        dropped = len(self._queue)
        self._queue.clear()
        self._generation += 1
        if self.is_processing:
            self._retired = self._worker
        self._worker = None
        if dropped:
            logger.warning("Hub client closed with %d pending uploads discarded", dropped)

    def get_status(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "membase_id": self.membase_id,
            "queue_length": self.queue_length,
            "is_processing": self.is_processing,
            "timeout_seconds": self.config.timeout_seconds,
        }

    async def _send(
        self,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        json_body: Any = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        }
        return await send(
            f"{self.base_url}{path}",
            "POST",
            headers=headers,
            data=data,
            json_body=json_body,
            files=files,
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )
