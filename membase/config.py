"""Hub client configuration.

Architectural role:
    Centralizes hub endpoint, identity, and network policy for
    `membase.storage.hub.HubClient`. A `HubConfig` is built once by the caller and
    passed explicitly to the client; no process-wide default client exists.

Resolution order (`HubConfig.from_env`):
    1. Explicit keyword overrides.
    2. Environment variables (after `load_dotenv()`).
    3. Dataclass defaults.

Relevant environment variables:
    - `MEMBASE_HUB`
    - `MEMBASE_ID`
    - `MEMBASE_ACCOUNT`
    - `MEMBASE_TIMEOUT_SECONDS`
    - `MEMBASE_RETRY_ATTEMPTS`
    - `MEMBASE_BACKOFF_SECONDS`
    - `MEMBASE_UPLOAD_INTERVAL_SECONDS`
    - `MEMBASE_USER_AGENT`
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from dotenv import load_dotenv


DEFAULT_HUB_URL = "https://testnet.hub.membase.io"


@dataclass(frozen=True)
class HubConfig:
    """Runtime configuration for `HubClient`.

    Attributes:
        base_url: Hub REST base URL, without trailing slash.
        membase_id: Caller hub identity; used as default upload bucket when set.
        account: Default uploading account for memories.
        timeout_seconds: Hard per-request timeout.
        retry_attempts: Read-path attempts before giving up.
        backoff_seconds: Base read-path backoff, doubled per attempt.
        upload_interval_seconds: Pause between drained upload tasks.
        idle_poll_seconds: Poll interval of `wait_for_upload_queue`.
        user_agent: `User-Agent` header sent on every request.
    """

    base_url: str = DEFAULT_HUB_URL
    membase_id: str = ""
    account: str = "default"
    timeout_seconds: float = 30.0
    retry_attempts: int = 3
    backoff_seconds: float = 1.0
    upload_interval_seconds: float = 0.1
    idle_poll_seconds: float = 0.1
    user_agent: str = "membase-py/1.0.0"

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> "HubConfig":
        """Build configuration from the process environment.

        Args:
            **overrides: Field values that take precedence over the environment.

        Returns:
            New `HubConfig`.

        Raises:
            TypeError: For unknown override names.
            ValueError: For unparsable numeric environment values.
        """
        load_dotenv()

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown HubConfig fields: {sorted(unknown)}")

        values: dict[str, Any] = {
            "base_url": os.getenv("MEMBASE_HUB", DEFAULT_HUB_URL).strip(),
            "membase_id": os.getenv("MEMBASE_ID", "").strip(),
            "account": os.getenv("MEMBASE_ACCOUNT", "default").strip() or "default",
            "timeout_seconds": float(os.getenv("MEMBASE_TIMEOUT_SECONDS", "30")),
            "retry_attempts": int(os.getenv("MEMBASE_RETRY_ATTEMPTS", "3")),
            "backoff_seconds": float(os.getenv("MEMBASE_BACKOFF_SECONDS", "1.0")),
            "upload_interval_seconds": float(
                os.getenv("MEMBASE_UPLOAD_INTERVAL_SECONDS", "0.1")
            ),
            "user_agent": os.getenv("MEMBASE_USER_AGENT", "membase-py/1.0.0").strip(),
        }
        values.update(overrides)
        return cls(**values)
