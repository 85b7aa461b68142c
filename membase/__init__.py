"""Membase client library.

Architectural role:
    Lets an agent process keep conversational memory locally and mirror it to a
    remote hub storage service.

Package layout:
    - `config`: `HubConfig`, explicit client configuration.
    - `errors`: exception taxonomy.
    - `storage`: single-attempt transport and the queue-backed `HubClient`.
    - `memory`: `Message` units, per-conversation `BufferedMemory`, and the
      `MultiMemory` registry.
    - `auth`: access control over an injected chain capability.
"""

from membase.auth import Auth, ChainCapability
from membase.config import HubConfig
from membase.errors import (
    AuthError,
    ClientError,
    HubTimeoutError,
    MalformedRecord,
    MembaseError,
    MemoryLoadError,
    RetryExhausted,
    ServerError,
    TransportError,
    TypeMismatch,
)
from membase.memory import BufferedMemory, MemoryBase, Message, MultiMemory
from membase.storage import HubClient, UploadTask, resolve_bucket

__all__ = [
    "Auth",
    "AuthError",
    "BufferedMemory",
    "ChainCapability",
    "ClientError",
    "HubClient",
    "HubConfig",
    "HubTimeoutError",
    "MalformedRecord",
    "MembaseError",
    "MemoryBase",
    "MemoryLoadError",
    "Message",
    "MultiMemory",
    "RetryExhausted",
    "ServerError",
    "TransportError",
    "TypeMismatch",
    "UploadTask",
    "resolve_bucket",
]
