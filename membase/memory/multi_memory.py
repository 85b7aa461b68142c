"""Registry of conversation memories keyed by conversation id.

Architectural role:
    Front door for agents that keep several conversations. Each id maps to a
    lazily created `BufferedMemory` that inherits the registry's account, hub
    client, and mirroring flag.

Default conversation:
    Calls without an id use `default_conversation_id`. `clear()` without an id
    drops every conversation and rolls a fresh default id.

Hub preload:
    `preload_from` fetches one conversation's records from the hub and hydrates
    them without mirroring them back. Each id is fetched at most once per
    registry, even when the fetch returned nothing. Malformed records are logged
    and skipped. `preload_all` lists the account's conversations and preloads
    each in turn. `MultiMemory.create(..., preload_from_hub=True)` builds a
    registry and runs `preload_all` before returning it.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, Callable, Iterable

from membase.errors import MalformedRecord
from membase.memory.buffered_memory import BufferedMemory, resolve_account
from membase.memory.message import Message
from membase.memory.serialize import parse_record

if TYPE_CHECKING:
    from membase.storage.hub import HubClient


logger = logging.getLogger(__name__)


class MultiMemory:
    """Lazily populated mapping of conversation id to `BufferedMemory`.

    Args:
        membase_account: Hub account for mirrored writes and preload; defaults
            to the hub client's configured account.
        auto_upload_to_hub: Mirror writes of every conversation to `hub`.
        default_conversation_id: Id used when callers omit one.
        hub: Hub client, required for mirroring and preload.
    """

    def __init__(
        self,
        membase_account: str | None = None,
        auto_upload_to_hub: bool = False,
        default_conversation_id: str | None = None,
        hub: HubClient | None = None,
    ) -> None:
        if auto_upload_to_hub and hub is None:
            raise ValueError("auto_upload_to_hub requires a HubClient")

        self._memories: dict[str, BufferedMemory] = {}
        self._membase_account = resolve_account(membase_account, hub)
        self._auto_upload_to_hub = auto_upload_to_hub
        self._hub = hub
        self._default_conversation_id = default_conversation_id or str(uuid.uuid4())
        self._preloaded: set[str] = set()

    @classmethod
    async def create(
        cls,
        membase_account: str | None = None,
        auto_upload_to_hub: bool = False,
        default_conversation_id: str | None = None,
        hub: HubClient | None = None,
        preload_from_hub: bool = False,
    ) -> "MultiMemory":
        """Build a registry, optionally preloading every hub conversation first.

        Raises:
            RuntimeError: `preload_from_hub` without a hub client.
        """
        registry = cls(
            membase_account=membase_account,
            auto_upload_to_hub=auto_upload_to_hub,
            default_conversation_id=default_conversation_id,
            hub=hub,
        )
        if preload_from_hub:
            added = await registry.preload_all()
            logger.info("Preloaded %d records for %s", added, registry.membase_account)
        return registry

    @property
    def default_conversation_id(self) -> str:
        return self._default_conversation_id

    @property
    def membase_account(self) -> str:
        return self._membase_account

    def update_conversation_id(self, conversation_id: str | None = None) -> None:
        """Switch the default conversation, rolling a fresh id when none is given."""
        self._default_conversation_id = conversation_id or str(uuid.uuid4())

    def get_memory(self, conversation_id: str | None = None) -> BufferedMemory:
        """Return the memory for `conversation_id`, creating it on first use."""
        conversation_id = conversation_id or self._default_conversation_id

        memory = self._memories.get(conversation_id)
        if memory is None:
            memory = BufferedMemory(
                conversation_id=conversation_id,
                membase_account=self._membase_account,
                auto_upload_to_hub=self._auto_upload_to_hub,
                hub=self._hub,
            )
            self._memories[conversation_id] = memory
        return memory

    def add(self, memories: Message | Iterable[Message] | None, conversation_id: str | None = None) -> None:
        self.get_memory(conversation_id).add(memories)

    def get(
        self,
        conversation_id: str | None = None,
        recent_n: int | None = None,
        filter_func: Callable[[int, Message], bool] | None = None,
    ) -> list[Message]:
        return self.get_memory(conversation_id).get(recent_n, filter_func)

    def delete(self, conversation_id: str | None = None, index: int | Iterable[int] | None = None) -> None:
        """Delete positions from one conversation. Unknown conversations are ignored."""
        conversation_id = conversation_id or self._default_conversation_id
        memory = self._memories.get(conversation_id)
        if memory is not None and index is not None:
            memory.delete(index)

    def clear(self, conversation_id: str | None = None) -> None:
        """Clear one conversation, or reset the whole registry when no id is given."""
        if conversation_id is None:
            self._memories.clear()
            self._default_conversation_id = str(uuid.uuid4())
        elif conversation_id in self._memories:
            self._memories[conversation_id].clear()

    def get_all_conversations(self) -> list[str]:
        return list(self._memories)

    def size(self, conversation_id: str | None = None) -> int:
        """Total units across conversations, or the size of one conversation."""
        if conversation_id is None:
            return sum(memory.size() for memory in self._memories.values())
        memory = self._memories.get(conversation_id)
        return memory.size() if memory is not None else 0

    def is_preloaded(self, conversation_id: str) -> bool:
        return conversation_id in self._preloaded

    async def preload_from(self, conversation_id: str) -> int:
        """Hydrate one conversation from the hub, once per id.

        Returns:
            Number of records added locally.

        Raises:
            RuntimeError: No hub client configured.
        """
        hub = self._require_hub()
        if self.is_preloaded(conversation_id):
            return 0
        self._preloaded.add(conversation_id)

        memory = self.get_memory(conversation_id)
        records = await hub.get_conversation(self._membase_account, conversation_id)
        if not records:
            return 0

        before = memory.size()
        for record in records:
            logger.debug("got msg: %s", record)
            try:
                unit = parse_record(record)
            except MalformedRecord as exc:
                logger.warning("Skipping hub record in %s: %s", conversation_id, exc)
                continue
            memory.add_with_upload(unit, upload_to_hub=False)
        return memory.size() - before

    async def preload_all(self) -> int:
        """Preload every conversation the hub lists for this account.

        Returns:
            Number of records added locally across conversations.
        """
        hub = self._require_hub()
        conversations: Any = await hub.list_conversations(self._membase_account)
        if not conversations:
            return 0

        added = 0
        for conversation_id in conversations:
            added += await self.preload_from(str(conversation_id))
        return added

    def _require_hub(self) -> HubClient:
        if self._hub is None:
            raise RuntimeError("Hub preload requires a HubClient")
        return self._hub
