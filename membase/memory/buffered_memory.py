"""Conversation memory: ordered, deduplicated units of one conversation.

Purpose of this abstraction:
    Hold the messages of a single conversation in insertion order, with an
    `id -> position` index for duplicate detection, and optionally mirror every
    fresh write to the hub upload queue.

State invariants:
    - `_messages` and `_message_map` always agree.
    - After `delete` the index is rebuilt from the survivors, so positions are
      dense and start at 0.
    - Every held unit carries `metadata["conversation"] == conversation_id`.

Hub mirroring:
    Enabled by `auto_upload_to_hub=True` plus a `HubClient`. `add` mirrors;
    `load` and registry preload hydrate without mirroring. Records are keyed
    `"{conversation_id}_{position}"` under `membase_account`.

Failure handling:
    - Non-`Message` values raise `TypeMismatch` before anything is added.
    - Duplicate ids and out-of-range delete indices are logged and skipped.
    - Export write failures are logged and re-raised.
    - `load` input that is neither a file nor inline content raises
      `MemoryLoadError`.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any, Callable, Iterable

from membase.errors import MemoryLoadError, TypeMismatch
from membase.memory.base import MemoryBase
from membase.memory.message import Message
from membase.memory.serialize import deserialize, parse_record, serialize

if TYPE_CHECKING:
    from membase.storage.hub import HubClient


logger = logging.getLogger(__name__)


DEFAULT_ACCOUNT = "default"


def resolve_account(membase_account: str | None, hub: HubClient | None) -> str:
    """Pick the owning account: explicit value, then `hub.config.account`, then `"default"`."""
    if membase_account:
        return membase_account
    if hub is not None:
        return hub.config.account
    return DEFAULT_ACCOUNT


class BufferedMemory(MemoryBase):
    """In-process memory for one conversation.

    Args:
        conversation_id: Conversation key; a fresh uuid when empty.
        membase_account: Hub account that owns mirrored records; defaults to
            the hub client's configured account.
        auto_upload_to_hub: Mirror `add` calls to `hub`.
        hub: Upload target, required when mirroring.

    Raises:
        ValueError: Mirroring requested without a hub client.
    """

    def __init__(
        self,
        conversation_id: str | None = None,
        membase_account: str | None = None,
        auto_upload_to_hub: bool = False,
        hub: HubClient | None = None,
    ) -> None:
        if auto_upload_to_hub and hub is None:
            raise ValueError("auto_upload_to_hub requires a HubClient")

        self._messages: list[Message] = []
        self._message_map: dict[str, int] = {}

        self._conversation_id = conversation_id or str(uuid.uuid4())
        self._membase_account = resolve_account(membase_account, hub)
        self._auto_upload_to_hub = auto_upload_to_hub
        self._hub = hub

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def membase_account(self) -> str:
        return self._membase_account

    def add(self, memories: Message | Iterable[Message] | None) -> None:
        self.add_with_upload(memories, upload_to_hub=True)

    def add_with_upload(
        self,
        memories: Message | Iterable[Message] | None,
        upload_to_hub: bool = True,
    ) -> None:
        """Append units, skipping ids already held.

        Args:
            memories: One unit, an iterable of units, or `None` (no-op).
            upload_to_hub: Mirror to the hub when mirroring is enabled.

        Raises:
            TypeMismatch: Any element is not a `Message`.
        """
        if memories is None:
            return

        if isinstance(memories, Message):
            records = [memories]
        elif isinstance(memories, (list, tuple)):
            records = list(memories)
        else:
            records = [memories]

        for unit in records:
            if not isinstance(unit, Message):
                raise TypeMismatch(
                    f"Cannot add {type(unit).__name__} to memory, must be a Message object."
                )

        for unit in records:
            if unit.id in self._message_map:
                logger.warning("duplicate memory_unit: %s", unit.id)
                continue

            self._attach(unit)
            self._messages.append(unit)
            position = len(self._messages) - 1
            self._message_map[unit.id] = position

            if self._auto_upload_to_hub and upload_to_hub:
                memory_id = f"{self._conversation_id}_{position}"
                logger.debug("Upload memory: %s %s", self._membase_account, memory_id)
                self._hub.enqueue_upload(self._membase_account, memory_id, serialize(unit))

    def _attach(self, unit: Message) -> None:
        metadata = unit.metadata
        if isinstance(metadata, dict):
            metadata["conversation"] = self._conversation_id
        elif isinstance(metadata, str):
            unit.metadata = {"metadata": metadata, "conversation": self._conversation_id}
        else:
            unit.metadata = {"conversation": self._conversation_id}

    def delete(self, index: int | Iterable[int]) -> None:
        """Delete units by position; invalid positions are skipped.

        Raises:
            TypeError: `index` is neither an int nor an iterable of ints.
        """
        if self.size() == 0:
            logger.warning("The memory is empty, and the delete operation is skipping.")
            return

        if isinstance(index, int):
            index_set = {index}
        elif isinstance(index, (list, tuple, set, frozenset)):
            index_set = set(index)
        else:
            raise TypeError("index type only supports {int, list, tuple, set}")

        invalid = sorted(i for i in index_set if not 0 <= i < self.size())
        if invalid:
            logger.warning("Skip delete operation for the invalid index %s", invalid)

        survivors = [m for i, m in enumerate(self._messages) if i not in index_set]
        self._messages = survivors
        self._message_map = {m.id: i for i, m in enumerate(survivors)}

    def get(
        self,
        recent_n: int | None = None,
        filter_func: Callable[[int, Message], bool] | None = None,
    ) -> list[Message]:
        """Return units in insertion order.

        Args:
            recent_n: Keep only the last `min(recent_n, size)` units.
            filter_func: Called as `(position_in_slice, unit)`; keeps truthy results.
        """
        if recent_n is None:
            memories = list(self._messages)
        else:
            count = max(0, min(recent_n, self.size()))
            memories = self._messages[self.size() - count:]

        if filter_func is not None:
            memories = [m for i, m in enumerate(memories) if filter_func(i, m)]
        return memories

    def export(self, file_path: str | None = None, to_mem: bool = False) -> list[Message] | None:
        if to_mem:
            return self.export_to_memory()
        if file_path is None:
            raise ValueError("file_path cannot be None when to_mem is False")
        self.export_to(file_path)
        return None

    def export_to_memory(self) -> list[Message]:
        return list(self._messages)

    def export_to(self, file_path: str) -> None:
        """Write the units to `file_path` as a JSON list of serialized units.

        Raises:
            OSError: The file could not be written.
        """
        serialized = [serialize(m) for m in self._messages]
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(serialized, f, indent=2, ensure_ascii=False)
        except OSError:
            logger.exception("Error exporting memory to file %s", file_path)
            raise
        logger.info("Memory exported to %s", file_path)

    def load(self, memories: str | Message | Iterable[Message], overwrite: bool = False) -> None:
        """Hydrate units without mirroring them to the hub.

        Args:
            memories: File path, inline serialized content, a unit, or a list of units.
            overwrite: Clear current units first.

        Raises:
            MemoryLoadError: String input is neither a readable file nor valid content.
            TypeMismatch: Unsupported input type.
        """
        if isinstance(memories, str):
            units = self._parse_source(memories)
        elif isinstance(memories, Message):
            units = [memories]
        elif isinstance(memories, (list, tuple)):
            units = list(memories)
        else:
            raise TypeMismatch(
                f"Unsupported memories type for loading: {type(memories).__name__}"
            )

        if overwrite:
            self.clear()
        self.add_with_upload(units, upload_to_hub=False)

    @staticmethod
    def _parse_source(source: str) -> list[Message]:
        try:
            with open(source, "r", encoding="utf-8") as f:
                return _decode_units(f.read())
        except (OSError, ValueError):
            pass

        try:
            return _decode_units(source)
        except ValueError as exc:
            raise MemoryLoadError(f"Failed to load memories: {exc}") from exc

    def clear(self) -> None:
        self._messages = []
        self._message_map = {}

    def size(self) -> int:
        return len(self._messages)


def _decode_units(text: str) -> list[Message]:
    data = deserialize(text)
    if not isinstance(data, list):
        data = [data]
    return [parse_record(item) for item in data]
