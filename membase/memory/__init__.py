"""Memory subsystem package.

Architectural role:
    Groups the in-process memory components:
    - `message`: the `Message` unit and its wire projection.
    - `serialize`: JSON codec and hub record parsing.
    - `base`: abstract `MemoryBase` interface.
    - `buffered_memory`: one conversation, optionally mirrored to the hub.
    - `multi_memory`: registry of conversations with hub preload.
"""

from membase.memory.base import MemoryBase
from membase.memory.buffered_memory import BufferedMemory
from membase.memory.message import Message
from membase.memory.multi_memory import MultiMemory

__all__ = ["BufferedMemory", "MemoryBase", "Message", "MultiMemory"]
