"""Abstract memory interface implemented by `BufferedMemory`."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable


class MemoryBase(ABC):
    """Storage-agnostic operations every memory provides."""

    version = 1

    @abstractmethod
    def get(
        self,
        recent_n: int | None = None,
        filter_func: Callable[[int, Any], bool] | None = None,
    ) -> list:
        """Return the most recent `recent_n` units (or all), filtered by `filter_func`."""

    @abstractmethod
    def add(self, memories: Any) -> None:
        """Add one unit or a sequence of units."""

    @abstractmethod
    def delete(self, index: int | Iterable[int]) -> None:
        """Delete units by position."""

    @abstractmethod
    def load(self, memories: Any, overwrite: bool = False) -> None:
        """Load units from a file, serialized text, or unit objects."""

    @abstractmethod
    def export(self, file_path: str | None = None, to_mem: bool = False) -> list | None:
        """Export to `file_path`, or return the units when `to_mem` is true."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every unit."""

    @abstractmethod
    def size(self) -> int:
        """Return the number of units held."""
