"""Memory unit: one message exchanged by an agent.

Wire form:
    `to_dict()` projects exactly `SERIALIZED_ATTRS`; `from_dict()` restores them.
    No other attribute ever reaches the wire, so two units rebuilt from the same
    dict compare equal regardless of how they were built.

Validation:
    Content that JSON cannot encode is stored as `str(content)` with a warning.
    Roles outside `VALID_ROLES` are kept but flagged.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from membase.memory.serialize import is_serializable


logger = logging.getLogger(__name__)


VALID_ROLES = ("system", "user", "assistant")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_COLOR_MARKS = [
    ("\x1b[90m", "\x1b[0m"),
    ("\x1b[91m", "\x1b[0m"),
    ("\x1b[92m", "\x1b[0m"),
    ("\x1b[93m", "\x1b[0m"),
    ("\x1b[94m", "\x1b[0m"),
    ("\x1b[95m", "\x1b[0m"),
    ("\x1b[96m", "\x1b[0m"),
    ("\x1b[97m", "\x1b[0m"),
]


def get_timestamp(time: datetime | None = None) -> str:
    """Format `time` (default: now, UTC) at second resolution."""
    time = time or datetime.now(timezone.utc)
    return time.strftime(TIMESTAMP_FORMAT)


def map_string_to_color_mark(target: str) -> tuple[str, str]:
    """Pick a stable ANSI color pair for a string."""
    digest = hashlib.sha256(str(target).encode("utf-8")).hexdigest()
    return _COLOR_MARKS[int(digest[:8], 16) % len(_COLOR_MARKS)]


class Message:
    """A single memory unit.

    Args:
        name: Author or agent identifier.
        content: JSON-serializable payload.
        role: One of `system`, `user`, `assistant`.
        url: Optional URL or list of URLs.
        metadata: Optional mapping (or bare string) of extra information.
        echo: Log the formatted message on creation.
        **kwargs: Not stored; reported as unused.
    """

    SERIALIZED_ATTRS = ("id", "name", "content", "role", "url", "metadata", "timestamp")

    def __init__(
        self,
        name: str,
        content: Any,
        role: str,
        url: str | list[str] | None = None,
        metadata: dict | str | None = None,
        echo: bool = False,
        **kwargs: Any,
    ) -> None:
        self._id = uuid.uuid4().hex
        self._timestamp = get_timestamp()
        self.name = name
        self.content = content
        self.role = role
        self.url = url
        self.metadata = metadata

        if kwargs:
            logger.warning(
                "Message does not store extra attributes; the input arguments %s are not used.",
                sorted(kwargs),
            )

        if echo:
            logger.info("%s", self.formatted_str())

    @property
    def id(self) -> str:
        return self._id

    @property
    def timestamp(self) -> str:
        return self._timestamp

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def content(self) -> Any:
        return self._content

    @content.setter
    def content(self, value: Any) -> None:
        if not is_serializable(value):
            logger.warning(
                "The content of type %s is not JSON serializable and will be "
                "converted to string.",
                type(value).__name__,
            )
            value = str(value)
        self._content = value

    @property
    def role(self) -> str:
        return self._role

    @role.setter
    def role(self, value: str) -> None:
        if value not in VALID_ROLES:
            logger.warning(
                "The role %r is not in %s. This may cause unexpected behavior.",
                value,
                list(VALID_ROLES),
            )
        self._role = value

    @property
    def url(self) -> str | list[str] | None:
        return self._url

    @url.setter
    def url(self, value: str | list[str] | None) -> None:
        self._url = value

    @property
    def metadata(self) -> dict | str | None:
        return self._metadata

    @metadata.setter
    def metadata(self, value: dict | str | None) -> None:
        self._metadata = value

    @property
    def colored_name(self) -> str:
        start, end = map_string_to_color_mark(self.name)
        return f"{start}{self.name}{end}"

    def formatted_str(self, colored: bool = False) -> str:
        """Render as `name: content`, followed by one `<url>` line per URL."""
        name = self.colored_name if colored else self.name
        if isinstance(self.content, str):
            content = self.content
        else:
            content = json.dumps(self.content, ensure_ascii=False)

        result = f"{name}: {content}"
        if self.url:
            urls = self.url if isinstance(self.url, list) else [self.url]
            result += "\n" + "\n".join(f"<url>{u}</url>" for u in urls)
        return result

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form: exactly the fields in `SERIALIZED_ATTRS`."""
        return {attr: copy.deepcopy(getattr(self, f"_{attr}")) for attr in self.SERIALIZED_ATTRS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Rebuild a unit from its wire form without re-validating fields.

        Keys outside `SERIALIZED_ATTRS` are ignored; missing keys become `None`.
        """
        message = cls.__new__(cls)
        for attr in cls.SERIALIZED_ATTRS:
            setattr(message, f"_{attr}", copy.deepcopy(data.get(attr)))
        return message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def __str__(self) -> str:
        return self.formatted_str()

    def __repr__(self) -> str:
        return f"Message(id={self.id!r}, name={self.name!r}, role={self.role!r})"
