"""JSON codec for memory units.

`serialize` tags every `Message` with its module and class name so that
`deserialize` can rebuild it; all other values pass through `json` unchanged.
`parse_record` normalizes stored records (text, tagged or plain dicts) to units.
Only the fields listed in `Message.SERIALIZED_ATTRS` are ever written.
"""

from __future__ import annotations

import json
from typing import Any

from membase.errors import MalformedRecord


MESSAGE_MODULE = "membase.memory.message"
MESSAGE_NAME = "Message"


def _default(obj: Any) -> Any:
    from membase.memory.message import Message

    if isinstance(obj, Message):
        return {
            "__module__": MESSAGE_MODULE,
            "__name__": MESSAGE_NAME,
            **obj.to_dict(),
        }
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _object_hook(value: dict) -> Any:
    from membase.memory.message import Message

    if value.get("__module__") == MESSAGE_MODULE and value.get("__name__") == MESSAGE_NAME:
        return Message.from_dict(value)
    return value


def serialize(obj: Any) -> str:
    """Encode `obj` as JSON, expanding `Message` instances to tagged dicts."""
    return json.dumps(obj, default=_default, ensure_ascii=False)


def deserialize(text: str | bytes) -> Any:
    """Decode JSON text, rebuilding tagged dicts as `Message` instances."""
    return json.loads(text, object_hook=_object_hook)


def is_serializable(obj: Any) -> bool:
    try:
        serialize(obj)
    except (TypeError, ValueError):
        return False
    return True


def parse_record(record: Any):
    """Turn one stored record into a `Message`.

    Accepts serialized text, a `Message`, or a wire dict. Either way the unit
    must carry both `id` and `name`.

    Raises:
        MalformedRecord: The record is not a well-formed unit.
    """
    from membase.memory.message import Message

    if isinstance(record, (str, bytes)):
        try:
            record = deserialize(record)
        except ValueError as exc:
            raise MalformedRecord(f"undecodable record: {exc}") from exc

    if isinstance(record, Message):
        if record.id and record.name:
            return record
    elif isinstance(record, dict) and record.get("id") and record.get("name"):
        return Message.from_dict(record)
    raise MalformedRecord(f"invalid message format: {record!r}")
