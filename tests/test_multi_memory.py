"""
Tests for the multi-conversation registry and hub preload.
"""

import json

import httpx
import pytest

from membase.memory.message import Message
from membase.memory.multi_memory import MultiMemory
from membase.memory.serialize import serialize
from tests.utils import form_of


def stored_record(conversation_id, content, name="agent"):
    unit = Message(name, content, "user", metadata={"conversation": conversation_id})
    return unit, serialize(unit)


def test_memories_are_created_lazily_per_conversation():
    registry = MultiMemory(membase_account="alice", default_conversation_id="main")

    assert registry.get_all_conversations() == []
    registry.add(Message("agent", "hello", "user"))
    registry.add(Message("agent", "side", "user"), conversation_id="side")

    assert registry.get_all_conversations() == ["main", "side"]
    assert registry.get_memory("side").membase_account == "alice"
    assert registry.get_memory("side") is registry.get_memory("side")


def test_default_conversation_routes_calls():
    registry = MultiMemory(default_conversation_id="main")
    unit = Message("agent", "hello", "user")

    registry.add(unit)

    assert registry.get() == [unit]
    assert registry.get("main", recent_n=1) == [unit]
    assert unit.metadata == {"conversation": "main"}


def test_size_aggregates_across_conversations():
    registry = MultiMemory()
    registry.add([Message("a", "1", "user"), Message("a", "2", "user")], conversation_id="one")
    registry.add(Message("a", "3", "user"), conversation_id="two")

    assert registry.size() == 3
    assert registry.size("one") == 2
    assert registry.size("missing") == 0


def test_delete_ignores_unknown_conversation():
    registry = MultiMemory(default_conversation_id="main")
    units = [Message("a", str(i), "user") for i in range(3)]
    registry.add(units)

    registry.delete("unknown", 0)
    registry.delete(index=[0, 1])

    assert registry.get() == [units[2]]
    assert registry.get_all_conversations() == ["main"]


def test_clear_one_conversation():
    registry = MultiMemory(default_conversation_id="main")
    registry.add(Message("a", "x", "user"))
    registry.add(Message("a", "y", "user"), conversation_id="keep")

    registry.clear("main")

    assert registry.size("main") == 0
    assert registry.size("keep") == 1


def test_clear_all_resets_default_id():
    registry = MultiMemory(default_conversation_id="main")
    registry.add(Message("a", "x", "user"))

    registry.clear()

    assert registry.get_all_conversations() == []
    assert registry.default_conversation_id != "main"
    assert registry.default_conversation_id


def test_update_conversation_id():
    registry = MultiMemory(default_conversation_id="main")

    registry.update_conversation_id("next")
    assert registry.default_conversation_id == "next"

    registry.update_conversation_id()
    assert registry.default_conversation_id not in ("main", "next")


def test_mirroring_requires_hub():
    with pytest.raises(ValueError):
        MultiMemory(auto_upload_to_hub=True)


@pytest.mark.asyncio
async def test_preload_requires_hub():
    with pytest.raises(RuntimeError):
        await MultiMemory().preload_from("conv")


@pytest.mark.asyncio
async def test_preload_hydrates_once_without_mirroring(hub, recorder):
    first, first_raw = stored_record("conv", "one")
    second, second_raw = stored_record("conv", "two")
    recorder.queue("/api/conversation", httpx.Response(200, json=[first_raw, second_raw]))
    registry = MultiMemory(membase_account="alice", auto_upload_to_hub=True, hub=hub)

    added = await registry.preload_from("conv")
    again = await registry.preload_from("conv")
    await hub.wait_for_upload_queue()

    assert added == 2
    assert again == 0
    assert registry.is_preloaded("conv")
    assert registry.get("conv") == [first, second]
    assert recorder.paths() == ["/api/conversation"]
    assert form_of(recorder.requests[0]) == {"owner": "alice", "id": "conv"}


@pytest.mark.asyncio
async def test_preload_skips_malformed_records(hub, recorder):
    good, good_raw = stored_record("conv", "ok")
    records = [
        "{not json",
        json.dumps({"content": "no id or name"}),
        json.dumps({"__module__": "membase.memory.message", "__name__": "Message", "content": "x"}),
        good_raw,
        good.to_dict(),
    ]
    recorder.queue("/api/conversation", httpx.Response(200, json=records))
    registry = MultiMemory(hub=hub)

    added = await registry.preload_from("conv")

    assert added == 1
    assert registry.get("conv") == [good]


@pytest.mark.asyncio
async def test_preload_marks_conversation_even_when_fetch_fails(hub, recorder, sleeps):
    recorder.queue("/api/conversation", httpx.Response(404))
    registry = MultiMemory(hub=hub)

    assert await registry.preload_from("gone") == 0
    assert await registry.preload_from("gone") == 0

    assert registry.is_preloaded("gone")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_later_adds_still_mirror_after_preload(hub, recorder):
    _, raw = stored_record("conv", "old")
    recorder.queue("/api/conversation", httpx.Response(200, json=[raw]))
    registry = MultiMemory(membase_account="alice", auto_upload_to_hub=True, hub=hub)

    await registry.preload_from("conv")
    registry.add(Message("agent", "new", "user"), conversation_id="conv")
    await hub.wait_for_upload_queue()

    assert [b["ID"] for b in recorder.bodies()] == ["conv_1"]


@pytest.mark.asyncio
async def test_preload_all_walks_listed_conversations(hub, recorder):
    stored = {
        "a": [stored_record("a", "a1")[1], stored_record("a", "a2")[1]],
        "b": [stored_record("b", "b1")[1]],
    }

    def conversation_endpoint(request):
        form = form_of(request)
        if "id" in form:
            return httpx.Response(200, json=stored[form["id"]])
        return httpx.Response(200, json=list(stored))

    recorder.default = conversation_endpoint
    registry = MultiMemory(membase_account="alice", hub=hub)

    added = await registry.preload_all()

    assert added == 3
    assert registry.size("a") == 2
    assert registry.size("b") == 1
    assert registry.is_preloaded("a") and registry.is_preloaded("b")


def test_account_defaults_to_hub_config(hub):
    registry = MultiMemory(hub=hub)

    assert registry.membase_account == "tester"
    assert registry.get_memory("c").membase_account == "tester"
    assert MultiMemory(membase_account="alice", hub=hub).membase_account == "alice"
    assert MultiMemory().membase_account == "default"


@pytest.mark.asyncio
async def test_create_preloads_from_hub(hub, recorder):
    stored = {"a": [stored_record("a", "a1")[1]], "b": [stored_record("b", "b1")[1]]}

    def conversation_endpoint(request):
        form = form_of(request)
        if "id" in form:
            return httpx.Response(200, json=stored[form["id"]])
        return httpx.Response(200, json=list(stored))

    recorder.default = conversation_endpoint

    registry = await MultiMemory.create(hub=hub, preload_from_hub=True)

    assert registry.size() == 2
    assert registry.get_all_conversations() == ["a", "b"]
    assert form_of(recorder.requests[0]) == {"owner": "tester"}


@pytest.mark.asyncio
async def test_create_without_preload_makes_no_requests(hub, recorder):
    registry = await MultiMemory.create(membase_account="alice", hub=hub, default_conversation_id="main")

    assert registry.default_conversation_id == "main"
    assert registry.membase_account == "alice"
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_create_preload_requires_hub():
    with pytest.raises(RuntimeError):
        await MultiMemory.create(preload_from_hub=True)
