from __future__ import annotations

import pytest

from lingua_chat.application.dto.message import MessageDraft
from lingua_chat.application.exceptions import (
    BackendUnavailableError,
    SchemaMissingError,
    WriteRejectedError,
)
from lingua_chat.domain.entities.message import Message
from lingua_chat.domain.events.system_event import SystemEvent
from lingua_chat.services.chat_sync import ChatSync
from tests.conftest import FakeRemoteStore, make_row


@pytest.mark.asyncio
async def test_connect_tears_down_previous_room(sync, store):
    await sync.connect("a")
    await sync.connect("b")

    assert store.room_subscriptions["a"][0].stopped is True
    assert store.active_rooms() == ["b"]
    assert sync.room_id == "b"


@pytest.mark.asyncio
async def test_connect_same_room_twice_keeps_one_subscription(sync, store):
    await sync.connect("a")
    await sync.connect("a")

    active = [s for s in store.room_subscriptions["a"] if not s.stopped]
    assert len(active) == 1


@pytest.mark.asyncio
async def test_disconnect_is_safe_when_idle(sync, store):
    await sync.disconnect()
    await sync.disconnect()

    assert store.active_rooms() == []
    assert sync.room_id is None


@pytest.mark.asyncio
async def test_listeners_receive_mapped_messages(sync, store):
    received: list[Message] = []
    await sync.connect("lobby")
    sync.on_message(received.append)

    await store.push(make_row("1", ts=1_500, text="hola"))

    assert len(received) == 1
    msg = received[0]
    assert msg.id == "1"
    assert msg.sender == "ana"
    assert msg.sender_email == "ana@example.com"
    assert msg.sender_language == "es"
    assert msg.timestamp == 1_500


@pytest.mark.asyncio
async def test_unsubscribe_removes_only_that_listener(sync, store):
    first: list[Message] = []
    second: list[Message] = []
    await sync.connect("lobby")
    unsubscribe_first = sync.on_message(first.append)
    sync.on_message(second.append)

    unsubscribe_first()
    await store.push(make_row("1"))

    assert first == []
    assert [m.id for m in second] == ["1"]


@pytest.mark.asyncio
async def test_disconnect_clears_listeners(sync, store):
    received: list[Message] = []
    await sync.connect("lobby")
    sync.on_message(received.append)

    await sync.disconnect()
    await sync.connect("lobby")
    await store.push(make_row("1"))

    assert received == []


@pytest.mark.asyncio
async def test_rows_for_previous_room_are_dropped(sync, store):
    received: list[Message] = []
    await sync.connect("a")
    sync.on_message(received.append)
    await sync.connect("b")

    await store.push(make_row("late", room_id="a"), include_stopped=True)

    assert received == []


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(sync, store):
    received: list[Message] = []

    def _boom(_msg: Message) -> None:
        raise RuntimeError("boom")

    await sync.connect("lobby")
    sync.on_message(_boom)
    sync.on_message(received.append)

    await store.push(make_row("1"))

    assert [m.id for m in received] == ["1"]


@pytest.mark.asyncio
async def test_malformed_row_is_dropped(sync, store):
    received: list[Message] = []
    await sync.connect("lobby")
    sync.on_message(received.append)
    bad = make_row("1")
    del bad["sender_email"]

    await store.push(bad)

    assert received == []


@pytest.mark.asyncio
async def test_fetch_history_returns_most_recent_oldest_first(store):
    store.rows = [make_row(str(i), ts=1_000 + i) for i in range(60)]
    sync = ChatSync(store)

    history = await sync.fetch_history("lobby")

    assert len(history) == 50
    assert history[0].id == "10"
    assert history[-1].id == "59"
    assert [m.timestamp for m in history] == sorted(m.timestamp for m in history)


@pytest.mark.asyncio
async def test_fetch_history_of_empty_room(sync):
    assert await sync.fetch_history("nobody-here") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [BackendUnavailableError("down"), SchemaMissingError("no table")])
async def test_fetch_history_propagates_backend_errors(error):
    store = FakeRemoteStore(query_error=error)
    sync = ChatSync(store)

    with pytest.raises(type(error)):
        await sync.fetch_history("lobby")


@pytest.mark.asyncio
async def test_send_message_writes_row(sync, store):
    draft = MessageDraft(sender="me", sender_email="me@example.com", sender_language="en", text="hi")

    await sync.send_message("lobby", draft)

    assert store.inserted == [{
        "room_id": "lobby",
        "sender_email": "me@example.com",
        "sender_username": "me",
        "sender_language": "en",
        "text": "hi",
    }]


@pytest.mark.asyncio
async def test_send_message_propagates_rejection():
    store = FakeRemoteStore(insert_error=WriteRejectedError("denied"))
    sync = ChatSync(store)
    draft = MessageDraft(sender="me", sender_email="me@example.com", sender_language="en", text="hi")

    with pytest.raises(WriteRejectedError):
        await sync.send_message("lobby", draft)


@pytest.mark.asyncio
async def test_system_events_round_trip(sync, store):
    received: list[SystemEvent] = []
    await sync.open()
    sync.on_system_event(received.append)

    await sync.broadcast_system(
        SystemEvent(type="friend_request", sender_email="a@x.io", recipient_email="b@x.io")
    )

    assert received == [
        SystemEvent(type="friend_request", sender_email="a@x.io", recipient_email="b@x.io")
    ]
    await sync.close()
    assert store.system_subscriptions[0].stopped is True
