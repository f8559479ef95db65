"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from lingua_chat.application.exceptions import AppError, TranslationFailedError
from lingua_chat.application.ports.store import RowCallback
from lingua_chat.domain.entities.message import Message
from lingua_chat.domain.entities.user import User
from lingua_chat.services.chat_sync import ChatSync


@pytest.fixture
def viewer() -> User:
    return User(username="me", email="me@example.com", preferred_language="en")


@pytest.fixture
def store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def sync(store: FakeRemoteStore) -> ChatSync:
    return ChatSync(store)


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


def ms_to_datetime(ms: int) -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)


def make_row(
    message_id: str,
    *,
    ts: int = 1_000,
    room_id: str = "lobby",
    sender_email: str = "ana@example.com",
    sender_username: str = "ana",
    sender_language: str = "es",
    text: str = "hola",
) -> dict[str, Any]:
    return {
        "id": message_id,
        "room_id": room_id,
        "sender_email": sender_email,
        "sender_username": sender_username,
        "sender_language": sender_language,
        "text": text,
        "created_at": ms_to_datetime(ts),
    }


def make_message(
    message_id: str,
    *,
    ts: int = 1_000,
    sender_email: str = "ana@example.com",
    sender: str = "ana",
    sender_language: str = "es",
    text: str = "hola",
) -> Message:
    return Message(
        id=message_id,
        sender=sender,
        sender_email=sender_email,
        sender_language=sender_language,
        text=text,
        timestamp=ts,
    )


@dataclass
class FixedClock:
    now: int = 1_000

    def now_ms(self) -> int:
        return self.now


@dataclass
class FakeSubscription:
    callback: RowCallback
    stopped: bool = False

    async def stop(self) -> None:
        self.stopped = True


@dataclass
class FakeRemoteStore:
    """In-memory RemoteStore. Live delivery is explicit via ``push``."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    inserted: list[dict[str, Any]] = field(default_factory=list)
    room_subscriptions: dict[str, list[FakeSubscription]] = field(default_factory=dict)
    system_subscriptions: list[FakeSubscription] = field(default_factory=list)
    broadcasts: list[dict[str, Any]] = field(default_factory=list)
    insert_error: AppError | None = None
    query_error: AppError | None = None
    subscribe_error: AppError | None = None
    insert_gate: asyncio.Event | None = None
    _next_id: int = 100

    def active_rooms(self) -> list[str]:
        return [
            room for room, subs in self.room_subscriptions.items()
            if any(not s.stopped for s in subs)
        ]

    async def push(self, row: dict[str, Any], *, include_stopped: bool = False) -> None:
        """Deliver ``row`` on its room channel, as the backend fan-out would."""
        for sub in list(self.room_subscriptions.get(row["room_id"], [])):
            if include_stopped or not sub.stopped:
                await sub.callback(row)

    async def insert_message(self, row: dict[str, Any]) -> None:
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        if self.insert_error is not None:
            raise self.insert_error
        self.inserted.append(row)

    async def query_messages(self, room_id: str, *, limit: int) -> list[dict[str, Any]]:
        if self.query_error is not None:
            raise self.query_error
        matching = sorted(
            (r for r in self.rows if r["room_id"] == room_id),
            key=lambda r: r["created_at"],
        )
        return matching[-limit:]

    async def subscribe_room(self, room_id: str, callback: RowCallback) -> FakeSubscription:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        sub = FakeSubscription(callback)
        self.room_subscriptions.setdefault(room_id, []).append(sub)
        return sub

    async def subscribe_system(self, callback: RowCallback) -> FakeSubscription:
        sub = FakeSubscription(callback)
        self.system_subscriptions.append(sub)
        return sub

    async def broadcast_system(self, payload: dict[str, Any]) -> None:
        self.broadcasts.append(payload)
        for sub in list(self.system_subscriptions):
            if not sub.stopped:
                await sub.callback(payload)


@dataclass
class FakeTranslator:
    """Translator double: canned answers, optional failures and a gate per call."""

    answers: dict[str, str] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)
    gate: asyncio.Event | None = None
    calls: list[tuple[str, str, str | None]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def translate(
        self,
        text: str,
        target_language: str,
        source_language: str | None = None,
    ) -> str:
        self.calls.append((text, target_language, source_language))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if text in self.fail_on:
                raise TranslationFailedError("gateway error")
            return self.answers.get(text, f"[{target_language}] {text}")
        finally:
            self.in_flight -= 1


@dataclass
class FakeAccountStore:
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    sessions: set[str] = field(default_factory=set)

    async def sign_in(self, email: str) -> None:
        self.sessions.add(email)

    async def sign_out(self, email: str) -> None:
        self.sessions.discard(email)

    async def get_metadata(self, email: str) -> dict[str, Any] | None:
        profile = self.profiles.get(email)
        return dict(profile) if profile is not None else None

    async def update_metadata(self, email: str, updates: dict[str, Any]) -> dict[str, Any]:
        self.profiles.setdefault(email, {}).update(updates)
        return dict(self.profiles[email])
