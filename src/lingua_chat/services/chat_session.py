"""Per-user chat session: reconciliation and translation pipeline.

Every mutation of the room timeline runs as a command on one queue with a
single consumer task. Network work runs in background tasks that post their
results back as commands:

* history fetch,
* message persistence,
* translation.

Commands are tagged with the room epoch they belong to. A room switch bumps
the epoch, so nothing from the previous room is applied afterwards.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from types import TracebackType
from typing import Any, Callable, Coroutine, Self

from lingua_chat.application.dto.message import MessageDraft
from lingua_chat.application.dto.session import ErrorState
from lingua_chat.application.exceptions import AppError, TranslationFailedError
from lingua_chat.application.ports.clock import Clock, SystemClock
from lingua_chat.application.ports.translator import Translator
from lingua_chat.domain.entities.message import Message, TranslatedMessage
from lingua_chat.domain.entities.room import ChatRoom
from lingua_chat.domain.entities.user import User
from lingua_chat.domain.value_objects.ids import make_temp_id
from lingua_chat.domain.value_objects.languages import language_name
from lingua_chat.services.chat_sync import ChatSync, Unsubscribe
from lingua_chat.services.timeline import RoomTimeline

logger = logging.getLogger(__name__)

ChangeListener = Callable[[tuple[TranslatedMessage, ...]], None]
_Command = tuple[int | None, Callable[[], None]]


class ChatSession:
    def __init__(
        self,
        sync: ChatSync,
        user: User,
        *,
        translator: Translator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._sync = sync
        self._user = user
        self._translator = translator
        self._clock = clock or SystemClock()
        self._timeline = RoomTimeline(user, translation_enabled=translator is not None)

        self._queue: asyncio.Queue[_Command] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()
        self._listeners: list[ChangeListener] = []

        self._room: ChatRoom | None = None
        self._epoch = 0
        self._unsubscribe: Unsubscribe | None = None
        self._in_flight: str | None = None
        self._draft = ""
        self._errors: list[ErrorState] = []
        self._history_loading = False

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume(), name="chat-session")

    async def close(self) -> None:
        self._epoch += 1
        self._room = None
        self._drop_live_listener()
        await self._sync.disconnect()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def wait_idle(self) -> None:
        """Wait until queued commands and background work are drained."""
        while True:
            await self._queue.join()
            pending = [t for t in self._background if not t.done()]
            if not pending and self._queue.empty():
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -- state for the presentation layer -------------------------------------

    @property
    def user(self) -> User:
        return self._user

    @property
    def room(self) -> ChatRoom | None:
        return self._room

    @property
    def messages(self) -> tuple[TranslatedMessage, ...]:
        return self._timeline.messages

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def errors(self) -> tuple[ErrorState, ...]:
        return tuple(self._errors)

    @property
    def is_history_loading(self) -> bool:
        return self._history_loading

    @property
    def translation_enabled(self) -> bool:
        return self._translator is not None

    def set_draft(self, text: str) -> None:
        self._draft = text

    def dismiss_error(self, index: int = 0) -> None:
        if 0 <= index < len(self._errors):
            del self._errors[index]

    def clear_errors(self) -> None:
        self._errors.clear()

    def on_change(self, listener: ChangeListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- user actions --------------------------------------------------------

    async def enter_room(self, room: ChatRoom) -> None:
        self._epoch += 1
        epoch = self._epoch
        self._room = room
        self._drop_live_listener()
        self._post(epoch, self._reset_room)

        try:
            await self._sync.connect(room.id)
        except AppError as exc:
            logger.warning("Cannot connect to room %s: %s", room.id, exc.detail)
            self._post(epoch, functools.partial(self._history_failed, exc))
            return
        if epoch != self._epoch:
            return

        self._unsubscribe = self._sync.on_message(
            lambda message: self._post(epoch, lambda: self._admit_live(message))
        )
        self._spawn(self._load_history(room.id, epoch))

    async def leave_room(self) -> None:
        self._epoch += 1
        self._room = None
        self._drop_live_listener()
        self._post(self._epoch, self._reset_room)
        await self._sync.disconnect()

    def send(self, text: str) -> bool:
        """Show ``text`` immediately and persist it in the background.

        Returns False when there is nothing to send or no active room.
        """
        room = self._room
        if room is None or not text.strip():
            return False

        self._draft = ""
        epoch = self._epoch
        now = self._clock.now_ms()
        draft = MessageDraft(
            sender=self._user.username,
            sender_email=self._user.email,
            sender_language=self._user.preferred_language,
            text=text,
        )

        def _add_optimistic() -> None:
            temp_id = make_temp_id(now, self._timeline)
            self._timeline.add_optimistic(
                Message(
                    id=temp_id,
                    sender=draft.sender,
                    sender_email=draft.sender_email,
                    sender_language=draft.sender_language,
                    text=draft.text,
                    timestamp=now,
                )
            )
            self._spawn(self._persist(room.id, draft, temp_id, epoch))

        self._post(epoch, _add_optimistic)
        return True

    def update_viewer(self, user: User) -> None:
        """Apply a profile change (e.g. preferred language) to the session."""
        self._user = user
        self._post(None, lambda: self._timeline.update_viewer(user))

    # -- commands (run on the consumer task only) -----------------------------

    def _reset_room(self) -> None:
        self._timeline.clear()
        self._in_flight = None
        self._errors.clear()
        self._history_loading = self._room is not None

    def _admit_live(self, message: Message) -> None:
        admission = self._timeline.admit_live(message)
        logger.debug("Live message %s: %s", message.id, admission)

    def _history_loaded(self, history: list[Message]) -> None:
        self._history_loading = False
        self._timeline.admit_history(history)

    def _history_failed(self, exc: AppError) -> None:
        self._history_loading = False
        self._errors.append(ErrorState(exc.kind, f"Sync error: {exc.detail or 'failed to load messages'}"))

    def _rollback_send(self, temp_id: str, text: str, exc: AppError) -> None:
        self._timeline.remove(temp_id)
        self._draft = text
        self._errors.append(ErrorState(exc.kind, f"Send failed: {exc.detail or 'unknown error'}"))

    def _finish_translation(self, message_id: str, target_language: str, translated: str | None) -> None:
        if self._in_flight == message_id:
            self._in_flight = None
        if target_language != self._timeline.viewer.preferred_language:
            return
        if translated is None:
            self._timeline.fail_translation(message_id)
        else:
            self._timeline.apply_translation(message_id, translated)

    def _schedule_translation(self) -> None:
        if self._translator is None or self._in_flight is not None:
            return
        candidate = self._timeline.next_pending_translation()
        if candidate is None:
            return
        self._in_flight = candidate.id
        self._spawn(
            self._translate(
                self._translator,
                candidate,
                self._epoch,
                self._timeline.viewer.preferred_language,
            )
        )

    # -- background work ------------------------------------------------------

    async def _load_history(self, room_id: str, epoch: int) -> None:
        try:
            history = await self._sync.fetch_history(room_id)
        except AppError as exc:
            logger.warning("History fetch for room %s failed: %s", room_id, exc.detail)
            self._post(epoch, functools.partial(self._history_failed, exc))
            return
        self._post(epoch, lambda: self._history_loaded(history))

    async def _persist(self, room_id: str, draft: MessageDraft, temp_id: str, epoch: int) -> None:
        try:
            await self._sync.send_message(room_id, draft)
        except AppError as exc:
            logger.warning("Send to room %s failed: %s", room_id, exc.detail)
            self._post(
                epoch, functools.partial(self._rollback_send, temp_id, draft.text, exc),
            )

    async def _translate(
        self,
        translator: Translator,
        message: TranslatedMessage,
        epoch: int,
        target_language: str,
    ) -> None:
        translated: str | None = None
        try:
            translated = await translator.translate(
                message.text,
                language_name(target_language),
                language_name(message.sender_language),
            )
        except TranslationFailedError as exc:
            logger.warning("Translation of %s failed, showing original: %s", message.id, exc.detail)
        except Exception:
            logger.exception("Unexpected translator error for %s, showing original", message.id)
        self._post(
            epoch, lambda: self._finish_translation(message.id, target_language, translated)
        )

    # -- plumbing ------------------------------------------------------------

    def _post(self, epoch: int | None, command: Callable[[], None]) -> None:
        if epoch is not None and epoch != self._epoch:
            return
        self._queue.put_nowait((epoch, command))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())

    def _drop_live_listener(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _notify(self) -> None:
        snapshot = self._timeline.messages
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Change listener failed")

    async def _consume(self) -> None:
        while True:
            epoch, command = await self._queue.get()
            try:
                if epoch is None or epoch == self._epoch:
                    command()
                    self._schedule_translation()
                    self._notify()
            except Exception:
                logger.exception("Chat session command failed")
            finally:
                self._queue.task_done()
