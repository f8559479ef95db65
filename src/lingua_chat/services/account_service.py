from __future__ import annotations

import dataclasses
import logging
import secrets
import string
from typing import Any

from lingua_chat.application.exceptions import ConfigurationMissingError, ValidationError
from lingua_chat.application.ports.account import AccountStore
from lingua_chat.domain.entities.user import User
from lingua_chat.domain.events.system_event import SystemEvent
from lingua_chat.domain.value_objects.enums import SystemEventType
from lingua_chat.domain.value_objects.languages import DEFAULT_LANGUAGE, is_supported
from lingua_chat.services.chat_sync import ChatSync

logger = logging.getLogger(__name__)

GUEST_EMAIL_DOMAIN = "lingua.chat"
_GUEST_ID_ALPHABET = string.ascii_uppercase + string.digits


def user_from_metadata(
    email: str,
    metadata: dict[str, Any],
    default_language: str = DEFAULT_LANGUAGE,
) -> User:
    return User(
        username=metadata.get("username") or email.split("@")[0],
        email=email,
        preferred_language=metadata.get("preferredLanguage") or default_language,
        friends=tuple(metadata.get("friends") or ()),
        friend_requests=tuple(metadata.get("friendRequests") or ()),
        is_guest=False,
    )


def _require_language(code: str) -> None:
    if not is_supported(code):
        raise ValidationError(f"Unsupported language: {code}")


class AccountService:
    """Session lifecycle on top of an AccountStore. Guests never touch the store."""

    def __init__(
        self,
        store: AccountStore | None,
        *,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        _require_language(default_language)
        self._store = store
        self._default_language = default_language

    def _require_store(self) -> AccountStore:
        if self._store is None:
            raise ConfigurationMissingError("Account store is not configured")
        return self._store

    async def sign_in(
        self,
        email: str,
        *,
        username: str | None = None,
        preferred_language: str | None = None,
    ) -> User:
        """Restore the profile for ``email``, creating it on first sign-in."""
        store = self._require_store()
        await store.sign_in(email)
        metadata = await store.get_metadata(email)
        if metadata is None:
            language = preferred_language or self._default_language
            _require_language(language)
            metadata = await store.update_metadata(
                email,
                {
                    "username": username or email.split("@")[0],
                    "preferredLanguage": language,
                    "friends": [],
                    "friendRequests": [],
                },
            )
            logger.info("Created profile for %s", email)
        return user_from_metadata(email, metadata, self._default_language)

    def create_guest(self, username: str = "", preferred_language: str | None = None) -> User:
        preferred_language = preferred_language or self._default_language
        _require_language(preferred_language)
        guest_id = "".join(secrets.choice(_GUEST_ID_ALPHABET) for _ in range(4))
        return User(
            username=username.strip() or f"Guest-{guest_id}",
            email=f"guest-{guest_id.lower()}@{GUEST_EMAIL_DOMAIN}",
            preferred_language=preferred_language,
            is_guest=True,
        )

    async def change_language(self, user: User, code: str) -> User:
        _require_language(code)
        if user.is_guest:
            return dataclasses.replace(user, preferred_language=code)
        metadata = await self._require_store().update_metadata(
            user.email, {"preferredLanguage": code},
        )
        return user_from_metadata(user.email, metadata, self._default_language)

    async def logout(self, user: User) -> None:
        if user.is_guest:
            return
        await self._require_store().sign_out(user.email)

    async def send_friend_request(self, sync: ChatSync, user: User, recipient_email: str) -> None:
        if recipient_email == user.email:
            raise ValidationError("Cannot send a friend request to yourself")
        await sync.broadcast_system(
            SystemEvent(
                type=SystemEventType.FRIEND_REQUEST,
                sender_email=user.email,
                recipient_email=recipient_email,
                payload={"username": user.username},
            )
        )

    async def receive_friend_request(self, user: User, event: SystemEvent) -> User:
        """Record an incoming request addressed to ``user``; other events are ignored."""
        if (
            event.type != SystemEventType.FRIEND_REQUEST
            or event.recipient_email != user.email
            or event.sender_email in user.friends
            or event.sender_email in user.friend_requests
        ):
            return user
        requests = (*user.friend_requests, event.sender_email)
        return await self._save_social(user, friends=user.friends, friend_requests=requests)

    async def accept_friend_request(self, sync: ChatSync, user: User, requester_email: str) -> User:
        if requester_email not in user.friend_requests:
            raise ValidationError(f"No pending friend request from {requester_email}")
        updated = await self._save_social(
            user,
            friends=(*user.friends, requester_email),
            friend_requests=tuple(e for e in user.friend_requests if e != requester_email),
        )
        await sync.broadcast_system(
            SystemEvent(
                type=SystemEventType.FRIEND_ACCEPTED,
                sender_email=user.email,
                recipient_email=requester_email,
            )
        )
        return updated

    async def _save_social(
        self,
        user: User,
        *,
        friends: tuple[str, ...],
        friend_requests: tuple[str, ...],
    ) -> User:
        if user.is_guest:
            return dataclasses.replace(user, friends=friends, friend_requests=friend_requests)
        metadata = await self._require_store().update_metadata(
            user.email,
            {"friends": list(friends), "friendRequests": list(friend_requests)},
        )
        return user_from_metadata(user.email, metadata, self._default_language)
