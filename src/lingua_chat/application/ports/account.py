from __future__ import annotations

from typing import Any, Protocol


class AccountStore(Protocol):
    async def sign_in(self, email: str) -> None: ...

    async def sign_out(self, email: str) -> None: ...

    async def get_metadata(self, email: str) -> dict[str, Any] | None: ...

    async def update_metadata(self, email: str, updates: dict[str, Any]) -> dict[str, Any]: ...
