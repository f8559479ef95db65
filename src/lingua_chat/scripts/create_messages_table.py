"""One-time script: provision the ``messages`` table and its timeline index."""
from __future__ import annotations

import asyncio
import logging

from lingua_chat.app import configure_logging
from lingua_chat.config import settings
from lingua_chat.infrastructure.db.base import Base
from lingua_chat.infrastructure.db.models import MessageModel
from lingua_chat.infrastructure.db.session import build_engine

logger = logging.getLogger(__name__)


async def create_table() -> None:
    engine = build_engine(settings)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[MessageModel.__table__])
        logger.info("Table '%s' is ready", MessageModel.__tablename__)
    finally:
        await engine.dispose()


def main() -> None:
    configure_logging()
    asyncio.run(create_table())


if __name__ == "__main__":
    main()
