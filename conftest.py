"""Root conftest: applies .env.test before ``lingua_chat.config`` is imported.

Values in .env.test win over the shell environment so tests never reach a
developer's real database, Redis or translation provider.
"""
from __future__ import annotations

import os
from pathlib import Path


def _load_test_env(path: Path) -> None:
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        os.environ[key.strip()] = value.strip()


_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    _load_test_env(_env_test)
