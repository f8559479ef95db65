from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    BACKEND_UNAVAILABLE = "backend_unavailable"
    SCHEMA_MISSING = "schema_missing"
    WRITE_REJECTED = "write_rejected"
    TRANSLATION_FAILED = "translation_failed"
    CONFIGURATION_MISSING = "configuration_missing"
    VALIDATION = "validation"


class Admission(StrEnum):
    """Outcome of admitting a live message into a room timeline."""

    INSERTED = "inserted"
    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"


class SystemEventType(StrEnum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
