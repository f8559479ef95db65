from __future__ import annotations

from lingua_chat.domain.value_objects.enums import ErrorKind


class AppError(Exception):
    """Base application error."""

    kind: ErrorKind = ErrorKind.BACKEND_UNAVAILABLE

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class BackendUnavailableError(AppError):
    kind = ErrorKind.BACKEND_UNAVAILABLE


class SchemaMissingError(AppError):
    kind = ErrorKind.SCHEMA_MISSING


class WriteRejectedError(AppError):
    kind = ErrorKind.WRITE_REJECTED


class TranslationFailedError(AppError):
    kind = ErrorKind.TRANSLATION_FAILED


class ConfigurationMissingError(AppError):
    kind = ErrorKind.CONFIGURATION_MISSING


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
