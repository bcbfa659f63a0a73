from __future__ import annotations

from enum import StrEnum
from typing import Any


class MediaErrorCode(StrEnum):
    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    PROBE_FAILED = "PROBE_FAILED"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UNSUPPORTED_FORMAT_FOR_PLATFORM = "UNSUPPORTED_FORMAT_FOR_PLATFORM"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    POST_CONVERSION_ERROR = "POST_CONVERSION_ERROR"
    INVALID_TIMESTAMPS = "INVALID_TIMESTAMPS"
    REPLAY_NOT_FOUND = "REPLAY_NOT_FOUND"


class VideoConversionError(RuntimeError):
    def __init__(self, message: str, code: MediaErrorCode, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.args[0]}"


class InvalidTransitionError(ValueError):
    pass
