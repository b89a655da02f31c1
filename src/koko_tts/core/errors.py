"""
Error Taxonomy.

Every error raised by the synthesis core derives from KokoError, which
carries a stable code and a details dict so the HTTP layer can serialize it
without knowing the concrete type.

    ConfigurationError    missing/corrupt model or voices file (fatal at startup)
    VoiceNotFound         unknown single voice name (recoverable, 400)
    InferenceFailure      model error on one chunk (aborts the request, 500)
    PhonemizationFailure  espeak error (callers fall back to empty phonemes)
    InvalidInputError     malformed request data (400)

No error in this module is retried anywhere in the core.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Stable error codes used in API responses."""
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"
    INFERENCE_FAILED = "INFERENCE_FAILED"
    PHONEMIZATION_FAILED = "PHONEMIZATION_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KokoError(Exception):
    """
    Base exception for koko errors.

    Attributes:
        message: Human-readable message.
        code: Value from ErrorCode.
        details: Extra context (chunk text, voice name, paths...).
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(KokoError):
    """Model or voices data could not be found or parsed."""

    def __init__(self, message: str, remediation: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        self.remediation = remediation

    def __str__(self) -> str:
        if self.remediation:
            return f"{self.message}\n{self.remediation}"
        return self.message


class VoiceNotFound(KokoError):
    """A single (non-blended) style name is not in the voices table."""

    def __init__(self, voice: str):
        super().__init__(
            f"voice not found in styles table: {voice}",
            ErrorCode.VOICE_NOT_FOUND,
            {"voice": voice},
        )
        self.voice = voice


class InferenceFailure(KokoError):
    """The model failed on one chunk; the whole request is aborted."""

    def __init__(self, message: str, chunk_text: str, chunk_index: int, details: Optional[Dict[str, Any]] = None):
        merged = {"chunk_text": chunk_text, "chunk_index": chunk_index}
        merged.update(details or {})
        super().__init__(message, ErrorCode.INFERENCE_FAILED, merged)
        self.chunk_text = chunk_text
        self.chunk_index = chunk_index


class PhonemizationFailure(KokoError):
    """The phonemizer rejected the text or the language."""

    def __init__(self, message: str, language: str, details: Optional[Dict[str, Any]] = None):
        merged = {"language": language}
        merged.update(details or {})
        super().__init__(message, ErrorCode.PHONEMIZATION_FAILED, merged)
        self.language = language


class InvalidInputError(KokoError):
    """Request data failed validation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)
