from typing import Any, Optional


class ApiError(Exception):
    """A failed backend call: transport failure or an error reported in the payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        return self.message


def extract_error_message(payload: Any, fallback: str) -> str:
    """Pull the backend's message out of a ``{data, error}`` envelope.

    Handles both ``{"error": {"message": ...}}`` and ``{"error": "..."}``.
    """

    if not isinstance(payload, dict):
        return fallback
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    elif isinstance(error, str) and error.strip():
        return error.strip()
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return fallback
