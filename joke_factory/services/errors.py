from __future__ import annotations

from typing import Any, Dict, Optional


class GameError(Exception):
    """Base class for every rejection the game engine reports to a caller."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationFailed(GameError):
    status_code = 400


class Conflict(GameError):
    status_code = 409


class Forbidden(GameError):
    status_code = 403


class NotFound(GameError):
    status_code = 404


class Unauthorized(GameError):
    status_code = 401


class SessionLost(Unauthorized):
    """The caller's identity is missing or no longer known; the client must re-join."""


def invalid_request(message: str, **details: Any) -> ValidationFailed:
    return ValidationFailed("INVALID_REQUEST", message, details)


def forbidden(message: str = "You are not allowed to perform this action.") -> Forbidden:
    return Forbidden("FORBIDDEN", message)


def not_found(what: str, **details: Any) -> NotFound:
    return NotFound("NOT_FOUND", f"{what} not found.", details)
