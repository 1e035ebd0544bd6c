"""Exception hierarchy shared by the project model and patch pipeline."""

from __future__ import annotations

__all__ = [
    "AtelierError",
    "NotFoundError",
    "InvalidOperationError",
    "DuplicatePathError",
    "ParseError",
]


class AtelierError(RuntimeError):
    """Base class for errors raised by the project, session, and patch layers."""

    def __init__(self, message: str, *, path: str | None = None, reason: str = "error") -> None:
        super().__init__(message)
        self.path = path
        self.reason = reason

    def details(self) -> dict[str, str | None]:
        return {
            "reason": self.reason,
            "path": self.path,
            "message": str(self),
        }


class NotFoundError(AtelierError):
    """Raised when a path or tab that must exist is absent."""

    def __init__(self, message: str, *, path: str | None = None, reason: str = "not_found") -> None:
        super().__init__(message, path=path, reason=reason)


class InvalidOperationError(AtelierError):
    """Raised when an operation does not apply to the targeted node."""

    def __init__(self, message: str, *, path: str | None = None, reason: str = "invalid_operation") -> None:
        super().__init__(message, path=path, reason=reason)


class DuplicatePathError(InvalidOperationError):
    """Raised when inserting a node whose path is already taken."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path already exists: {path}", path=path, reason="duplicate_path")


class ParseError(AtelierError):
    """Raised by the directive scanner for a malformed block.

    The extractor catches these internally and only reports a skip count.
    """

    def __init__(self, message: str, *, offset: int = 0, reason: str = "malformed_block") -> None:
        super().__init__(message, reason=reason)
        self.offset = offset
