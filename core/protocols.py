"""Shared protocol definitions."""

from typing import Protocol


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard)."""

    def log_forward(
        self,
        identifier: str,
        verb: str,
        uri: str,
        status: int,
    ) -> None: ...
    def log_not_found(self, identifier: str) -> None: ...
    def log_error(self, identifier: str, status: int, message: str) -> None: ...
