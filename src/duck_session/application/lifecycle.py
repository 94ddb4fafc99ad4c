"""Release-once bookkeeping shared by every session resource."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from duck_session.domain.errors import ResourceMisuseError


class Resource(ABC):
    """Base class for handles that must be released exactly once.

    Using a resource after close(), or closing it twice, raises
    ResourceMisuseError. Leaving a ``with`` block closes the resource
    unless it was already closed explicitly inside the block.
    """

    _kind = "resource"

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def close(self) -> None:
        """Release the resource."""
        pass

    def _ensure_open(self) -> None:
        if self._closed:
            raise ResourceMisuseError(f"{self._kind} is closed")

    def _mark_closed(self) -> None:
        if self._closed:
            raise ResourceMisuseError(f"{self._kind} is already closed")
        self._closed = True

    def __enter__(self) -> Any:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._closed:
            self.close()
