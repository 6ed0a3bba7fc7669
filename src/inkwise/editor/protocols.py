"""Editor capabilities consumed by the suggestion lifecycles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class CursorPosition:
    """Zero-based line and column (``ch``) inside the document."""

    line: int
    ch: int


@runtime_checkable
class EditorPort(Protocol):
    """Minimal surface of a text editor widget.

    Offsets are flat character offsets into :meth:`get_value`. Implementations
    clamp out-of-range positions instead of raising.
    """

    def get_value(self) -> str:
        ...

    def set_value(self, text: str) -> None:
        ...

    def get_cursor(self) -> CursorPosition:
        ...

    def set_cursor(self, position: CursorPosition) -> None:
        ...

    def get_line(self, line: int) -> str:
        ...

    def pos_to_offset(self, position: CursorPosition) -> int:
        ...

    def offset_to_pos(self, offset: int) -> CursorPosition:
        ...

    def get_range(self, start: CursorPosition, end: CursorPosition) -> str:
        ...

    def replace_range(self, text: str, start: CursorPosition, end: CursorPosition | None = None) -> None:
        ...

    def get_selection(self) -> str:
        ...

    def selection_start(self) -> CursorPosition:
        ...

    def replace_selection(self, text: str) -> None:
        ...


__all__ = ["CursorPosition", "EditorPort"]
