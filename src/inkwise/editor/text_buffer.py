"""In-memory :class:`~inkwise.editor.protocols.EditorPort` implementation.

Used by the CLI to run the lifecycles over plain files and by the test-suite
as a stand-in for a real editor widget.
"""

from __future__ import annotations

import bisect

from .protocols import CursorPosition


class TextBufferEditor:
    """Plain-string document with a cursor and a selection.

    The selection is an ``(anchor, head)`` pair of offsets; the cursor is the
    head.
    """

    def __init__(self, text: str = "", *, cursor: int | None = None) -> None:
        self._text = text
        self._line_starts = self._compute_line_starts(text)
        head = len(text) if cursor is None else self._clamp(cursor)
        self._anchor = head
        self._head = head

    # ------------------------------------------------------------------
    # EditorPort
    # ------------------------------------------------------------------
    def get_value(self) -> str:
        return self._text

    def set_value(self, text: str) -> None:
        self._apply(0, len(self._text), text)
        self._anchor = self._head = self._clamp(self._head)

    def get_cursor(self) -> CursorPosition:
        return self.offset_to_pos(self._head)

    def set_cursor(self, position: CursorPosition) -> None:
        offset = self.pos_to_offset(position)
        self._anchor = self._head = offset

    def get_line(self, line: int) -> str:
        if line < 0 or line >= len(self._line_starts):
            return ""
        start = self._line_starts[line]
        end = self._line_starts[line + 1] - 1 if line + 1 < len(self._line_starts) else len(self._text)
        return self._text[start:end]

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def pos_to_offset(self, position: CursorPosition) -> int:
        line = max(0, min(position.line, len(self._line_starts) - 1))
        ch = max(0, min(position.ch, len(self.get_line(line))))
        return self._line_starts[line] + ch

    def offset_to_pos(self, offset: int) -> CursorPosition:
        offset = self._clamp(offset)
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return CursorPosition(line=line, ch=offset - self._line_starts[line])

    def get_range(self, start: CursorPosition, end: CursorPosition) -> str:
        first, last = sorted((self.pos_to_offset(start), self.pos_to_offset(end)))
        return self._text[first:last]

    def replace_range(self, text: str, start: CursorPosition, end: CursorPosition | None = None) -> None:
        first = self.pos_to_offset(start)
        last = self.pos_to_offset(end) if end is not None else first
        first, last = sorted((first, last))
        self._apply(first, last, text)

    def get_selection(self) -> str:
        first, last = self.selection_span()
        return self._text[first:last]

    def selection_start(self) -> CursorPosition:
        return self.offset_to_pos(self.selection_span()[0])

    def replace_selection(self, text: str) -> None:
        first, last = self.selection_span()
        self._apply(first, last, text)
        self._anchor = self._head = first + len(text)

    # ------------------------------------------------------------------
    # Offset helpers
    # ------------------------------------------------------------------
    def cursor_offset(self) -> int:
        return self._head

    def set_cursor_offset(self, offset: int) -> None:
        self._anchor = self._head = self._clamp(offset)

    def select(self, start: int, end: int) -> None:
        self._anchor = self._clamp(start)
        self._head = self._clamp(end)

    def selection_span(self) -> tuple[int, int]:
        return (min(self._anchor, self._head), max(self._anchor, self._head))

    def insert_at_cursor(self, text: str) -> None:
        """Type ``text`` at the cursor, replacing any selection."""

        self.replace_selection(text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _apply(self, start: int, end: int, replacement: str) -> None:
        self._text = self._text[:start] + replacement + self._text[end:]
        self._line_starts = self._compute_line_starts(self._text)
        delta = len(replacement) - (end - start)
        # Keep the caret after the edited range when the edit happened before it.
        if self._head >= end:
            self._head += delta
        elif self._head > start:
            self._head = start + len(replacement)
        if self._anchor >= end:
            self._anchor += delta
        elif self._anchor > start:
            self._anchor = start + len(replacement)
        self._anchor = self._clamp(self._anchor)
        self._head = self._clamp(self._head)

    def _clamp(self, offset: int) -> int:
        return max(0, min(int(offset), len(self._text)))

    @staticmethod
    def _compute_line_starts(text: str) -> list[int]:
        starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                starts.append(index + 1)
        return starts


__all__ = ["ChangeListener", "TextBufferEditor"]
