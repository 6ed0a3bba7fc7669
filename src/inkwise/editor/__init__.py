"""Editor-facing protocols and the in-memory text buffer."""

from .protocols import CursorPosition, EditorPort
from .text_buffer import TextBufferEditor

__all__ = ["CursorPosition", "EditorPort", "TextBufferEditor"]
