# ============================================================
# nlql - Natural Language SQL Terminal
# core/buffer.py - Single-line/multi-line text field with cursor
# ============================================================

from dataclasses import dataclass


@dataclass
class TextBuffer:
    """
    Editable text plus a cursor index into it. Every edit clamps
    the cursor to [0, len(text)], so calls on an empty buffer are
    harmless no-ops.
    """
    text: str = ""
    cursor: int = 0

    def __post_init__(self):
        self._clamp()

    def _clamp(self):
        self.cursor = max(0, min(self.cursor, len(self.text)))

    # ── Editing ───────────────────────────────────────────────

    def insert(self, chars: str):
        self._clamp()
        self.text = self.text[: self.cursor] + chars + self.text[self.cursor:]
        self.cursor += len(chars)

    def backspace(self):
        self._clamp()
        if self.cursor > 0:
            self.text = self.text[: self.cursor - 1] + self.text[self.cursor:]
            self.cursor -= 1

    def delete(self):
        self._clamp()
        if self.cursor < len(self.text):
            self.text = self.text[: self.cursor] + self.text[self.cursor + 1:]

    def clear(self):
        self.text = ""
        self.cursor = 0

    def set(self, text: str):
        """Replace the contents and park the cursor at the end."""
        self.text = text
        self.cursor = len(text)

    # ── Movement ──────────────────────────────────────────────

    def left(self):
        self.cursor = max(0, min(self.cursor, len(self.text)) - 1)

    def right(self):
        self.cursor = min(len(self.text), self.cursor + 1)

    def home(self):
        self.cursor = 0

    def end(self):
        self.cursor = len(self.text)

    # ── Queries ───────────────────────────────────────────────

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def __len__(self):
        return len(self.text)

    def __str__(self):
        return self.text
