"""EditorHistory: bounded undo/redo for chart text, as an immutable value."""

from __future__ import annotations

from dataclasses import dataclass, replace

MAX_HISTORY = 120


@dataclass(frozen=True)
class EditorHistory:
    """
    Chart text plus its undo and redo stacks.

    Every operation returns a new history; the stacks hold at most
    ``capacity`` entries and drop the oldest entry when full.

        history = EditorHistory("C  G\\nla la")
        history = history.apply("D  A\\nla la")
        history.undo().text  # "C  G\\nla la"
    """

    text: str = ""
    undo_stack: tuple[str, ...] = ()
    redo_stack: tuple[str, ...] = ()
    capacity: int = MAX_HISTORY

    def _bounded(self, stack: tuple[str, ...]) -> tuple[str, ...]:
        if len(stack) > self.capacity:
            return stack[len(stack) - self.capacity:]
        return stack

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def apply(self, text: str) -> EditorHistory:
        """Record an edit. Re-applying the current text is a no-op; any edit clears redo."""
        if text == self.text:
            return self
        return replace(
            self,
            text=text,
            undo_stack=self._bounded(self.undo_stack + (self.text,)),
            redo_stack=(),
        )

    def undo(self) -> EditorHistory:
        if not self.undo_stack:
            return self
        return replace(
            self,
            text=self.undo_stack[-1],
            undo_stack=self.undo_stack[:-1],
            redo_stack=self._bounded(self.redo_stack + (self.text,)),
        )

    def redo(self) -> EditorHistory:
        if not self.redo_stack:
            return self
        return replace(
            self,
            text=self.redo_stack[-1],
            undo_stack=self._bounded(self.undo_stack + (self.text,)),
            redo_stack=self.redo_stack[:-1],
        )
