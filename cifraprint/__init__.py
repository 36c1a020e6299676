"""cifraprint: chord-over-lyric sheet reconstruction, transposition and print layout.

Chart editors keep their undo/redo state in ``EditorHistory``; the CLI works
on whole project files and does not use it.
"""

from cifraprint.editor_history import EditorHistory

__version__ = "0.1.0"

__all__ = ["EditorHistory", "__version__"]
