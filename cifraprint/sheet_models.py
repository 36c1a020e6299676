"""Data models shared by reconstruction, chart building and print layout."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal

BlockKind = Literal["stanza", "spacer"]
LineKind = Literal["chord", "lyric"]

DEFAULT_TUNING = "E A D G B E"
CUSTOM_TUNING = "custom"


@dataclass(frozen=True)
class PositionedFragment:
    """
    A run of text extracted from a document page at a known position.

    ``y_baseline`` is measured bottom-up from the page's lower edge, the way
    PDF user space reports it.
    """

    page: int
    text: str
    x: float
    y_baseline: float
    font_size: float
    width: float


@dataclass(frozen=True)
class LogicalLine:
    """A reconstructed line of plain text, ordered by ``order_index`` within its page."""

    page: int
    order_index: float
    text: str
    is_page_break: bool = False

    @property
    def key(self) -> tuple[int, float]:
        return (self.page, self.order_index)

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class ChordLyricPair:
    """One chord line bound to the lyric line immediately below it."""

    index: int
    chord_line: str
    lyric_line: str

    @property
    def is_separator(self) -> bool:
        return not self.chord_line.strip() and not self.lyric_line.strip()


@dataclass(frozen=True)
class Block:
    """A maximal run of stanza pairs or of separator (spacer) pairs."""

    kind: BlockKind
    pairs: tuple[ChordLyricPair, ...]

    @property
    def keep_together(self) -> bool:
        """Stanzas must not be split across a column or page break."""
        return self.kind == "stanza"


@dataclass(frozen=True)
class SongMeta:
    """Descriptive song metadata. Every field is optional and independently overwritable."""

    title: str = ""
    artist: str = ""
    composers: str = ""
    key: str = ""
    capo: int = 0
    tuning: str = DEFAULT_TUNING
    custom_tuning: str = ""
    tag: str = ""

    def merged(self, updates: Mapping[str, Any]) -> SongMeta:
        """Return a copy with the known, non-empty fields of *updates* applied."""
        known = {f.name for f in fields(self)}
        changes = {
            name: value
            for name, value in updates.items()
            if name in known and value not in (None, "")
        }
        return replace(self, **changes)

    @property
    def tuning_label(self) -> str:
        if self.tuning == CUSTOM_TUNING:
            return self.custom_tuning or "Custom"
        return self.tuning


@dataclass(frozen=True)
class PrintSettings:
    """Print-time presentation options for an A4 chord sheet."""

    page_size: Literal["A4"] = "A4"
    text_color: str = "#1e1a16"
    chord_color: str = "#9b4d1c"
    font_size: int = 15
    line_height: float = 1.45
    margin_mm: float = 12.0
    column_count: int = 1
    column_gap_mm: float = 8.0
    show_metadata: bool = True
    show_chords: bool = True
    transpose: int = 0
    prefer_flats: bool = False
    capo: int = 0
    font_family: str = "Courier New"


@dataclass(frozen=True)
class ColumnMetrics:
    """Pixel measurements the reflow engine needs for width-bounded wrapping."""

    char_width_px: float
    content_width_px: float
    column_gap_px: float
    content_height_px: float


@dataclass(frozen=True)
class RenderLine:
    """A single printable line with its color and its block's split constraint."""

    text: str
    color: str
    kind: LineKind
    block_index: int
    keep_together: bool


@dataclass
class PrintPage:
    """One printed page: a list of columns, each a list of lines."""

    columns: list[list[RenderLine]] = field(default_factory=list)


@dataclass(frozen=True)
class SheetHeader:
    """Title block printed above the first page's columns."""

    title: str
    artist: str = ""
    composers: str = ""
    details: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class SheetDocument:
    """Neutral, fully laid-out sheet consumed by the renderers."""

    header: SheetHeader
    pages: list[PrintPage]
    settings: PrintSettings
    column_width_chars: int | None = None
