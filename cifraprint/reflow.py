"""Print reflow: width-bounded wrapping of chord/lyric pairs and column pagination."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from itertools import groupby
from typing import Final

from cifraprint.sheet_models import (
    Block,
    ChordLyricPair,
    ColumnMetrics,
    PrintPage,
    PrintSettings,
    RenderLine,
)
from cifraprint.transposer import transpose_chord_line

# ── Page constants ──────────────────────────────────────────────────────────
CSS_PX_PER_INCH = 96.0
MM_PER_INCH = 25.4

#: Portrait page sizes in millimetres.
PAGE_SIZES_MM: Final[dict[str, tuple[float, float]]] = {"A4": (210.0, 297.0)}

#: Advance width of one glyph as a fraction of the font size.
MONOSPACE_PITCH: Final[dict[str, float]] = {
    "Courier New": 0.6,
    "Courier": 0.6,
    "Liberation Mono": 0.6,
    "DejaVu Sans Mono": 0.602,
    "Menlo": 0.602,
    "Consolas": 0.55,
    "JetBrains Mono": 0.6,
}
DEFAULT_PITCH = 0.6

MIN_CHARS_PER_LINE = 10


def mm_to_px(mm: float) -> float:
    return mm * CSS_PX_PER_INCH / MM_PER_INCH


# ── Metrics providers ───────────────────────────────────────────────────────

class LayoutMetricsProvider(ABC):
    """
    Abstract source of the column measurements used by the reflow engine.

    Interactive front ends may measure a live layout; batch rendering uses
    ``MonospaceMetricsProvider``.
    """

    @abstractmethod
    def measure(self, settings: PrintSettings) -> ColumnMetrics:
        """Return the column metrics for *settings*."""


class MonospaceMetricsProvider(LayoutMetricsProvider):
    """
    Computes metrics from the page size and a fixed monospace pitch table.

    All values are CSS pixels (96 per inch); the font size is taken as pixels.
    """

    def __init__(self, pitch_table: dict[str, float] | None = None) -> None:
        self.pitch_table = dict(MONOSPACE_PITCH if pitch_table is None else pitch_table)

    def measure(self, settings: PrintSettings) -> ColumnMetrics:
        width_mm, height_mm = PAGE_SIZES_MM.get(settings.page_size, PAGE_SIZES_MM["A4"])
        margin_px = mm_to_px(settings.margin_mm)
        pitch = self.pitch_table.get(settings.font_family, DEFAULT_PITCH)
        return ColumnMetrics(
            char_width_px=settings.font_size * pitch,
            content_width_px=max(0.0, mm_to_px(width_mm) - 2 * margin_px),
            column_gap_px=mm_to_px(settings.column_gap_mm),
            content_height_px=max(0.0, mm_to_px(height_mm) - 2 * margin_px),
        )


def chars_per_line(metrics: ColumnMetrics) -> int:
    """Characters that fit one of two columns, never fewer than 10."""
    if metrics.char_width_px <= 0:
        return MIN_CHARS_PER_LINE
    column_width = (metrics.content_width_px - metrics.column_gap_px) / 2
    return max(MIN_CHARS_PER_LINE, math.floor(column_width / metrics.char_width_px))


def lines_per_column(settings: PrintSettings, metrics: ColumnMetrics) -> int:
    line_px = settings.font_size * settings.line_height
    if line_px <= 0:
        return 1
    return max(1, math.floor(metrics.content_height_px / line_px))


# ── Wrapping ────────────────────────────────────────────────────────────────

def _find_break(guide: str, limit: int) -> int:
    """Last space at or before *limit*, or a hard break at *limit*."""
    cut = guide.rfind(" ", 0, limit + 1)
    return cut if cut > 0 else limit


def _leading_spaces(text: str) -> int:
    return len(text) - len(text.lstrip(" "))


def wrap_line(line: str, limit: int) -> list[str]:
    """
    Greedily wrap *line* into segments of at most *limit* characters.

    Breaks at the last space inside the window and drops the spaces that
    start the continuation; without a space the line is cut at *limit*.
    """
    limit = max(1, limit)
    segments: list[str] = []
    rest = line
    while len(rest) > limit:
        cut = _find_break(rest, limit)
        segments.append(rest[:cut])
        rest = rest[cut:].lstrip(" ")
    segments.append(rest)
    return segments


def wrap_pair(chord_line: str, lyric_line: str, limit: int) -> list[tuple[str, str]]:
    """
    Wrap a chord line and its lyric line together so their columns stay aligned.

    The line that exceeds *limit* (the lyric when both do) picks the break
    offset, which is then applied to both lines. The continuations lose the
    smaller of their leading-space counts; an exhausted line does not count.
    """
    limit = max(1, limit)
    segments: list[tuple[str, str]] = []
    chord, lyric = chord_line, lyric_line
    while len(chord) > limit or len(lyric) > limit:
        guide = lyric if len(lyric) > limit else chord
        cut = _find_break(guide, limit)
        segments.append((chord[:cut], lyric[:cut]))

        chord, lyric = chord[cut:], lyric[cut:]
        counts = [_leading_spaces(rest) for rest in (chord, lyric) if rest]
        trim = min(counts) if counts else 0
        chord, lyric = chord[trim:], lyric[trim:]
    segments.append((chord, lyric))
    return segments


# ── Reflow ──────────────────────────────────────────────────────────────────

class ReflowEngine:
    """
    Turns stanza/spacer blocks into colored print lines.

    With one column lines are emitted as they are. With two columns every
    pair is wrapped to ``chars_per_line(metrics)``; chord and lyric lines are
    wrapped jointly so chords stay above their syllables.
    """

    def __init__(self, settings: PrintSettings, metrics: ColumnMetrics) -> None:
        self.settings = settings
        self.metrics = metrics

    @property
    def wrap_width(self) -> int | None:
        if self.settings.column_count < 2:
            return None
        return chars_per_line(self.metrics)

    def _segments(self, pair: ChordLyricPair) -> list[tuple[str | None, str]]:
        settings = self.settings
        width = self.wrap_width

        if not settings.show_chords:
            if width is None:
                return [(None, pair.lyric_line)]
            return [(None, segment) for segment in wrap_line(pair.lyric_line, width)]

        chord = transpose_chord_line(pair.chord_line, settings.transpose, settings.prefer_flats)
        if width is None or (len(chord) <= width and len(pair.lyric_line) <= width):
            return [(chord, pair.lyric_line)]
        return list(wrap_pair(chord, pair.lyric_line, width))

    def reflow(self, blocks: Sequence[Block]) -> list[RenderLine]:
        """
        Produce the renderable lines for *blocks*, in order.

        Every line carries its block index and the block's keep-together flag.
        """
        settings = self.settings
        output: list[RenderLine] = []
        for block_index, block in enumerate(blocks):
            for pair in block.pairs:
                for chord, lyric in self._segments(pair):
                    if chord is not None:
                        output.append(
                            RenderLine(
                                text=chord,
                                color=settings.chord_color,
                                kind="chord",
                                block_index=block_index,
                                keep_together=block.keep_together,
                            )
                        )
                    output.append(
                        RenderLine(
                            text=lyric,
                            color=settings.text_color,
                            kind="lyric",
                            block_index=block_index,
                            keep_together=block.keep_together,
                        )
                    )
        return output


# ── Pagination ──────────────────────────────────────────────────────────────

class _Paginator:
    """Fills columns left to right, then pages, with a fixed line capacity."""

    def __init__(self, lines_per_column: int, column_count: int, first_page_reserved: int) -> None:
        self.lines_per_column = max(1, lines_per_column)
        self.column_count = max(1, column_count)
        self.first_page_capacity = max(1, self.lines_per_column - max(0, first_page_reserved))
        self.pages: list[PrintPage] = [PrintPage(columns=[[]])]

    @property
    def column(self) -> list[RenderLine]:
        return self.pages[-1].columns[-1]

    def remaining(self) -> int:
        capacity = self.first_page_capacity if len(self.pages) == 1 else self.lines_per_column
        return capacity - len(self.column)

    def advance(self) -> None:
        page = self.pages[-1]
        if len(page.columns) < self.column_count:
            page.columns.append([])
        else:
            self.pages.append(PrintPage(columns=[[]]))

    def place(self, line: RenderLine) -> None:
        if self.remaining() <= 0:
            self.advance()
        self.column.append(line)

    def place_block(self, run: list[RenderLine]) -> None:
        if run[0].keep_together:
            if len(run) > self.remaining() and self.column:
                self.advance()
            # A stanza taller than a whole column still has to spill over.
            for line in run:
                self.place(line)
            return

        for line in run:
            # Spacer lines never open a column and never lead one.
            if self.column and self.remaining() > 0:
                self.column.append(line)


def paginate(
    lines: Sequence[RenderLine],
    lines_per_column: int,
    column_count: int = 1,
    first_page_reserved: int = 0,
) -> list[PrintPage]:
    """
    Distribute render lines over columns and pages.

    A keep-together block that does not fit the remaining space of the
    current column moves to the next column (or page). Spacer lines are
    dropped where they would start a column.

    Args:
        lines:               Output of ``ReflowEngine.reflow``.
        lines_per_column:    Line capacity of one column.
        column_count:        Columns per page.
        first_page_reserved: Lines taken by the header on the first page.
    """
    paginator = _Paginator(lines_per_column, column_count, first_page_reserved)
    for _, run in groupby(lines, key=lambda line: line.block_index):
        paginator.place_block(list(run))
    return paginator.pages
