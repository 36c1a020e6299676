"""Chart builder: pairs chord/lyric lines and segments them into stanza and spacer blocks."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from cifraprint.chord_grammar import is_chord_line, is_tag_line
from cifraprint.sheet_models import Block, BlockKind, ChordLyricPair, LogicalLine

_LINE_BREAK = re.compile(r"\r?\n")


def chart_text_to_lines(chart_text: str) -> list[str]:
    """Split chart text into physical lines (``\\n`` or ``\\r\\n``)."""
    return _LINE_BREAK.split(chart_text)


def build_chart_text(raw_lyrics: str) -> str:
    """
    Interleave an empty chord line above every raw lyric line.

    ``"a\\nb"`` becomes ``"\\na\\n\\nb"``, ready for chords to be typed in.
    """
    return "\n".join(part for line in chart_text_to_lines(raw_lyrics) for part in ("", line))


# ----------------------------------------------------------------------
# Fixed cadence pairing and block segmentation
# ----------------------------------------------------------------------

def pair_lines(lines: Sequence[str]) -> list[ChordLyricPair]:
    """
    Pair lines two at a time: chord line first, lyric line second.

    An odd trailing line becomes a chord line with an empty lyric.
    """
    pairs: list[ChordLyricPair] = []
    for index in range(0, len(lines), 2):
        lyric = lines[index + 1] if index + 1 < len(lines) else ""
        pairs.append(ChordLyricPair(index=index, chord_line=lines[index], lyric_line=lyric))
    return pairs


def segment_blocks(pairs: Iterable[ChordLyricPair]) -> list[Block]:
    """
    Partition *pairs* into maximal stanza runs and separator (spacer) runs.

    Stanzas are non-splittable for pagination; spacers may be split.
    """
    blocks: list[Block] = []
    stanza: list[ChordLyricPair] = []
    spacer: list[ChordLyricPair] = []

    def flush(kind: BlockKind, pending: list[ChordLyricPair]) -> None:
        if pending:
            blocks.append(Block(kind=kind, pairs=tuple(pending)))
            pending.clear()

    for pair in pairs:
        if pair.is_separator:
            flush("stanza", stanza)
            spacer.append(pair)
        else:
            flush("spacer", spacer)
            stanza.append(pair)

    flush("stanza", stanza)
    flush("spacer", spacer)
    return blocks


def chart_blocks(chart_text: str) -> list[Block]:
    """Pair and segment user-edited chart text."""
    return segment_blocks(pair_lines(chart_text_to_lines(chart_text)))


# ----------------------------------------------------------------------
# Import-time classification
# ----------------------------------------------------------------------

def classify_lines(lines: Iterable[LogicalLine]) -> list[ChordLyricPair]:
    """
    Turn reconstructed lines into chord/lyric pairs by guessing each line's role.

    Blank lines and page breaks become separator pairs. ``[Tag]`` lines sit on
    the chord row of their own pair. A chord line waits for the lyric line that
    follows it; a lyric line without a preceding chord line gets an empty one.
    The guesses may be wrong; the chart stays editable.
    """
    pairs: list[ChordLyricPair] = []
    pending_chord: str | None = None

    def emit(chord: str, lyric: str) -> None:
        pairs.append(ChordLyricPair(index=len(pairs) * 2, chord_line=chord, lyric_line=lyric))

    def flush_pending() -> None:
        nonlocal pending_chord
        if pending_chord is not None:
            emit(pending_chord, "")
            pending_chord = None

    for line in lines:
        text = line.text.rstrip(" \t")
        if line.is_page_break or not text.strip():
            flush_pending()
            emit("", "")
            continue

        if is_tag_line(text):
            flush_pending()
            emit(text, "")
            continue

        if is_chord_line(text):
            flush_pending()
            pending_chord = text
            continue

        if pending_chord is not None:
            emit(pending_chord, text)
            pending_chord = None
            continue

        emit("", text)

    flush_pending()
    return pairs


def trim_empty_pairs(pairs: Sequence[ChordLyricPair]) -> list[ChordLyricPair]:
    """Drop separator pairs from both ends."""
    start = 0
    while start < len(pairs) and pairs[start].is_separator:
        start += 1
    end = len(pairs)
    while end > start and pairs[end - 1].is_separator:
        end -= 1
    return list(pairs[start:end])


def pairs_to_chart_text(pairs: Sequence[ChordLyricPair]) -> str:
    """Write pairs back as alternating chord/lyric lines, without blank edges."""
    return "\n".join(
        line
        for pair in trim_empty_pairs(pairs)
        for line in (pair.chord_line, pair.lyric_line)
    )
