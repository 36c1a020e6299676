"""Unit tests for print reflow: wrapping, metrics and column pagination."""

import pytest

from cifraprint.chart_builder import chart_blocks
from cifraprint.reflow import (
    MonospaceMetricsProvider,
    ReflowEngine,
    chars_per_line,
    lines_per_column,
    paginate,
    wrap_line,
    wrap_pair,
)
from cifraprint.sheet_models import ColumnMetrics, PrintSettings, RenderLine


def _metrics(chars: int = 20) -> ColumnMetrics:
    """Metrics giving exactly *chars* characters per column at 10px a glyph."""
    return ColumnMetrics(
        char_width_px=10.0,
        content_width_px=chars * 20.0,
        column_gap_px=0.0,
        content_height_px=1000.0,
    )


def _lines(block_index: int, count: int, keep_together: bool = True) -> list[RenderLine]:
    return [
        RenderLine(
            text=f"b{block_index}-{i}",
            color="#000",
            kind="lyric",
            block_index=block_index,
            keep_together=keep_together,
        )
        for i in range(count)
    ]


def _column_texts(column: list[RenderLine]) -> list[str]:
    return [line.text for line in column]


def _assert_reassembles(original: str, segments: list[str]) -> None:
    """Segments appear in order in *original*, separated only by dropped spaces."""
    pos = 0
    for segment in segments:
        while not original.startswith(segment, pos):
            assert original[pos] == " "
            pos += 1
        pos += len(segment)
    assert original[pos:].strip() == ""


# ── wrap_line ───────────────────────────────────────────────────────────────

def test_wrap_line_breaks_at_last_space() -> None:
    assert wrap_line("the quick brown fox", 10) == ["the quick", "brown fox"]


def test_wrap_line_hard_breaks_long_words() -> None:
    assert wrap_line("abcdefghijklmno", 10) == ["abcdefghij", "klmno"]


def test_wrap_line_short_line_is_untouched() -> None:
    assert wrap_line("short", 10) == ["short"]
    assert wrap_line("", 10) == [""]


@pytest.mark.parametrize("limit", [10, 13, 25])
def test_wrap_line_segments_fit_and_reassemble(limit: int) -> None:
    text = "Quando olhei a terra ardendo   qual fogueira de São João eu perguntei"
    segments = wrap_line(text, limit)
    assert all(len(segment) <= limit for segment in segments)
    _assert_reassembles(text, segments)


# ── wrap_pair ───────────────────────────────────────────────────────────────

def test_wrap_pair_keeps_chords_over_syllables() -> None:
    segments = wrap_pair("G       D", "Hello there friend", 10)
    assert segments == [("G    ", "Hello"), ("  D", "there"), ("", "friend")]


def test_wrap_pair_short_pair_is_untouched() -> None:
    assert wrap_pair("C", "la la", 10) == [("C", "la la")]


def test_wrap_pair_chord_line_guides_when_lyric_fits() -> None:
    segments = wrap_pair("C    G    Am   F    C", "la", 10)
    assert segments[0] == ("C    G   ", "la")
    assert segments[-1] == ("C", "")
    assert all(len(chord) <= 10 and len(lyric) <= 10 for chord, lyric in segments)


def test_wrap_pair_segments_fit_limit() -> None:
    chord = "G               D               Em          C"
    lyric = "Quando olhei a terra ardendo qual fogueira de São João"
    segments = wrap_pair(chord, lyric, 20)
    assert all(len(c) <= 20 and len(l) <= 20 for c, l in segments)
    _assert_reassembles(lyric, [l for _, l in segments if l])


# ── metrics ─────────────────────────────────────────────────────────────────

def test_monospace_metrics_for_defaults() -> None:
    settings = PrintSettings()
    metrics = MonospaceMetricsProvider().measure(settings)
    assert metrics.char_width_px == pytest.approx(9.0)
    assert chars_per_line(metrics) == 37
    assert lines_per_column(settings, metrics) == 47


def test_unknown_font_uses_default_pitch() -> None:
    metrics = MonospaceMetricsProvider().measure(PrintSettings(font_family="Whatever Mono", font_size=20))
    assert metrics.char_width_px == pytest.approx(12.0)


def test_chars_per_line_has_a_floor() -> None:
    narrow = ColumnMetrics(char_width_px=50.0, content_width_px=300.0, column_gap_px=0.0, content_height_px=100.0)
    assert chars_per_line(narrow) == 10


# ── ReflowEngine ────────────────────────────────────────────────────────────

def test_single_column_emits_pairs_unwrapped() -> None:
    settings = PrintSettings(transpose=2)
    blocks = chart_blocks("C       G\nQuando olhei a terra ardendo qual fogueira de São João")
    lines = ReflowEngine(settings, _metrics(10)).reflow(blocks)
    assert [(line.kind, line.text) for line in lines] == [
        ("chord", "D       A"),
        ("lyric", "Quando olhei a terra ardendo qual fogueira de São João"),
    ]
    assert lines[0].color == settings.chord_color
    assert lines[1].color == settings.text_color


def test_two_columns_wrap_pairs_jointly() -> None:
    settings = PrintSettings(column_count=2)
    blocks = chart_blocks("G       D\nHello there friend")
    lines = ReflowEngine(settings, _metrics(10)).reflow(blocks)
    assert [line.text for line in lines] == ["G    ", "Hello", "  D", "there", "", "friend"]
    assert [line.kind for line in lines] == ["chord", "lyric"] * 3


def test_hidden_chords_emit_lyrics_only() -> None:
    settings = PrintSettings(column_count=2, show_chords=False)
    blocks = chart_blocks("G       D\nthe quick brown fox")
    lines = ReflowEngine(settings, _metrics(10)).reflow(blocks)
    assert [line.text for line in lines] == ["the quick", "brown fox"]
    assert all(line.kind == "lyric" for line in lines)


def test_lines_carry_block_constraints() -> None:
    blocks = chart_blocks("C\nla\n\n\nG\nle")
    lines = ReflowEngine(PrintSettings(), _metrics()).reflow(blocks)
    assert [line.block_index for line in lines] == [0, 0, 1, 1, 2, 2]
    assert [line.keep_together for line in lines] == [True, True, False, False, True, True]


# ── paginate ────────────────────────────────────────────────────────────────

def test_stanza_that_does_not_fit_moves_to_next_column() -> None:
    lines = _lines(0, 3) + _lines(1, 1, keep_together=False) + _lines(2, 3)
    pages = paginate(lines, lines_per_column=5, column_count=2)
    assert len(pages) == 1
    first, second = pages[0].columns
    assert _column_texts(first) == ["b0-0", "b0-1", "b0-2", "b1-0"]
    assert _column_texts(second) == ["b2-0", "b2-1", "b2-2"]


def test_stanza_moves_to_next_page_in_single_column() -> None:
    lines = _lines(0, 4) + _lines(1, 3)
    pages = paginate(lines, lines_per_column=5)
    assert [_column_texts(page.columns[0]) for page in pages] == [
        ["b0-0", "b0-1", "b0-2", "b0-3"],
        ["b1-0", "b1-1", "b1-2"],
    ]


def test_oversized_stanza_spills_over_columns() -> None:
    pages = paginate(_lines(0, 5), lines_per_column=2)
    assert [len(page.columns[0]) for page in pages] == [2, 2, 1]


def test_spacer_lines_never_lead_a_column() -> None:
    lines = _lines(0, 3) + _lines(1, 2, keep_together=False) + _lines(2, 1)
    pages = paginate(lines, lines_per_column=3)
    assert [_column_texts(page.columns[0]) for page in pages] == [
        ["b0-0", "b0-1", "b0-2"],
        ["b2-0"],
    ]


def test_first_page_reserves_header_lines() -> None:
    pages = paginate(_lines(0, 2) + _lines(1, 2), lines_per_column=5, first_page_reserved=3)
    assert [_column_texts(page.columns[0]) for page in pages] == [
        ["b0-0", "b0-1"],
        ["b1-0", "b1-1"],
    ]


def test_paginate_empty_input() -> None:
    pages = paginate([], lines_per_column=5)
    assert len(pages) == 1
    assert pages[0].columns == [[]]
