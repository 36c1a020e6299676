"""Unit tests for SheetExporter layout and rendering (no PDF input needed)."""

from dataclasses import replace
from pathlib import Path

import pytest

from cifraprint.project_state import ProjectState
from cifraprint.sheet_exporter import SheetExporter
from cifraprint.sheet_models import PrintSettings, SongMeta


def _sample_state(**settings: object) -> ProjectState:
    return ProjectState(
        step=3,
        song_meta=SongMeta(title="Asa Branca", artist="Luiz Gonzaga", key="G"),
        chart_text="G       C\nQuando olhei a terra ardendo\n\n\nD     G\nEu perguntei a Deus do céu",
        print_settings=PrintSettings(**settings),
    )


def _long_state(stanzas: int) -> ProjectState:
    chart = "\n\n\n".join("C   G\nla la la" for _ in range(stanzas))
    return replace(_sample_state(), chart_text=chart)


def test_unsupported_format_raises() -> None:
    with pytest.raises(ValueError, match="Unsupported output format"):
        SheetExporter(output_format="pdf")


def test_format_is_case_insensitive() -> None:
    assert SheetExporter(output_format=" TXT ").output_format == "txt"


def test_html_contains_title_and_chart() -> None:
    html = SheetExporter().render(_sample_state())
    assert "<title>Asa Branca</title>" in html
    assert "G       C" in html
    assert "Eu perguntei a Deus do céu" in html


def test_transposition_applies_to_chords_and_key() -> None:
    text = SheetExporter(output_format="txt").render(_sample_state(transpose=2))
    assert "A       D" in text
    assert "Tom: A" in text
    assert "Transposição: +1 tom" in text


def test_capo_detail() -> None:
    text = SheetExporter(output_format="txt").render(_sample_state(capo=3))
    assert "Capotraste: Traste 3" in text
    assert "Capotraste: Não" in SheetExporter(output_format="txt").render(_sample_state())


def test_hidden_metadata_omits_details() -> None:
    text = SheetExporter(output_format="txt").render(_sample_state(show_metadata=False))
    assert "Tom:" not in text
    assert text.startswith("Asa Branca\nLuiz Gonzaga\n")


def test_hidden_chords_omit_chord_lines() -> None:
    text = SheetExporter(output_format="txt").render(_sample_state(show_chords=False))
    assert "G       C" not in text
    assert "Quando olhei a terra ardendo" in text


def test_single_column_layout() -> None:
    document = SheetExporter().layout(_sample_state())
    assert len(document.pages) == 1
    assert len(document.pages[0].columns) == 1
    assert document.column_width_chars is None


def test_two_column_layout_reports_column_width() -> None:
    document = SheetExporter().layout(_sample_state(column_count=2))
    assert document.column_width_chars == 37


def test_long_chart_spans_pages_without_splitting_stanzas() -> None:
    document = SheetExporter().layout(_long_state(40))
    assert len(document.pages) > 1
    for page in document.pages:
        for column in page.columns:
            stanza_lines = [line for line in column if line.keep_together]
            assert len(stanza_lines) % 2 == 0
            assert column[0].keep_together


def test_long_chart_text_has_form_feeds() -> None:
    text = SheetExporter(output_format="txt").render(_long_state(40))
    assert "\f" in text


def test_export_writes_file(tmp_path: Path) -> None:
    output = tmp_path / "asa.html"
    SheetExporter().export(_sample_state(), str(output))
    assert output.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
