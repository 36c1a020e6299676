"""Tests for the click command line, driven through CliRunner."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from cifraprint import __version__
from cifraprint.cli import main
from cifraprint.project_state import ProjectState, load_state, save_state
from cifraprint.sheet_models import SongMeta


def _sample_project(tmp_path: Path, chart_text: str = "G       C\nQuando olhei a terra ardendo") -> Path:
    path = tmp_path / "asa.json"
    state = ProjectState(
        step=2,
        song_meta=SongMeta(title="Asa Branca", artist="Luiz Gonzaga", key="G"),
        chart_text=chart_text,
    )
    save_state(state, str(path))
    return path


def _lyrics_file(tmp_path: Path) -> Path:
    path = tmp_path / "letra.txt"
    path.write_text("Quando olhei a terra ardendo\nQual fogueira de São João", encoding="utf-8")
    return path


def test_version_option() -> None:
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_new_creates_project_with_lyrics(tmp_path: Path) -> None:
    output = tmp_path / "new.json"
    result = CliRunner().invoke(
        main,
        [
            "new",
            "--title", "Asa Branca",
            "--key", "G",
            "--capo", "3",
            "--lyrics", str(_lyrics_file(tmp_path)),
            "-o", str(output),
        ],
    )
    assert result.exit_code == 0, result.output
    state = load_state(str(output))
    assert state.song_meta.title == "Asa Branca"
    assert state.print_settings.capo == 3
    assert state.step == 2
    assert state.chart_text == "\nQuando olhei a terra ardendo\n\nQual fogueira de São João"


def test_new_without_lyrics_stays_on_first_steps(tmp_path: Path) -> None:
    output = tmp_path / "new.json"
    result = CliRunner().invoke(main, ["new", "--title", "X", "--key", "Am", "-o", str(output)])
    assert result.exit_code == 0, result.output
    assert load_state(str(output)).chart_text == ""


def test_new_rejects_blank_title(tmp_path: Path) -> None:
    output = tmp_path / "new.json"
    result = CliRunner().invoke(main, ["new", "--title", "  ", "--key", "G", "-o", str(output)])
    assert result.exit_code == 1
    assert "ERROR" in result.output
    assert not output.exists()


def test_lyrics_asks_before_discarding_chart(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    result = CliRunner().invoke(main, ["lyrics", str(project), str(_lyrics_file(tmp_path))], input="n\n")
    assert result.exit_code == 0
    assert "Aborted" in result.output
    assert load_state(str(project)).chart_text.startswith("G       C")


def test_lyrics_yes_replaces_chart(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    result = CliRunner().invoke(main, ["lyrics", str(project), str(_lyrics_file(tmp_path)), "--yes"])
    assert result.exit_code == 0, result.output
    state = load_state(str(project))
    assert state.chart_text.startswith("\nQuando olhei")
    assert state.raw_lyrics.startswith("Quando olhei")


def test_lyrics_on_empty_chart_does_not_ask(tmp_path: Path) -> None:
    project = _sample_project(tmp_path, chart_text="")
    result = CliRunner().invoke(main, ["lyrics", str(project), str(_lyrics_file(tmp_path))])
    assert result.exit_code == 0, result.output
    assert "Updated" in result.output


def test_render_html(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    result = CliRunner().invoke(main, ["render", str(project)])
    assert result.exit_code == 0, result.output
    html = (tmp_path / "asa.html").read_text(encoding="utf-8")
    assert "<title>Asa Branca</title>" in html


def test_render_text_with_overrides(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    output = tmp_path / "out.txt"
    result = CliRunner().invoke(
        main,
        ["render", str(project), "--format", "txt", "--transpose", "2", "--columns", "2", "-o", str(output)],
    )
    assert result.exit_code == 0, result.output
    text = output.read_text(encoding="utf-8")
    assert "A       D" in text
    assert "Tom: A" in text
    assert load_state(str(project)).print_settings.transpose == 0


def test_render_hide_chords(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    output = tmp_path / "out.txt"
    result = CliRunner().invoke(
        main, ["render", str(project), "--format", "txt", "--hide-chords", "-o", str(output)]
    )
    assert result.exit_code == 0, result.output
    assert "G       C" not in output.read_text(encoding="utf-8")


def test_render_rejects_broken_project(tmp_path: Path) -> None:
    project = tmp_path / "broken.json"
    project.write_text("{not json", encoding="utf-8")
    result = CliRunner().invoke(main, ["render", str(project)])
    assert result.exit_code == 1
    assert "ERROR" in result.output


@pytest.mark.integration
def test_import_pdf_writes_editor_project(tmp_path: Path) -> None:
    import fitz  # PyMuPDF

    pdf_path = tmp_path / "asa.pdf"
    doc = fitz.open()
    page = doc.new_page(width=595, height=842)
    rows = [
        (60, "Asa Branca"),
        (75, "Luiz Gonzaga"),
        (90, "Tom: G"),
        (105, "G       C"),
        (120, "Quando olhei"),
    ]
    for y, text in rows:
        page.insert_text(fitz.Point(40, y), text, fontname="cour", fontsize=10)
    doc.save(str(pdf_path))
    doc.close()

    result = CliRunner().invoke(main, ["import-pdf", str(pdf_path)])
    assert result.exit_code == 0, result.output
    state = load_state(str(tmp_path / "asa.json"))
    assert state.step == 2
    assert state.song_meta.title == "Asa Branca"
    assert state.song_meta.key == "G"
    assert "Quando olhei" in state.chart_text


def test_render_txt_default_output_uses_renderer_extension(tmp_path: Path) -> None:
    project = _sample_project(tmp_path)
    result = CliRunner().invoke(main, ["render", str(project), "--format", "txt"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "asa.txt").exists()


def test_render_project_with_non_finite_numbers(tmp_path: Path) -> None:
    project = tmp_path / "odd.json"
    project.write_text(
        '{"song_meta": {"title": "X", "key": "G", "capo": "1e400"},'
        ' "print_settings": {"font_size": Infinity, "transpose": "nan"}, "chart_text": "G\\nla"}',
        encoding="utf-8",
    )
    result = CliRunner().invoke(main, ["render", str(project)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "odd.html").exists()
