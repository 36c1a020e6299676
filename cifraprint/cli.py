"""cifraprint CLI entry point."""

import logging
import sys
from dataclasses import replace
from pathlib import Path

import click

from cifraprint import __version__
from cifraprint.pdf_importer import PdfImportError, import_pdf
from cifraprint.project_state import (
    ProjectState,
    StateError,
    is_meta_valid,
    load_state,
    save_state,
    with_raw_lyrics_confirmed,
    would_discard_edits,
)
from cifraprint.sheet_models import DEFAULT_TUNING, SongMeta


def _load_project(path: str) -> ProjectState:
    try:
        return load_state(path)
    except StateError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)
    except OSError as exc:
        click.echo(f"  ERROR: Could not read project file — {exc}", err=True)
        sys.exit(1)


def _save_project(state: ProjectState, path: str) -> None:
    try:
        save_state(state, path)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write project file — {exc}", err=True)
        sys.exit(1)


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        click.echo(f"  ERROR: Could not read '{path}' — {exc}", err=True)
        sys.exit(1)


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="cifraprint")
@click.option("--verbose", "-v", is_flag=True, help="Log debugging details to stderr.")
def main(verbose: bool) -> None:
    """cifraprint — chord sheet importer, transposer and A4 print layout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


# ── import-pdf subcommand ──────────────────────────────────────────────────────

@main.command("import-pdf")
@click.argument("pdf_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination project file. Defaults to <pdf-name>.json.",
)
def import_pdf_command(pdf_file: str, output: str | None) -> None:
    """
    Rebuild an editable chord chart from a chord sheet PDF.

    Title, artist, key, tuning and composers are read from the first page
    when present. The chart lands in the editor step of a new project.

    \b
    Examples:
      cifraprint import-pdf song.pdf
      cifraprint import-pdf song.pdf -o project.json
    """
    resolved_output = output if output is not None else str(Path(pdf_file).with_suffix(".json"))

    click.echo(f"cifraprint v{__version__}")
    click.echo(f"  PDF    : {pdf_file}")
    click.echo(f"  Output : {resolved_output}")
    click.echo()

    click.echo("[1/2] Reading positioned text and rebuilding lines...")
    try:
        result = import_pdf(pdf_file)
    except PdfImportError as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)

    click.echo(f"      Pages    : {result.page_count}")
    for page in result.skipped_pages:
        click.echo(f"  WARNING: page {page} could not be read and was skipped.", err=True)
    for field_name, value in sorted(result.song_meta.items()):
        click.echo(f"      {field_name:<9}: {value}")
    stanzas = sum(1 for block in result.blocks if block.keep_together)
    click.echo(f"      Stanzas  : {stanzas}")

    click.echo(f"[2/2] Writing project file → '{resolved_output}'...")
    state = ProjectState(
        step=2,
        song_meta=SongMeta().merged(result.song_meta),
        chart_text=result.chart_text,
    )
    _save_project(state, resolved_output)

    click.echo()
    click.echo(f"Done!  Edit the chart in '{resolved_output}', then run 'cifraprint render'.")


# ── new subcommand ─────────────────────────────────────────────────────────────

@main.command()
@click.option("--title", required=True, help="Song title (required).")
@click.option("--key", "key_name", required=True, help="Song key, e.g. G or Em (required).")
@click.option("--artist", default="", help="Artist or band.")
@click.option("--composers", default="", help="Composer credits, free text.")
@click.option("--capo", type=click.IntRange(0, 12), default=0, show_default=True)
@click.option("--tuning", default=DEFAULT_TUNING, show_default=True)
@click.option("--tag", default="", help="Category or tag.")
@click.option(
    "--lyrics",
    "lyrics_file",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    default=None,
    help="Plain-text lyrics; an empty chord line is added above each line.",
)
@click.option("--output", "-o", default="project.json", show_default=True, metavar="PATH")
def new(
    title: str,
    key_name: str,
    artist: str,
    composers: str,
    capo: int,
    tuning: str,
    tag: str,
    lyrics_file: str | None,
    output: str,
) -> None:
    """
    Start a project from metadata and, optionally, raw lyrics.

    \b
    Examples:
      cifraprint new --title "Asa Branca" --key G
      cifraprint new --title "Asa Branca" --key G --lyrics letra.txt -o asa.json
    """
    meta = SongMeta(
        title=title.strip(),
        artist=artist,
        composers=composers,
        key=key_name.strip(),
        capo=capo,
        tuning=tuning,
        tag=tag,
    )
    if not is_meta_valid(meta):
        click.echo("  ERROR: Title and key must not be blank.", err=True)
        sys.exit(1)

    state = ProjectState(song_meta=meta, step=1)
    state = replace(state, print_settings=replace(state.print_settings, capo=capo))
    if lyrics_file is not None:
        state = with_raw_lyrics_confirmed(state, _read_text(lyrics_file))

    _save_project(state, output)
    click.echo(f"Created '{output}'.")


# ── lyrics subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("project_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("lyrics_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--yes", "-y", is_flag=True, help="Replace an edited chart without asking.")
def lyrics(project_file: str, lyrics_file: str, yes: bool) -> None:
    """
    Replace a project's raw lyrics and rebuild its chart.

    The rebuilt chart has an empty chord line above each lyric line, so any
    chords already typed into the chart are lost.
    """
    state = _load_project(project_file)
    raw_lyrics = _read_text(lyrics_file)

    if would_discard_edits(state) and not yes:
        if not click.confirm("This replaces the chart you already edited. Continue?"):
            click.echo("Aborted; the project was not changed.")
            return

    _save_project(with_raw_lyrics_confirmed(state, raw_lyrics), project_file)
    click.echo(f"Updated '{project_file}'.")


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("project_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination file. Defaults to the project name with an extension based on --format.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["html", "txt"], case_sensitive=False),
    default="html",
    show_default=True,
    help="Print-ready HTML (A4) or monospaced plain text.",
)
@click.option("--columns", type=click.IntRange(1, 2), default=None, help="Columns per page.")
@click.option(
    "--transpose",
    type=click.IntRange(-12, 12),
    default=None,
    metavar="SEMITONES",
    help="Transpose chords by -12..12 semitones.",
)
@click.option("--prefer-flats/--prefer-sharps", default=None, help="Accidental spelling.")
@click.option("--hide-chords", is_flag=True, help="Print the lyrics only.")
@click.option("--hide-metadata", is_flag=True, help="Omit key, capo and tuning from the header.")
@click.option("--font-size", type=click.IntRange(11, 22), default=None, metavar="PX")
def render(
    project_file: str,
    output: str | None,
    output_format: str,
    columns: int | None,
    transpose: int | None,
    prefer_flats: bool | None,
    hide_chords: bool,
    hide_metadata: bool,
    font_size: int | None,
) -> None:
    """
    Lay out a project's chart for printing.

    Options override the project's saved print settings for this run only.

    \b
    Examples:
      cifraprint render asa.json
      cifraprint render asa.json --columns 2 --transpose 2 -o asa.html
      cifraprint render asa.json --format txt --hide-chords
    """
    from cifraprint.sheet_exporter import SheetExporter

    state = _load_project(project_file)
    settings = state.print_settings
    overrides = {
        "column_count": columns,
        "transpose": transpose,
        "prefer_flats": prefer_flats,
        "font_size": font_size,
    }
    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    if hide_chords:
        settings = replace(settings, show_chords=False)
    if hide_metadata:
        settings = replace(settings, show_metadata=False)
    state = replace(state, print_settings=settings)

    normalized_format = output_format.lower()
    exporter = SheetExporter(output_format=normalized_format)
    default_suffix = exporter.renderer.default_extension
    resolved_output = output if output is not None else str(Path(project_file).with_suffix(default_suffix))

    click.echo(f"cifraprint v{__version__}")
    click.echo(f"  Project : {project_file}")
    click.echo(f"  Format  : {normalized_format}  |  Columns: {settings.column_count}"
               f"  |  Transpose: {settings.transpose:+d}")
    click.echo(f"  Output  : {resolved_output}")
    click.echo()

    try:
        exporter.export(state, resolved_output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write output file — {exc}", err=True)
        sys.exit(1)

    click.echo()
    if normalized_format == "html":
        click.echo(f"Done!  Open '{resolved_output}' in any browser. Use Print → Save as PDF.")
    else:
        click.echo(f"Done!  '{resolved_output}' is ready to print in a monospaced font.")
