"""SheetExporter: lays out a song project and writes it as HTML or plain text."""

from __future__ import annotations

import logging
from typing import Final

from cifraprint.chart_builder import chart_blocks
from cifraprint.project_state import ProjectState
from cifraprint.reflow import (
    LayoutMetricsProvider,
    MonospaceMetricsProvider,
    ReflowEngine,
    chars_per_line,
    lines_per_column,
    paginate,
)
from cifraprint.sheet_models import SheetDocument, SheetHeader
from cifraprint.sheet_renderers import HtmlPrintRenderer, PlainTextRenderer, SheetRenderer
from cifraprint.transposer import format_transpose_label, transpose_key_name

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS: Final[set[str]] = {"html", "txt"}

#: Lines the title takes, counted in body lines.
TITLE_LINES = 2


class SheetExporter:
    """
    Turn a project into printable output via a pluggable renderer.

    Supported formats:
    - ``html``: self-contained A4 HTML with one div per page, ready to print.
    - ``txt``: monospaced plain text with columns side by side.
    """

    def __init__(
        self,
        output_format: str = "html",
        metrics_provider: LayoutMetricsProvider | None = None,
    ) -> None:
        normalized = output_format.strip().lower()
        if normalized not in SUPPORTED_FORMATS:
            supported = ", ".join(sorted(SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported output format '{output_format}'. Use one of: {supported}.")
        self.output_format = normalized
        self.renderer = self._build_renderer(normalized)
        self.metrics_provider = metrics_provider or MonospaceMetricsProvider()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_renderer(self, output_format: str) -> SheetRenderer:
        if output_format == "html":
            return HtmlPrintRenderer()
        return PlainTextRenderer()

    def _build_header(self, state: ProjectState) -> SheetHeader:
        meta = state.song_meta
        settings = state.print_settings
        details: list[tuple[str, str]] = []
        if settings.show_metadata:
            key = transpose_key_name(meta.key, settings.transpose, settings.prefer_flats)
            details.append(("Tom", key or "-"))
            details.append(("Capotraste", f"Traste {settings.capo}" if settings.capo else "Não"))
            details.append(("Afinação", meta.tuning_label or "-"))
            if settings.transpose != 0:
                details.append(("Transposição", format_transpose_label(settings.transpose)))
            if meta.tag:
                details.append(("Tag", meta.tag))
        return SheetHeader(
            title=meta.title,
            artist=meta.artist,
            composers=meta.composers,
            details=tuple(details),
        )

    def _header_line_count(self, header: SheetHeader) -> int:
        count = TITLE_LINES + len(header.details) + 1
        if header.artist:
            count += 1
        if header.composers:
            count += 1
        return count

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def layout(self, state: ProjectState) -> SheetDocument:
        """Pair, reflow and paginate the project's chart text."""
        settings = state.print_settings
        metrics = self.metrics_provider.measure(settings)
        header = self._build_header(state)

        blocks = chart_blocks(state.chart_text)
        lines = ReflowEngine(settings, metrics).reflow(blocks)
        pages = paginate(
            lines,
            lines_per_column=lines_per_column(settings, metrics),
            column_count=settings.column_count,
            first_page_reserved=self._header_line_count(header),
        )
        logger.debug(
            "Laid out %d block(s) into %d line(s) over %d page(s)",
            len(blocks),
            len(lines),
            len(pages),
        )
        return SheetDocument(
            header=header,
            pages=pages,
            settings=settings,
            column_width_chars=chars_per_line(metrics) if settings.column_count >= 2 else None,
        )

    def render(self, state: ProjectState) -> str:
        return self.renderer.render(self.layout(state))

    def export(self, state: ProjectState, output_path: str) -> None:
        """
        Render *state* in the selected format and write it to disk.

        Raises:
            OSError: If the output file cannot be written.
        """
        content = self.render(state)
        with open(output_path, "w", encoding="utf-8") as fh:
            fh.write(content)
