"""Renderer implementations for printable chord sheet output formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from itertools import groupby

from cifraprint.sheet_models import PrintPage, RenderLine, SheetDocument, SheetHeader

UNTITLED = "Sem título"


def _escape_html(text: str) -> str:
    """Escape the three characters that are unsafe in HTML text content."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _escape_attr(text: str) -> str:
    return _escape_html(text).replace("\"", "&quot;")


def _css_font_name(name: str) -> str:
    """Drop characters that would end a quoted CSS string or the style element."""
    return "".join(ch for ch in name if ch not in "\"'\\<>;{}\n\r")


class SheetRenderer(ABC):
    """Abstract sheet renderer."""

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Default filename extension for this renderer."""

    @abstractmethod
    def render(self, document: SheetDocument) -> str:
        """Render output into a file content string."""


class HtmlPrintRenderer(SheetRenderer):
    """
    Render a laid-out sheet into a self-contained, print-ready HTML document.

    Pagination is already decided by the layout step: each page is its own
    ``.page`` div and each column its own ``.column`` div. Stanza blocks also
    carry ``break-inside: avoid`` so a browser reflow keeps them whole.
    """

    @property
    def default_extension(self) -> str:
        return ".html"

    def render(self, document: SheetDocument) -> str:
        return self.build_html(document)

    def _render_header(self, header: SheetHeader, text_color: str, accent_color: str) -> str:
        parts = [
            f'    <h1 style="color: {_escape_attr(text_color)}">{_escape_html(header.title or UNTITLED)}</h1>'
        ]
        if header.artist:
            parts.append(
                f'    <p class="artist" style="color: {_escape_attr(accent_color)}">'
                f"{_escape_html(header.artist)}</p>"
            )
        if header.composers:
            parts.append(
                f'    <p class="composers">Compositor(es): {_escape_html(header.composers)}</p>'
            )
        if header.details:
            rows = "".join(
                f"<div>{_escape_html(label)}: {_escape_html(value)}</div>"
                for label, value in header.details
            )
            parts.append(f'    <div class="details">{rows}</div>')
        return '  <header class="sheet-header">\n' + "\n".join(parts) + "\n  </header>\n"

    def _render_line(self, line: RenderLine) -> str:
        return (
            f'<div class="line {line.kind}" style="color: {_escape_attr(line.color)}">'
            f"{_escape_html(line.text)}</div>"
        )

    def _render_column(self, column: list[RenderLine]) -> str:
        blocks = []
        for _, run in groupby(column, key=lambda line: line.block_index):
            lines = list(run)
            css = "block keep" if lines[0].keep_together else "block"
            body = "".join(self._render_line(line) for line in lines)
            blocks.append(f'<div class="{css}">{body}</div>')
        return f'<div class="column">{"".join(blocks)}</div>'

    def _render_page(self, page: PrintPage, header_html: str) -> str:
        columns = "".join(self._render_column(column) for column in page.columns)
        return f'<div class="page">\n{header_html}  <div class="columns">{columns}</div>\n</div>'

    def build_html(self, document: SheetDocument) -> str:
        """
        Wrap the laid-out pages in a self-contained HTML document.

        The stylesheet sizes each page as A4 on screen and sets ``@page``
        margins plus ``page-break-after: always`` for printing.
        """
        settings = document.settings
        header = document.header
        title_safe = _escape_html(header.title or UNTITLED)
        header_html = self._render_header(header, settings.text_color, settings.chord_color)
        pages = "\n".join(
            self._render_page(page, header_html if index == 0 else "")
            for index, page in enumerate(document.pages)
        )
        line_px = settings.font_size * settings.line_height

        return f"""<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title_safe}</title>
  <style>
    *, *::before, *::after {{ box-sizing: border-box; }}
    @page {{
      size: {settings.page_size};
      margin: {settings.margin_mm}mm;
    }}
    body {{
      font-family: Georgia, serif;
      background: #f0f0f0;
      margin: 0;
      padding: 2rem;
    }}
    .page {{
      background: #fff;
      box-shadow: 0 2px 8px rgba(0, 0, 0, 0.15);
      margin: 0 auto 3rem;
      width: 210mm;
      min-height: 297mm;
      padding: {settings.margin_mm}mm;
    }}
    .sheet-header {{
      border-bottom: 1px solid rgba(0, 0, 0, 0.1);
      padding-bottom: 1rem;
      margin-bottom: 1.5rem;
    }}
    h1 {{
      font-size: 1.8rem;
      margin: 0;
    }}
    .artist {{ font-weight: 600; margin: 0.25rem 0; }}
    .composers, .details {{ font-size: 0.75rem; color: rgba(0, 0, 0, 0.6); }}
    .columns {{
      display: flex;
      gap: {settings.column_gap_mm}mm;
    }}
    .column {{ flex: 1; min-width: 0; }}
    .block.keep {{ break-inside: avoid; page-break-inside: avoid; }}
    .line {{
      font-family: "{_css_font_name(settings.font_family)}", monospace;
      font-size: {settings.font_size}px;
      line-height: {settings.line_height};
      min-height: {line_px:.2f}px;
      white-space: pre;
    }}
    .line.chord {{ font-weight: 600; }}
    @media print {{
      body {{
        background: #fff;
        padding: 0;
        margin: 0;
      }}
      .page {{
        box-shadow: none;
        page-break-after: always;
        width: auto;
        min-height: 0;
        padding: 0;
        margin: 0;
      }}
      .page:last-child {{
        page-break-after: avoid;
      }}
    }}
  </style>
</head>
<body>
{pages}
</body>
</html>"""


class PlainTextRenderer(SheetRenderer):
    """
    Render a laid-out sheet as monospaced plain text.

    Columns are printed side by side, padded to the column width; pages are
    separated by form feeds.
    """

    COLUMN_GAP = "    "
    PAGE_SEPARATOR = "\f\n"

    @property
    def default_extension(self) -> str:
        return ".txt"

    def _header_lines(self, header: SheetHeader) -> list[str]:
        lines = [header.title or UNTITLED]
        if header.artist:
            lines.append(header.artist)
        if header.composers:
            lines.append(f"Compositor(es): {header.composers}")
        lines.extend(f"{label}: {value}" for label, value in header.details)
        lines.append("")
        return lines

    def _page_lines(self, page: PrintPage, width: int | None) -> list[str]:
        columns = [[line.text for line in column] for column in page.columns]
        if len(columns) == 1 or width is None:
            return [text.rstrip() for column in columns for text in column]

        height = max(len(column) for column in columns)
        rows = []
        for row in range(height):
            cells = [column[row] if row < len(column) else "" for column in columns]
            padded = self.COLUMN_GAP.join(cell.ljust(width) for cell in cells)
            rows.append(padded.rstrip())
        return rows

    def render(self, document: SheetDocument) -> str:
        pages = []
        for index, page in enumerate(document.pages):
            lines = self._header_lines(document.header) if index == 0 else []
            lines.extend(self._page_lines(page, document.column_width_chars))
            pages.append("\n".join(lines))
        return self.PAGE_SEPARATOR.join(pages) + "\n"
