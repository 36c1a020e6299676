"""PDF import: positioned-fragment sources and the chart reconstruction pipeline."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import fitz  # PyMuPDF

from cifraprint.chart_builder import chart_blocks, classify_lines, pairs_to_chart_text
from cifraprint.layout_reconstructor import LayoutReconstructor, page_break_after
from cifraprint.metadata_extractor import MetadataExtractor, is_noise_line
from cifraprint.sheet_models import Block, LogicalLine, PositionedFragment

logger = logging.getLogger(__name__)


class PdfImportError(ValueError):
    """The document cannot be read at all; no chart text is produced."""


class PageReadError(PdfImportError):
    """A single page could not be read; the import continues without it."""


# ── Fragment sources ────────────────────────────────────────────────────────

class FragmentSource(ABC):
    """
    Supplies positioned text fragments page by page (pages are 1-based).

    Fragments may come in any order; the reconstructor sorts them.
    """

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages in the document."""

    @abstractmethod
    def page_height(self, page: int) -> float:
        """Height of *page* in the fragments' coordinate units."""

    @abstractmethod
    def fragments(self, page: int) -> list[PositionedFragment]:
        """
        Return the text fragments of *page*.

        Raises:
            PageReadError: If this page cannot be read.
        """

    def close(self) -> None:
        """Release any underlying resources."""

    def __enter__(self) -> "FragmentSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class PyMuPdfFragmentSource(FragmentSource):
    """
    Reads span-level fragments from a PDF with PyMuPDF.

    PyMuPDF reports span origins top-down; they are converted to bottom-up
    baselines (``page_height - origin_y``) to match the fragment contract.

    Usage as a context manager closes the document:

        with PyMuPdfFragmentSource("song.pdf") as source:
            result = ChartImporter().run(source)
    """

    def __init__(self, pdf_path: str) -> None:
        """
        Raises:
            PdfImportError: If the file is missing, encrypted or not a readable PDF.
        """
        if not os.path.exists(pdf_path):
            raise PdfImportError(f"PDF file not found: '{pdf_path}'.")
        try:
            self._doc: Any = fitz.open(pdf_path)
        except (RuntimeError, ValueError, OSError) as exc:
            raise PdfImportError(f"Could not open '{pdf_path}' as a PDF: {exc}") from exc

        if not self._doc.is_pdf:
            self._doc.close()
            raise PdfImportError(f"'{pdf_path}' is not a PDF document.")
        if self._doc.needs_pass:
            self._doc.close()
            raise PdfImportError(f"'{pdf_path}' is password protected.")

    @property
    def page_count(self) -> int:
        return int(self._doc.page_count)

    def page_height(self, page: int) -> float:
        return float(self._doc[page - 1].rect.height)

    def fragments(self, page: int) -> list[PositionedFragment]:
        try:
            pdf_page = self._doc[page - 1]
            height = float(pdf_page.rect.height)
            text_dict = pdf_page.get_text("dict")
        except (RuntimeError, ValueError, IndexError) as exc:
            raise PageReadError(f"Could not read page {page}: {exc}") from exc

        fragments: list[PositionedFragment] = []
        for block in text_dict.get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = str(span.get("text", ""))
                    if not text.strip():
                        continue
                    origin_x, origin_y = span["origin"]
                    x0, _y0, x1, _y1 = span["bbox"]
                    fragments.append(
                        PositionedFragment(
                            page=page,
                            text=text,
                            x=float(origin_x),
                            y_baseline=height - float(origin_y),
                            font_size=float(span.get("size", 0.0)),
                            width=max(0.0, float(x1) - float(x0)),
                        )
                    )
        return fragments

    def close(self) -> None:
        self._doc.close()


# ── Pipeline ────────────────────────────────────────────────────────────────

@dataclass
class ImportResult:
    """
    Outcome of a chart import.

    Attributes:
        chart_text:    Alternating chord/lyric lines, ready for editing.
        song_meta:     Partial ``SongMeta`` fields found on page one.
        page_count:    Pages in the source document.
        blocks:        ``chart_text`` paired and segmented.
        skipped_pages: Pages that could not be read.
    """

    chart_text: str
    song_meta: dict[str, Any]
    page_count: int
    blocks: list[Block] = field(default_factory=list)
    skipped_pages: list[int] = field(default_factory=list)


class ChartImporter:
    """
    Rebuilds chart text and metadata from a fragment source.

    Pages are processed one after another: reconstruct lines, read metadata
    from page one only, drop metadata and watermark lines, classify the rest
    into chord/lyric pairs.
    """

    def __init__(
        self,
        reconstructor: LayoutReconstructor | None = None,
        extractor: MetadataExtractor | None = None,
    ) -> None:
        self.reconstructor = reconstructor or LayoutReconstructor()
        self.extractor = extractor or MetadataExtractor()

    def _read_page(self, source: FragmentSource, page: int) -> list[LogicalLine]:
        fragments = source.fragments(page)
        return self.reconstructor.reconstruct_page(
            fragments, source.page_height(page), page=page
        )

    def run(self, source: FragmentSource) -> ImportResult:
        """
        Import every page of *source*.

        Returns:
            The import result. Unreadable pages are listed in ``skipped_pages``.

        Raises:
            PdfImportError: If the source itself cannot be read.
        """
        page_count = source.page_count
        all_lines: list[LogicalLine] = []
        first_page_lines: list[LogicalLine] = []
        skipped: list[int] = []

        for page in range(1, page_count + 1):
            try:
                page_lines = self._read_page(source, page)
            except PageReadError as exc:
                logger.warning("Skipping page %d: %s", page, exc)
                skipped.append(page)
                continue

            logger.debug("Page %d/%d: %d line(s)", page, page_count, len(page_lines))
            if page == 1:
                first_page_lines = page_lines
            if not page_lines:
                continue
            if all_lines:
                all_lines.append(page_break_after(all_lines[-1]))
            all_lines.extend(page_lines)

        metadata = self.extractor.extract(first_page_lines)
        kept = [
            line for line in all_lines
            if line.key not in metadata.consumed and not is_noise_line(line.text)
        ]

        chart_text = pairs_to_chart_text(classify_lines(kept))
        return ImportResult(
            chart_text=chart_text,
            song_meta=metadata.meta,
            page_count=page_count,
            blocks=chart_blocks(chart_text),
            skipped_pages=skipped,
        )


def import_pdf(pdf_path: str, importer: ChartImporter | None = None) -> ImportResult:
    """
    Import a chord sheet PDF.

    Raises:
        PdfImportError: If the file cannot be opened as a PDF.
    """
    with PyMuPdfFragmentSource(pdf_path) as source:
        return (importer or ChartImporter()).run(source)
