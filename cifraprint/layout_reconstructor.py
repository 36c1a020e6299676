"""LayoutReconstructor: rebuilds monospaced text lines from positioned fragments."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

from cifraprint.sheet_models import LogicalLine, PositionedFragment

logger = logging.getLogger(__name__)


def _median(values: Sequence[float]) -> float:
    """Median of *values*, 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _normalize_fragment_text(text: str) -> str:
    """Turn control whitespace into spaces and drop leading whitespace."""
    return text.replace("\r", " ").replace("\n", " ").replace("\t", " ").lstrip()


@dataclass
class _Placed:
    """A fragment converted to top-down page coordinates."""

    text: str
    x: float
    y_top: float
    font_size: float
    width: float


@dataclass
class _Cluster:
    """Fragments sharing a baseline; ``y_top`` is their running average."""

    y_top: float
    items: list[_Placed] = field(default_factory=list)

    def add(self, item: _Placed) -> None:
        self.items.append(item)
        count = len(self.items)
        self.y_top = (self.y_top * (count - 1) + item.y_top) / count


@dataclass(frozen=True)
class PageStatistics:
    """Per-page metrics estimated from the body text."""

    median_font_size: float
    min_x: float
    char_width: float
    tolerance: float


class LayoutReconstructor:
    """
    Groups a page's positioned text fragments into ordered plain-text lines.

    Algorithm overview
    ------------------
    1. **Coordinates** – ``y_top = page_height - y_baseline`` turns PDF
       bottom-up baselines into top-down positions.

    2. **Body metrics** – The median font size ``m`` defines the body set
       (fragments within 35% of ``m``). Its leftmost x is the left margin and
       the median per-character advance is the monospace pitch
       (fallback ``m * 0.55``).

    3. **Clustering** – Fragments sorted by (y_top, x) join the current line
       while they stay within ``clamp(m * 0.25, 1.5, 6)`` of its running
       average y; otherwise they start a new line.

    4. **Rendering** – Each fragment is padded out to column
       ``round((x - min_x) / char_width)``.

    5. **Blank lines** – Vertical gaps larger than 1.6x the median gap get
       ``clamp(round(gap / median_gap) - 1, 1, 3)`` synthetic empty lines with
       fractional order indexes between their neighbours.
    """

    BODY_FONT_TOLERANCE = 0.35
    CHAR_WIDTH_FALLBACK_RATIO = 0.55
    CHAR_WIDTH_FALLBACK = 6.0
    LINE_TOLERANCE_RATIO = 0.25
    LINE_TOLERANCE_MIN = 1.5
    LINE_TOLERANCE_MAX = 6.0
    LINE_TOLERANCE_FALLBACK = 2.0
    BLANK_GAP_THRESHOLD = 1.6
    MAX_BLANK_LINES = 3

    def __init__(
        self,
        blank_gap_threshold: float = BLANK_GAP_THRESHOLD,
        max_blank_lines: int = MAX_BLANK_LINES,
    ) -> None:
        """
        Args:
            blank_gap_threshold: Gap/median-gap ratio above which blank lines are inserted.
            max_blank_lines:     Upper bound of blank lines inserted for one gap.
        """
        self.blank_gap_threshold = blank_gap_threshold
        self.max_blank_lines = max_blank_lines

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _place(self, fragments: Iterable[PositionedFragment], page_height: float) -> list[_Placed]:
        placed: list[_Placed] = []
        for fragment in fragments:
            text = _normalize_fragment_text(fragment.text)
            if not text.strip():
                continue
            placed.append(
                _Placed(
                    text=text,
                    x=fragment.x,
                    y_top=page_height - fragment.y_baseline,
                    font_size=fragment.font_size,
                    width=fragment.width,
                )
            )
        return placed

    def _page_statistics(self, placed: list[_Placed]) -> PageStatistics:
        median_font = _median([item.font_size for item in placed if item.font_size > 0])

        if median_font > 0:
            body = [
                item for item in placed
                if abs(item.font_size - median_font) <= median_font * self.BODY_FONT_TOLERANCE
            ]
        else:
            body = list(placed)

        min_x = min(item.x for item in (body or placed))

        candidates = [
            item.width / len(item.text)
            for item in body
            if item.width > 0 and len(item.text.strip()) > 1
        ]
        char_width = (
            _median(candidates)
            or median_font * self.CHAR_WIDTH_FALLBACK_RATIO
            or self.CHAR_WIDTH_FALLBACK
        )

        tolerance = _clamp(
            median_font * self.LINE_TOLERANCE_RATIO or self.LINE_TOLERANCE_FALLBACK,
            self.LINE_TOLERANCE_MIN,
            self.LINE_TOLERANCE_MAX,
        )
        return PageStatistics(
            median_font_size=median_font,
            min_x=min_x,
            char_width=char_width,
            tolerance=tolerance,
        )

    def _cluster(self, placed: list[_Placed], tolerance: float) -> list[_Cluster]:
        clusters: list[_Cluster] = []
        for item in sorted(placed, key=lambda p: (p.y_top, p.x)):
            current = clusters[-1] if clusters else None
            if current is None or abs(item.y_top - current.y_top) > tolerance:
                clusters.append(_Cluster(y_top=item.y_top, items=[item]))
                continue
            current.add(item)
        return clusters

    def _render_cluster(self, cluster: _Cluster, min_x: float, char_width: float) -> str:
        text = ""
        for item in sorted(cluster.items, key=lambda p: p.x):
            target = max(0, _round_half_up((item.x - min_x) / char_width))
            if len(text) < target:
                text += " " * (target - len(text))
            text += item.text
        return text.rstrip(" \t")

    def _blank_line_count(self, gap: float, median_gap: float) -> int:
        if gap <= median_gap * self.blank_gap_threshold:
            return 0
        extra = _round_half_up(gap / median_gap) - 1
        return int(_clamp(extra, 1, self.max_blank_lines))

    def _insert_blank_lines(
        self, lines: list[LogicalLine], positions: list[float]
    ) -> list[LogicalLine]:
        if len(lines) < 2:
            return lines

        gaps = [positions[i] - positions[i - 1] for i in range(1, len(positions))]
        median_gap = _median(gaps)
        if median_gap <= 0:
            return lines

        output: list[LogicalLine] = []
        for index, line in enumerate(lines):
            output.append(line)
            if index == len(lines) - 1:
                break
            extra = self._blank_line_count(gaps[index], median_gap)
            next_index = lines[index + 1].order_index
            step = (next_index - line.order_index) / (extra + 1)
            for blank in range(1, extra + 1):
                output.append(
                    LogicalLine(
                        page=line.page,
                        order_index=line.order_index + step * blank,
                        text="",
                    )
                )
        return output

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def page_statistics(
        self, fragments: Sequence[PositionedFragment], page_height: float
    ) -> PageStatistics | None:
        """Return the metrics used for *fragments*, or None when the page has no text."""
        placed = self._place(fragments, page_height)
        if not placed:
            return None
        return self._page_statistics(placed)

    def reconstruct_page(
        self,
        fragments: Sequence[PositionedFragment],
        page_height: float,
        page: int = 1,
        insert_blank_lines: bool = True,
    ) -> list[LogicalLine]:
        """
        Rebuild one page's text as ordered logical lines.

        Args:
            fragments:          The page's fragments, in any order.
            page_height:        Page height in the fragments' coordinate units.
            page:               1-based page number stamped on the produced lines.
            insert_blank_lines: Infer blank lines from unusually large vertical gaps.

        Returns:
            Lines sorted top to bottom; empty when the page carries no text.
        """
        placed = self._place(fragments, page_height)
        if not placed:
            logger.debug("Page %d has no text fragments; skipping", page)
            return []

        stats = self._page_statistics(placed)
        logger.debug(
            "Page %d: median font %.2f, left margin %.2f, char width %.3f, tolerance %.2f",
            page,
            stats.median_font_size,
            stats.min_x,
            stats.char_width,
            stats.tolerance,
        )

        clusters = sorted(self._cluster(placed, stats.tolerance), key=lambda c: c.y_top)
        lines = [
            LogicalLine(
                page=page,
                order_index=float(index),
                text=self._render_cluster(cluster, stats.min_x, stats.char_width),
            )
            for index, cluster in enumerate(clusters)
        ]
        if not insert_blank_lines:
            return lines
        return self._insert_blank_lines(lines, [cluster.y_top for cluster in clusters])

    def reconstruct_document(
        self, pages: Iterable[tuple[Sequence[PositionedFragment], float]]
    ) -> list[LogicalLine]:
        """
        Reconstruct several pages in order, separated by page-break markers.

        Args:
            pages: ``(fragments, page_height)`` per page, first page first.

        Returns:
            All pages' lines; a marker line with ``is_page_break=True`` sits
            between consecutive contributing pages.
        """
        output: list[LogicalLine] = []
        for page_number, (fragments, page_height) in enumerate(pages, start=1):
            page_lines = self.reconstruct_page(fragments, page_height, page=page_number)
            if not page_lines:
                continue
            if output:
                output.append(page_break_after(output[-1]))
            output.extend(page_lines)
        return output


def page_break_after(line: LogicalLine) -> LogicalLine:
    """A page-break marker ordered right after *line* on the same page."""
    return LogicalLine(
        page=line.page,
        order_index=math.floor(line.order_index) + 1.0,
        text="",
        is_page_break=True,
    )
