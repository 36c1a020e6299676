"""MetadataExtractor: finds title, artist, key, tuning and composers on a sheet's first page."""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from cifraprint.chord_grammar import CHORD_LINE_RATIO, chord_token_ratio, first_chord_token
from cifraprint.sheet_models import LogicalLine

logger = logging.getLogger(__name__)

#: Watermarks of known chord websites; lines containing them are dropped.
NOISE_MARKERS: Final[tuple[str, ...]] = ("cifra club", "cifraclub", "www.cifraclub")

MAX_CANDIDATE_LINES = 12

# Patterns run against accent- and case-folded text.
_COMPOSER_LABEL = re.compile(r"composicao\s*(?:de)?\s*:\s*(.+)")
_KEY_LABEL = re.compile(r"tom\s*:\s*(.+)")
_TUNING_LABEL = re.compile(r"afinacao\s*:\s*(.+)")
_LABEL_PREFIX = re.compile(r"^(?:tom|afinacao|composicao)\b")
_TUNING_NOTE = re.compile(r"[A-Ga-g][#b]?")
_WHITESPACE = re.compile(r"\s+")


def fold_text(text: str) -> str:
    """
    Lower-case *text* and strip accents one character at a time.

    The result has the same length as *text*, so match offsets found in the
    folded string index the original string too.
    """
    folded = []
    for ch in text:
        base = unicodedata.normalize("NFD", ch)[0].lower()
        folded.append(base[0] if base else ch)
    return "".join(folded)


def is_noise_line(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in NOISE_MARKERS)


def normalize_tuning(value: str) -> str:
    """Rewrite "e a d g b e"-style text as capitalized, space-separated notes."""
    notes = [token[0].upper() + token[1:] for token in _TUNING_NOTE.findall(value)]
    return " ".join(notes) if notes else value


@dataclass
class MetadataResult:
    """
    Metadata found on the first page.

    Attributes:
        meta:     Partial ``SongMeta`` fields (only what was found).
        consumed: Keys of the lines that were turned into metadata.
    """

    meta: dict[str, Any] = field(default_factory=dict)
    consumed: set[tuple[int, float]] = field(default_factory=set)


class MetadataExtractor:
    """
    Scans the first non-blank lines of page one for song metadata.

    Labelled lines (``Composição:``, ``Tom:``, ``Afinação:``) are read first,
    each label at most once. The first remaining line that does not look like
    a chord line becomes the title, the next one the artist.
    """

    def __init__(self, max_lines: int = MAX_CANDIDATE_LINES) -> None:
        self.max_lines = max_lines

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _match_label(self, pattern: re.Pattern[str], text: str) -> str | None:
        match = pattern.search(fold_text(text))
        if match is None:
            return None
        return text[match.start(1):].strip()

    def _read_labels(self, text: str, result: MetadataResult) -> bool:
        meta = result.meta

        composers = self._match_label(_COMPOSER_LABEL, text)
        if composers is not None and "composers" not in meta:
            meta["composers"] = composers
            return True

        key = self._match_label(_KEY_LABEL, text)
        if key is not None and "key" not in meta:
            meta["key"] = first_chord_token(key) or key
            return True

        tuning = self._match_label(_TUNING_LABEL, text)
        if tuning is not None and "tuning" not in meta:
            meta["tuning"] = normalize_tuning(tuning)
            return True

        return False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, lines: Sequence[LogicalLine]) -> MetadataResult:
        """
        Extract metadata from the first page's lines. Never raises.

        Args:
            lines: Logical lines of page one, top to bottom.

        Returns:
            A MetadataResult; missing fields are simply absent from ``meta``.
        """
        result = MetadataResult()
        candidates = [line for line in lines if not line.is_blank][: self.max_lines]

        for line in candidates:
            text = _WHITESPACE.sub(" ", line.text.strip())
            if is_noise_line(text):
                result.consumed.add(line.key)
                continue
            if self._read_labels(text, result):
                result.consumed.add(line.key)

        for line in candidates:
            if line.key in result.consumed:
                continue
            text = _WHITESPACE.sub(" ", line.text.strip())
            if _LABEL_PREFIX.match(fold_text(text)):
                continue
            if chord_token_ratio(text) >= CHORD_LINE_RATIO:
                continue
            result.consumed.add(line.key)
            if "title" not in result.meta:
                result.meta["title"] = text
                continue
            result.meta["artist"] = text
            break

        logger.debug("Extracted metadata fields: %s", sorted(result.meta))
        return result
