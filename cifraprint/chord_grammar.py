"""Chord grammar: a small recursive-descent matcher for chord symbols.

Grammar
-------
::

    token     := root quality? digits? extension? bass?
    root      := [A-G] ("#" | "b")?
    quality   := "maj" | "min" | "m" | "dim" | "aug" | "sus" | "add"
    digits    := [0-9]*
    extension := "(" [^)]* ")"
    bass      := "/" root

A word either matches the whole grammar or is opaque text. Nothing here
raises on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

ROOT_LETTERS: Final[str] = "ABCDEFG"
ACCIDENTALS: Final[str] = "#b"

# Longest alternatives first so "maj"/"min" win over "m".
QUALITIES: Final[tuple[str, ...]] = ("maj", "min", "m", "dim", "aug", "sus", "add")

#: Words whose chord ratio reaches this value classify a line as a chord line.
CHORD_LINE_RATIO: Final[float] = 0.6

_WRAPPER_STRIP_CHARS: Final[str] = "()[]{}.,;:"


@dataclass(frozen=True)
class ChordToken:
    """
    A parsed chord symbol.

    Attributes:
        root:   Root pitch with optional accidental, e.g. "C#".
        suffix: Everything between the root and the bass, kept verbatim, e.g. "m7(b5)".
        bass:   Bass root after the slash, or None.
    """

    root: str
    suffix: str = ""
    bass: str | None = None

    def __str__(self) -> str:
        symbol = f"{self.root}{self.suffix}"
        if self.bass is not None:
            symbol += f"/{self.bass}"
        return symbol


class _ChordParser:
    """Cursor-based matcher; each ``_parse_*`` method consumes one grammar rule."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _parse_root(self) -> str | None:
        start = self.pos
        if self._peek() == "" or self._peek() not in ROOT_LETTERS:
            return None
        self.pos += 1
        if self._peek() != "" and self._peek() in ACCIDENTALS:
            self.pos += 1
        return self.text[start:self.pos]

    def _parse_quality(self) -> None:
        for quality in QUALITIES:
            if self.text.startswith(quality, self.pos):
                self.pos += len(quality)
                return

    def _parse_digits(self) -> None:
        while self._peek().isdigit() and self._peek().isascii():
            self.pos += 1

    def _parse_extension(self) -> bool:
        if self._peek() != "(":
            return True
        closing = self.text.find(")", self.pos + 1)
        if closing == -1:
            return False
        self.pos = closing + 1
        return True

    def _parse_bass(self) -> str | None:
        if self._peek() != "/":
            return None
        self.pos += 1
        return self._parse_root() or ""

    def parse(self) -> ChordToken | None:
        root = self._parse_root()
        if root is None:
            return None

        suffix_start = self.pos
        self._parse_quality()
        self._parse_digits()
        if not self._parse_extension():
            return None
        suffix = self.text[suffix_start:self.pos]

        bass = self._parse_bass()
        if bass == "":
            return None

        if self.pos != len(self.text):
            return None
        return ChordToken(root=root, suffix=suffix, bass=bass)


# ----------------------------------------------------------------------
# Token level
# ----------------------------------------------------------------------

def parse_chord(text: str) -> ChordToken | None:
    """Parse *text* as a complete chord symbol, or return None."""
    return _ChordParser(text).parse()


def is_chord_token(token: str) -> bool:
    """True when the trimmed *token* fully matches the chord grammar."""
    return parse_chord(token.strip()) is not None


def match_wrapped_chord(word: str) -> tuple[str, ChordToken, str] | None:
    """
    Match *word* as a chord wrapped in letter-free punctuation.

    Returns ``(leading, chord, trailing)`` using the longest chord that
    leaves only non-letter characters behind, e.g. ``"(Am7),"`` gives
    ``("(", Am7, "),")``. Returns None when the word is not a wrapped chord.
    """
    start = 0
    while start < len(word) and not word[start].isalpha():
        start += 1

    for end in range(len(word), start, -1):
        trailing = word[end:]
        if any(ch.isalpha() for ch in trailing):
            break
        token = parse_chord(word[start:end])
        if token is not None:
            return word[:start], token, trailing
    return None


def normalize_chord_word(word: str) -> str:
    """Drop bracket and punctuation characters and capitalize the first letter."""
    cleaned = "".join(ch for ch in word if ch not in _WRAPPER_STRIP_CHARS)
    if not cleaned:
        return cleaned
    return cleaned[0].upper() + cleaned[1:]


def is_chord_like_word(word: str) -> bool:
    return is_chord_token(normalize_chord_word(word))


# ----------------------------------------------------------------------
# Line level
# ----------------------------------------------------------------------

def extract_chord_tokens(line: str) -> list[str]:
    """Return the whitespace-delimited words of *line* that are chord tokens."""
    return [word for word in line.split() if is_chord_token(word)]


def first_chord_token(text: str) -> str:
    """Return the first chord-like word of *text* in normalized form, or ""."""
    for word in text.split():
        normalized = normalize_chord_word(word)
        if is_chord_token(normalized):
            return normalized
    return ""


def chord_token_ratio(line: str) -> float:
    """
    Fraction of a line's meaningful words that parse as chord tokens.

    Words without any letter or digit (e.g. "|", "-") are ignored unless
    the line has nothing else.
    """
    words = line.split()
    if not words:
        return 0.0
    meaningful = [word for word in words if any(ch.isalnum() for ch in word)]
    base = meaningful or words
    chord_count = sum(1 for word in base if is_chord_like_word(word))
    return chord_count / len(base)


def is_chord_line(line: str) -> bool:
    return chord_token_ratio(line) >= CHORD_LINE_RATIO


def is_tag_line(line: str) -> bool:
    """True for section markers such as ``[Intro]`` or ``[Refrão] x2``."""
    stripped = line.strip()
    if not stripped.startswith("["):
        return False
    closing = stripped.find("]", 1)
    return closing > 1
