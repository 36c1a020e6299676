"""Transposer: shifts chord symbols by semitones while leaving other text untouched."""

from __future__ import annotations

import re
from typing import Final

from cifraprint.chord_grammar import match_wrapped_chord

# Chromatic pitch class names (index 0 = C)
NOTES_SHARP: Final[list[str]] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
NOTES_FLAT: Final[list[str]] = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

#: Every sharp and flat spelling mapped to its pitch class.
NOTE_INDEX: Final[dict[str, int]] = {
    **{name: index for index, name in enumerate(NOTES_SHARP)},
    **{name: index for index, name in enumerate(NOTES_FLAT)},
}

MAX_SEMITONES = 12
SEMITONES_PER_OCTAVE = 12

_WHITESPACE_RUN = re.compile(r"(\s+)")


def clamp_semitones(value: int) -> int:
    """Clamp a transposition delta to [-12, 12]; it is never reduced modulo 12."""
    return max(-MAX_SEMITONES, min(MAX_SEMITONES, value))


def _split_root(text: str) -> tuple[str, str] | None:
    """Split a leading root note (letter + optional accidental) from the rest of *text*."""
    if not text or text[0] not in "ABCDEFG":
        return None
    root_len = 2 if len(text) > 1 and text[1] in "#b" else 1
    return text[:root_len], text[root_len:]


def transpose_note(note: str, semitones: int, prefer_flats: bool) -> str:
    """
    Move a single note name by *semitones* and spell it per *prefer_flats*.

    Unknown note names come back unchanged. Known names always go through the
    spelling table, so a delta of 0 or ±12 may respell "Db" as "C#".
    """
    index = NOTE_INDEX.get(note)
    if index is None:
        return note
    spelling = NOTES_FLAT if prefer_flats else NOTES_SHARP
    return spelling[(index + semitones + SEMITONES_PER_OCTAVE) % SEMITONES_PER_OCTAVE]


def transpose_chord_core(symbol: str, semitones: int, prefer_flats: bool) -> str:
    """
    Transpose the root (and bass root, if any) of a bare chord symbol.

    Quality suffixes on both the main symbol and the bass part are kept verbatim:
    ``transpose_chord_core("C#m7/G#", 2, False) == "D#m7/A#"``.
    """
    if not symbol:
        return symbol
    main, slash, bass = symbol.partition("/")
    main_parts = _split_root(main)
    if main_parts is None:
        return symbol

    root, suffix = main_parts
    result = f"{transpose_note(root, semitones, prefer_flats)}{suffix}"
    if not slash:
        return result

    bass_parts = _split_root(bass)
    if bass_parts is None:
        return f"{result}/{bass}"
    bass_root, bass_suffix = bass_parts
    return f"{result}/{transpose_note(bass_root, semitones, prefer_flats)}{bass_suffix}"


def transpose_chord_token(word: str, semitones: int, prefer_flats: bool) -> str:
    """Transpose *word* if it is a (possibly punctuation-wrapped) chord token; else return it."""
    match = match_wrapped_chord(word)
    if match is None:
        return word
    leading, token, trailing = match
    transposed = transpose_chord_core(str(token), clamp_semitones(semitones), prefer_flats)
    return f"{leading}{transposed}{trailing}"


def transpose_chord_line(line: str, semitones: int, prefer_flats: bool) -> str:
    """
    Transpose every chord token on *line*, keeping each whitespace run byte-for-byte.

    Column alignment with the paired lyric line therefore only changes when a
    transposed chord is longer or shorter than the original.
    """
    if not line or semitones == 0:
        return line
    parts = _WHITESPACE_RUN.split(line)
    return "".join(
        part if not part or part.isspace() else transpose_chord_token(part, semitones, prefer_flats)
        for part in parts
    )


def transpose_key_name(key_name: str, semitones: int, prefer_flats: bool) -> str:
    if not key_name or semitones == 0:
        return key_name
    return transpose_chord_core(key_name, clamp_semitones(semitones), prefer_flats)


def format_transpose_label(semitones: int) -> str:
    """
    Describe a transposition in whole and half tones, e.g. ``+1 1/2 tom``.

    Half a tone is one semitone; the label uses the sheet's Portuguese wording.
    """
    if semitones == 0:
        return "0"
    steps = abs(semitones)
    if steps == 1:
        label = "1/2 tom"
    elif steps % 2 == 0:
        label = f"{steps // 2} tom"
    else:
        label = f"{steps // 2} 1/2 tom"
    prefix = "+" if semitones > 0 else "-"
    return f"{prefix}{label}"
