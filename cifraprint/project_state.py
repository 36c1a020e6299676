"""Project state: the persisted song project and the pure transitions applied to it."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Final

from cifraprint.chart_builder import build_chart_text
from cifraprint.sheet_models import PrintSettings, SongMeta

STATE_VERSION: Final[int] = 1

#: Wizard steps: metadata, raw lyrics, chart editor, print preview.
STEPS: Final[tuple[str, ...]] = ("Cadastro", "Letra", "Editor", "Impressão")
EDITOR_STEP = 2

FONT_SIZE_RANGE: Final[tuple[int, int]] = (11, 22)
LINE_HEIGHT_RANGE: Final[tuple[float, float]] = (1.1, 2.0)
MARGIN_MM_RANGE: Final[tuple[float, float]] = (3.0, 25.0)
COLUMN_GAP_MM_RANGE: Final[tuple[float, float]] = (4.0, 20.0)
TRANSPOSE_RANGE: Final[tuple[int, int]] = (-12, 12)
CAPO_RANGE: Final[tuple[int, int]] = (0, 12)
FONT_FAMILY_UNSAFE_CHARS: Final[str] = "\"'\\<>;{}"


class StateError(ValueError):
    """A saved project could not be parsed; the caller's state is left as it was."""


@dataclass(frozen=True)
class ProjectState:
    """Everything a song project persists between sessions."""

    step: int = 0
    song_meta: SongMeta = field(default_factory=SongMeta)
    raw_lyrics: str = ""
    chart_text: str = ""
    print_settings: PrintSettings = field(default_factory=PrintSettings)
    recent_chords: tuple[str, ...] = ()


# ----------------------------------------------------------------------
# Normalization
# ----------------------------------------------------------------------

def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _as_number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN and infinities (JSON literals or "1e400") are treated as missing.
    return number if math.isfinite(number) else default


def _as_int(value: Any, default: int) -> int:
    return int(_as_number(value, default))


def _normalize_font_family(value: Any, default: str) -> str:
    """Keep a font name free of characters that could leave a CSS string."""
    if not isinstance(value, str):
        return default
    cleaned = "".join(ch for ch in value if ch not in FONT_FAMILY_UNSAFE_CHARS).strip()
    return cleaned or default


def _known_fields(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {name: value for name, value in data.items() if name in names}


def _normalize_song_meta(data: Any) -> SongMeta:
    raw = _known_fields(SongMeta, data) if isinstance(data, Mapping) else {}
    meta = SongMeta(**{k: v for k, v in raw.items() if isinstance(v, str)})
    return replace(meta, capo=int(_clamp(_as_int(raw.get("capo"), 0), CAPO_RANGE)))


def _normalize_print_settings(data: Any, song_meta: SongMeta) -> PrintSettings:
    raw = _known_fields(PrintSettings, data) if isinstance(data, Mapping) else {}
    defaults = PrintSettings()
    settings = PrintSettings(
        text_color=str(raw.get("text_color", defaults.text_color)),
        chord_color=str(raw.get("chord_color", defaults.chord_color)),
        font_size=int(_clamp(_as_int(raw.get("font_size"), defaults.font_size), FONT_SIZE_RANGE)),
        line_height=_clamp(_as_number(raw.get("line_height"), defaults.line_height), LINE_HEIGHT_RANGE),
        margin_mm=_clamp(_as_number(raw.get("margin_mm"), defaults.margin_mm), MARGIN_MM_RANGE),
        column_count=2 if _as_int(raw.get("column_count"), 1) >= 2 else 1,
        column_gap_mm=_clamp(
            _as_number(raw.get("column_gap_mm"), defaults.column_gap_mm), COLUMN_GAP_MM_RANGE
        ),
        show_metadata=bool(raw.get("show_metadata", defaults.show_metadata)),
        show_chords=bool(raw.get("show_chords", defaults.show_chords)),
        transpose=int(_clamp(_as_int(raw.get("transpose"), 0), TRANSPOSE_RANGE)),
        prefer_flats=bool(raw.get("prefer_flats", defaults.prefer_flats)),
        capo=int(_clamp(_as_int(raw.get("capo"), song_meta.capo), CAPO_RANGE)),
        font_family=_normalize_font_family(raw.get("font_family"), defaults.font_family),
    )
    return settings


def _legacy_chart_lines_to_text(lines: Any) -> str:
    """Convert the old per-row ``chart_lines`` list into chart text."""
    if not isinstance(lines, list):
        return ""
    rows = []
    for line in lines:
        line = line if isinstance(line, Mapping) else {}
        chords = line.get("chords_line")
        lyrics = line.get("lyrics_line")
        rows.append(chords if isinstance(chords, str) else "")
        rows.append(lyrics if isinstance(lyrics, str) else "")
    return "\n".join(rows)


def normalize_state(data: Mapping[str, Any] | None) -> ProjectState:
    """
    Build a ProjectState from loosely-typed saved data.

    Missing or ill-typed fields fall back to defaults, numeric settings are
    coerced and clamped, and a legacy ``chart_lines`` list is migrated to
    ``chart_text``.
    """
    data = data or {}
    song_meta = _normalize_song_meta(data.get("song_meta"))
    print_settings = _normalize_print_settings(data.get("print_settings"), song_meta)

    step = data.get("step")
    if not (isinstance(step, int) and not isinstance(step, bool) and 0 <= step < len(STEPS)):
        step = 0

    chart_text = data.get("chart_text")
    if not isinstance(chart_text, str):
        chart_text = _legacy_chart_lines_to_text(data.get("chart_lines"))

    raw_lyrics = data.get("raw_lyrics")
    recent = data.get("recent_chords")
    return ProjectState(
        step=step,
        song_meta=song_meta,
        raw_lyrics=raw_lyrics if isinstance(raw_lyrics, str) else "",
        chart_text=chart_text,
        print_settings=print_settings,
        recent_chords=tuple(item for item in recent if isinstance(item, str))
        if isinstance(recent, list)
        else (),
    )


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def state_to_dict(state: ProjectState) -> dict[str, Any]:
    payload = asdict(state)
    payload["recent_chords"] = list(state.recent_chords)
    payload["version"] = STATE_VERSION
    return payload


def dumps_state(state: ProjectState) -> str:
    return json.dumps(state_to_dict(state), ensure_ascii=False, indent=2)


def loads_state(text: str) -> ProjectState:
    """
    Parse a saved project.

    Raises:
        StateError: If *text* is not JSON or not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StateError(f"Invalid project file: {exc}") from exc
    if not isinstance(data, dict):
        raise StateError("Invalid project file: expected a JSON object.")
    return normalize_state(data)


def load_state(path: str) -> ProjectState:
    """
    Read a project file from disk.

    Raises:
        StateError: If the file content cannot be parsed.
        OSError: If the file cannot be read.
    """
    with open(path, encoding="utf-8") as fh:
        return loads_state(fh.read())


def save_state(state: ProjectState, path: str) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(dumps_state(state))


# ----------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------

def is_meta_valid(meta: SongMeta) -> bool:
    """A project needs at least a title and a key."""
    return bool(meta.title.strip()) and bool(meta.key.strip())


def with_song_meta(state: ProjectState, meta: SongMeta) -> ProjectState:
    """Replace the song metadata; the print capo follows it while the two agree."""
    settings = state.print_settings
    if settings.capo == state.song_meta.capo:
        settings = replace(settings, capo=meta.capo)
    return replace(state, song_meta=meta, print_settings=settings)


def would_discard_edits(state: ProjectState) -> bool:
    """True when rebuilding the chart from raw lyrics would overwrite chart text."""
    return bool(state.chart_text.strip())


def with_raw_lyrics_confirmed(state: ProjectState, raw_lyrics: str | None = None) -> ProjectState:
    """
    Rebuild the chart from raw lyrics and move to the editor step.

    Callers should check ``would_discard_edits`` first and ask for confirmation.
    """
    lyrics = state.raw_lyrics if raw_lyrics is None else raw_lyrics
    return replace(
        state,
        raw_lyrics=lyrics,
        chart_text=build_chart_text(lyrics),
        step=EDITOR_STEP,
    )


def reset_print_settings(state: ProjectState) -> ProjectState:
    return replace(state, print_settings=PrintSettings(capo=state.song_meta.capo))
