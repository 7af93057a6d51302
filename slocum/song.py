"""Typed song model for the Slocum sequencer editor.

Songs arrive as the JSON the editor saves.  ``parse_song`` converts that
loosely-typed payload into frozen dataclasses, rejecting anything the
compiler cannot map onto the 32-slot sequencer grid.
"""

from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

SEQUENCER_SLOTS = 32
CHANNELS_PER_PATTERN = 2
HAT_PATTERN_LENGTH = 32
HAT_START_DISABLED = 255
# 9999-12-31 23:59:59.999 UTC, the last instant datetime can render
MAX_TIMESTAMP_MS = 253_402_300_799_999

# Step counts that map onto the 32-slot grid without remainder.
VALID_STEP_COUNTS = tuple(n for n in range(1, SEQUENCER_SLOTS + 1) if SEQUENCER_SLOTS % n == 0)


@dataclass(frozen=True)
class Step:
    sound: Optional[int] = None
    note: Optional[str] = None
    octave: Optional[int] = None
    accent: bool = False


@dataclass(frozen=True)
class Channel:
    attenuate: bool
    steps: List[Optional[Step]]


@dataclass(frozen=True)
class Pattern:
    steps: int
    channels: List[Channel]


@dataclass(frozen=True)
class SongMeta:
    title: str = ""
    author: str = ""
    created: int = 0  # ms since epoch
    modified: int = 0  # ms since epoch
    tempo: int = 4
    tuning: int = 0


@dataclass(frozen=True)
class HatConfig:
    start: int = HAT_START_DISABLED  # measure number, 255 = never
    volume: int = 5  # 0-15
    pitch: int = 0  # 0-31
    sound: int = 8
    pattern: List[int] = field(default_factory=lambda: [0] * HAT_PATTERN_LENGTH)

    @property
    def enabled(self) -> bool:
        return self.start != HAT_START_DISABLED


@dataclass(frozen=True)
class Song:
    meta: SongMeta
    patterns: List[Pattern]
    hats: HatConfig
    id: Optional[str] = None

    @property
    def pattern_count(self) -> int:
        return len(self.patterns)


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be an object")
    return value


def _require_list(value: object, *, where: str) -> list:
    if not isinstance(value, list):
        raise ValueError(f"{where} must be an array")
    return value


def _int_in_range(value: object, *, where: str, low: int, high: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{where} must be an integer")
    if not (low <= value <= high):
        raise ValueError(f"{where} must be in [{low}, {high}]")
    return value


def _optional_int(value: object, *, where: str, low: int, high: int) -> Optional[int]:
    if value is None:
        return None
    return _int_in_range(value, where=where, low=low, high=high)


def _string(value: object, *, where: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{where} must be a string")
    return value


def _flag(value: object, *, where: str) -> bool:
    # The editor leaves attenuation/accent unset until first toggled.
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{where} must be a boolean")
    return value


def _parse_step(step_raw: object, *, where: str) -> Optional[Step]:
    if step_raw is None:
        return None
    obj = _require_dict(step_raw, where=where)
    note = obj.get("note")
    if note is not None:
        note = _string(note, where=f"{where}.note")
        if not note:
            note = None
    return Step(
        sound=_optional_int(obj.get("sound"), where=f"{where}.sound", low=0, high=255),
        note=note,
        octave=_optional_int(obj.get("octave"), where=f"{where}.octave", low=0, high=15),
        accent=_flag(obj.get("accent"), where=f"{where}.accent"),
    )


def _parse_pattern(pattern_raw: object, *, where: str) -> Pattern:
    obj = _require_dict(pattern_raw, where=where)
    steps = _int_in_range(obj.get("steps"), where=f"{where}.steps", low=1, high=SEQUENCER_SLOTS)
    if steps not in VALID_STEP_COUNTS:
        valid = ", ".join(str(n) for n in VALID_STEP_COUNTS)
        raise ValueError(f"{where}.steps must evenly divide {SEQUENCER_SLOTS} (one of: {valid})")

    channels_raw = _require_list(obj.get("channels"), where=f"{where}.channels")
    if len(channels_raw) != CHANNELS_PER_PATTERN:
        raise ValueError(f"{where}.channels must contain exactly {CHANNELS_PER_PATTERN} channels")

    channels: List[Channel] = []
    for cidx, channel_raw in enumerate(channels_raw):
        cwhere = f"{where}.channels[{cidx}]"
        steps_raw = _require_list(channel_raw, where=cwhere)
        if len(steps_raw) != steps:
            raise ValueError(f"{cwhere} must contain exactly {steps} steps, got {len(steps_raw)}")
        channels.append(
            Channel(
                attenuate=_flag(
                    obj.get(f"channel{cidx + 1}attenuation"),
                    where=f"{where}.channel{cidx + 1}attenuation",
                ),
                steps=[_parse_step(s, where=f"{cwhere}[{sidx}]") for sidx, s in enumerate(steps_raw)],
            )
        )
    return Pattern(steps=steps, channels=channels)


def _parse_meta(raw: object) -> SongMeta:
    obj = _require_dict(raw, where="meta")
    return SongMeta(
        title=_string(obj.get("title", ""), where="meta.title"),
        author=_string(obj.get("author", ""), where="meta.author"),
        created=_int_in_range(obj.get("created", 0), where="meta.created", low=0, high=MAX_TIMESTAMP_MS),
        modified=_int_in_range(obj.get("modified", 0), where="meta.modified", low=0, high=MAX_TIMESTAMP_MS),
        tempo=_int_in_range(obj.get("tempo", 4), where="meta.tempo", low=0, high=255),
        tuning=_int_in_range(obj.get("tuning", 0), where="meta.tuning", low=0, high=255),
    )


def _parse_hats(raw: object) -> HatConfig:
    obj = _require_dict(raw, where="hats")
    pattern_raw = _require_list(obj.get("pattern"), where="hats.pattern")
    if len(pattern_raw) != HAT_PATTERN_LENGTH:
        raise ValueError(f"hats.pattern must contain exactly {HAT_PATTERN_LENGTH} entries")
    return HatConfig(
        start=_int_in_range(obj.get("start", HAT_START_DISABLED), where="hats.start", low=0, high=255),
        volume=_int_in_range(obj.get("volume", 5), where="hats.volume", low=0, high=15),
        pitch=_int_in_range(obj.get("pitch", 0), where="hats.pitch", low=0, high=31),
        sound=_int_in_range(obj.get("sound", 8), where="hats.sound", low=0, high=15),
        pattern=[
            _int_in_range(v, where=f"hats.pattern[{idx}]", low=0, high=1)
            for idx, v in enumerate(pattern_raw)
        ],
    )


def parse_song(data: object) -> Song:
    obj = _require_dict(data, where="song")

    song_id = obj.get("id")
    if song_id is not None:
        song_id = _string(song_id, where="id")

    patterns_raw = _require_list(obj.get("patterns"), where="patterns")
    if not patterns_raw:
        raise ValueError("patterns must contain at least one pattern")

    return Song(
        id=song_id,
        meta=_parse_meta(obj.get("meta")),
        patterns=[_parse_pattern(p, where=f"patterns[{idx}]") for idx, p in enumerate(patterns_raw)],
        hats=_parse_hats(obj.get("hats")),
    )


def load_song(path: Path | str) -> Song:
    song_path = Path(path).expanduser().resolve()
    payload = json.loads(song_path.read_text(encoding="utf-8"))
    return parse_song(payload)


def new_song_data(song_id: Optional[str] = None, now_ms: Optional[int] = None) -> dict:
    """Return the JSON outline of a fresh, empty song.

    Mirrors what the editor creates for "new song": one 16-step pattern with
    two empty channels and the auto hi-hat disabled.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if song_id is None:
        song_id = f"{now_ms}{random.randrange(0x10000, 0x20000):x}"
    return {
        "id": song_id,
        "meta": {
            "title": "",
            "author": "",
            "created": now_ms,
            "modified": now_ms,
            "tempo": 4,
            "tuning": 0,
        },
        "patterns": [
            {
                "steps": 16,
                "channels": [[None] * 16, [None] * 16],
            }
        ],
        "hats": {
            "start": HAT_START_DISABLED,
            "volume": 5,
            "pitch": 0,
            "sound": 8,
            "pattern": [0] * HAT_PATTERN_LENGTH,
        },
    }
