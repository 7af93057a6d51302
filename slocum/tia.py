"""Note → TIA playback code lookup.

The sequencer kit plays each slot from a single byte.  Melodic sounds are
looked up per tuning by sound, note and octave; percussive sounds have one
fixed code each regardless of note.  255 marks a slot with nothing to play.

Lookup tables are supplied as JSON::

    {
      "percussion": {"<sound>": <code>, ...},
      "tunings": [
        {"<sound>": {"C3": <code>, "C#3": <code>, ...}, ...},
        ...
      ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .song import Step

REST_CODE = 255
MAX_CODE = REST_CODE - 1


class NoteEncoder(Protocol):
    def encode(self, tuning: int, step: Optional[Step]) -> Optional[int]:
        """Return the playback code for ``step`` or None for a rest."""


def note_key(note: str, octave: int) -> str:
    return f"{note}{octave}"


def _code(value: object, *, where: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{where} must be an integer")
    if not (0 <= value <= MAX_CODE):
        # 255 is reserved for rests
        raise ValueError(f"{where} must be in [0, {MAX_CODE}]")
    return value


def _sound_id(key: object, *, where: str) -> int:
    try:
        return int(key)  # JSON object keys are strings
    except (TypeError, ValueError):
        raise ValueError(f"{where} has non-numeric sound id {key!r}") from None


@dataclass(frozen=True)
class TuningTableEncoder:
    tunings: List[Dict[int, Dict[str, int]]]
    percussion: Dict[int, int] = field(default_factory=dict)

    def is_percussive(self, sound: int) -> bool:
        return sound in self.percussion

    def encode(self, tuning: int, step: Optional[Step]) -> Optional[int]:
        if step is None or step.sound is None:
            return None
        if self.is_percussive(step.sound):
            return self.percussion[step.sound]
        if step.note is None or step.octave is None:
            return None

        if not (0 <= tuning < len(self.tunings)):
            raise ValueError(f"unknown tuning {tuning}; {len(self.tunings)} tuning(s) loaded")
        sounds = self.tunings[tuning]
        if step.sound not in sounds:
            raise ValueError(f"sound {step.sound} has no table in tuning {tuning}")
        key = note_key(step.note, step.octave)
        code = sounds[step.sound].get(key)
        if code is None:
            raise ValueError(f"sound {step.sound} cannot play {key} in tuning {tuning}")
        return code

    @classmethod
    def from_dict(cls, data: object) -> "TuningTableEncoder":
        if not isinstance(data, dict):
            raise ValueError("tables must be an object")

        percussion_raw = data.get("percussion", {})
        if not isinstance(percussion_raw, dict):
            raise ValueError("percussion must be an object")
        percussion = {
            _sound_id(k, where="percussion"): _code(v, where=f"percussion.{k}")
            for k, v in percussion_raw.items()
        }

        tunings_raw = data.get("tunings")
        if not isinstance(tunings_raw, list) or not tunings_raw:
            raise ValueError("tunings must be a non-empty array")

        tunings: List[Dict[int, Dict[str, int]]] = []
        for tidx, tuning_raw in enumerate(tunings_raw):
            where = f"tunings[{tidx}]"
            if not isinstance(tuning_raw, dict):
                raise ValueError(f"{where} must be an object")
            sounds: Dict[int, Dict[str, int]] = {}
            for sound_key, notes_raw in tuning_raw.items():
                swhere = f"{where}.{sound_key}"
                if not isinstance(notes_raw, dict):
                    raise ValueError(f"{swhere} must be an object")
                sounds[_sound_id(sound_key, where=where)] = {
                    str(k): _code(v, where=f"{swhere}.{k}") for k, v in notes_raw.items()
                }
            tunings.append(sounds)

        return cls(tunings=tunings, percussion=percussion)


def load_tuning_tables(path: Path | str) -> TuningTableEncoder:
    table_path = Path(path).expanduser().resolve()
    return TuningTableEncoder.from_dict(json.loads(table_path.read_text(encoding="utf-8")))
