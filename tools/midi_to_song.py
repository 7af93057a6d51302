#!/usr/bin/env python3
"""Convert MIDI into a Slocum tracker song JSON.

One pattern is emitted per 4/4 bar.  Two source lanes are quantized onto
the pattern grid, one per sequencer channel; percussion lanes (MIDI channel
10) become steps of a single percussive sound.

Examples
--------
    python tools/midi_to_song.py input.mid -o songs/input.json
    python tools/midi_to_song.py input.mid --lanes 1:0,2:9 --steps 32
    python tools/midi_to_song.py input.mid --info
"""

from __future__ import annotations

import argparse
import json
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import mido

from slocum.song import CHANNELS_PER_PATTERN, new_song_data, parse_song

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
DRUM_CHANNEL = 9
MAX_OCTAVE = 15

LaneKey = Tuple[int, int]  # (midi_track_index, midi_channel)


@dataclass
class MidiNote:
    """A note extracted from MIDI with absolute timing."""

    abs_tick: int
    note: int
    velocity: int
    channel: int


def extract_midi_parts(mid: mido.MidiFile) -> Dict[LaneKey, List[MidiNote]]:
    """Collect note onsets keyed by (midi_track_index, midi_channel)."""

    lane_notes: Dict[LaneKey, List[MidiNote]] = {}
    for track_idx, track in enumerate(mid.tracks):
        abs_tick = 0
        for msg in track:
            abs_tick += msg.time
            if msg.type == "note_on" and msg.velocity > 0:
                lane_notes.setdefault((track_idx, msg.channel), []).append(
                    MidiNote(
                        abs_tick=abs_tick,
                        note=msg.note,
                        velocity=msg.velocity,
                        channel=msg.channel,
                    )
                )

    for lane in lane_notes:
        lane_notes[lane].sort(key=lambda n: (n.abs_tick, -n.velocity, n.note))
    return lane_notes


def pick_lanes(parts: Dict[LaneKey, List[MidiNote]], count: int = CHANNELS_PER_PATTERN) -> List[LaneKey]:
    """Pick the busiest lanes, ties broken by lane order."""

    ranked = sorted(parts, key=lambda key: (-len(parts[key]), key))
    return sorted(ranked[:count])


def parse_lane_arg(raw: str) -> List[LaneKey]:
    lanes: List[LaneKey] = []
    for item in raw.split(","):
        track, _, channel = item.partition(":")
        if not channel:
            raise ValueError(f"lane {item!r} must be TRACK:CHANNEL")
        lanes.append((int(track), int(channel)))
    if len(lanes) > CHANNELS_PER_PATTERN:
        raise ValueError(f"at most {CHANNELS_PER_PATTERN} lanes can be mapped")
    return lanes


def pitch_to_note(pitch: int) -> Tuple[str, int]:
    octave = max(0, min(MAX_OCTAVE, pitch // 12 - 1))
    return NOTE_NAMES[pitch % 12], octave


def song_bar_count(parts: Dict[LaneKey, List[MidiNote]], tpb: int) -> int:
    max_tick = max((n.abs_tick for notes in parts.values() for n in notes), default=0)
    return max_tick // (tpb * 4) + 1


def quantize_lane(
    notes: Sequence[MidiNote],
    *,
    tpb: int,
    steps: int,
    start_bar: int,
    bars: int,
    sound: int,
    accent_velocity: int,
) -> List[List[Optional[dict]]]:
    """Return ``bars`` step lists of length ``steps`` for one lane.

    The grid is monophonic: when several onsets land on one step the loudest
    one wins.
    """
    step_ticks = tpb * 4 / steps
    first_step = start_bar * steps
    grid: List[Optional[dict]] = [None] * (bars * steps)
    loudest: List[int] = [-1] * (bars * steps)

    for n in notes:
        idx = int(math.floor(n.abs_tick / step_ticks + 0.5)) - first_step
        if not (0 <= idx < len(grid)) or n.velocity <= loudest[idx]:
            continue
        loudest[idx] = n.velocity
        step: dict = {"sound": sound, "accent": n.velocity >= accent_velocity}
        if n.channel != DRUM_CHANNEL:
            step["note"], step["octave"] = pitch_to_note(n.note)
        grid[idx] = step

    return [grid[bar * steps : (bar + 1) * steps] for bar in range(bars)]


def build_song_payload(
    mid: mido.MidiFile,
    *,
    title: str = "",
    lanes: Optional[Sequence[LaneKey]] = None,
    steps: int = 16,
    start_bar: int = 0,
    bars: Optional[int] = None,
    sound: int = 1,
    drum_sound: int = 8,
    accent_velocity: int = 100,
    now_ms: Optional[int] = None,
) -> dict:
    parts = extract_midi_parts(mid)
    if not parts:
        raise ValueError("MIDI file contains no notes")
    tpb = mid.ticks_per_beat

    if lanes is None:
        lanes = pick_lanes(parts)
    for lane in lanes:
        if lane not in parts:
            raise ValueError(f"MIDI lane trk {lane[0]} ch{lane[1]} has no notes")
    if bars is None:
        bars = max(1, song_bar_count(parts, tpb) - start_bar)

    channel_bars: List[List[List[Optional[dict]]]] = []
    for lane in lanes:
        lane_sound = drum_sound if lane[1] == DRUM_CHANNEL else sound
        channel_bars.append(
            quantize_lane(
                parts[lane],
                tpb=tpb,
                steps=steps,
                start_bar=start_bar,
                bars=bars,
                sound=lane_sound,
                accent_velocity=accent_velocity,
            )
        )
    while len(channel_bars) < CHANNELS_PER_PATTERN:
        channel_bars.append([[None] * steps for _ in range(bars)])

    payload = new_song_data(now_ms=now_ms)
    payload["meta"]["title"] = title
    payload["patterns"] = [
        {
            "steps": steps,
            "channels": [channel_bars[c][bar] for c in range(CHANNELS_PER_PATTERN)],
            "channel1attenuation": False,
            "channel2attenuation": False,
        }
        for bar in range(bars)
    ]

    # Structural sanity check: payload must load as a song.
    parse_song(payload)
    return payload


def show_info(mid: mido.MidiFile) -> None:
    parts = extract_midi_parts(mid)
    print(f"ticks/beat: {mid.ticks_per_beat}  bars: {song_bar_count(parts, mid.ticks_per_beat)}")
    picked = set(pick_lanes(parts)) if parts else set()
    for key in sorted(parts):
        notes = parts[key]
        marker = "*" if key in picked else " "
        kind = "drums" if key[1] == DRUM_CHANNEL else f"pitch {min(n.note for n in notes)}-{max(n.note for n in notes)}"
        print(f" {marker} trk {key[0]} ch{key[1]}: notes={len(notes)} {kind}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Convert MIDI to a Slocum tracker song JSON")
    parser.add_argument("input", help="Input MIDI file")
    parser.add_argument("-o", "--output", help="Output song JSON (default: songs/<stem>.json)")
    parser.add_argument(
        "--lanes",
        default=None,
        help="Source lanes as TRACK:CHANNEL[,TRACK:CHANNEL] (default: two busiest)",
    )
    parser.add_argument("--steps", type=int, choices=(16, 32), default=16, help="Steps per pattern")
    parser.add_argument("--start-bar", type=int, default=0, help="First bar to extract (0-based)")
    parser.add_argument("--bars", type=int, default=None, help="Number of bars (default: to end)")
    parser.add_argument("--sound", type=int, default=1, help="Sound id for melodic lanes")
    parser.add_argument("--drum-sound", type=int, default=8, help="Sound id for percussion lanes")
    parser.add_argument(
        "--accent-velocity",
        type=int,
        default=100,
        help="Velocity at or above which a step is accented",
    )
    parser.add_argument("--info", action="store_true", help="List source lanes only")
    args = parser.parse_args()

    mid = mido.MidiFile(args.input)
    if args.info:
        show_info(mid)
        return 0

    lanes = parse_lane_arg(args.lanes) if args.lanes else None
    payload = build_song_payload(
        mid,
        title=Path(args.input).stem,
        lanes=lanes,
        steps=args.steps,
        start_bar=args.start_bar,
        bars=args.bars,
        sound=args.sound,
        drum_sound=args.drum_sound,
        accent_velocity=args.accent_velocity,
    )

    output_path = Path(args.output or f"songs/{Path(args.input).stem}.json")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    print(f"MIDI: {Path(args.input).name}")
    print(f"Wrote {len(payload['patterns'])} pattern(s) x {args.steps} steps -> {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
