from dataclasses import asdict
from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from slocum.assembler import assemblify, build_data_bag, format_timestamp  # noqa: E402
from slocum.song import MAX_TIMESTAMP_MS, new_song_data, parse_song  # noqa: E402
from slocum.templates import TEMPLATES, render  # noqa: E402
from slocum.tia import load_tuning_tables  # noqa: E402

ENCODER = load_tuning_tables(REPO_ROOT / "tests" / "fixtures" / "tuning_tables.json")
CREATED_MS = 1_500_000_000_000  # 2017-07-14 02:40:00 UTC


def _song_data() -> dict:
    data = new_song_data(song_id="abc", now_ms=CREATED_MS)
    data["meta"]["title"] = "Demo"
    data["meta"]["author"] = "Someone"
    data["meta"]["tempo"] = 6
    data["patterns"][0]["channels"][0][0] = {"sound": 1, "note": "C", "octave": 3, "accent": True}
    data["patterns"][0]["channels"][1][2] = {"sound": 8}
    data["patterns"].append(
        {
            "steps": 32,
            "channels": [[None] * 32, [None] * 32],
            "channel1attenuation": True,
        }
    )
    data["hats"]["start"] = 2
    data["hats"]["pattern"][4] = 1
    return data


def test_format_timestamp_is_utc() -> None:
    assert format_timestamp(CREATED_MS) == "14-07-2017 02:40:00"


def test_data_bag_replaces_derived_fields() -> None:
    song = parse_song(_song_data())
    data = build_data_bag(song, ENCODER)

    assert data["id"] == "abc"
    assert data["meta"]["created"] == "14-07-2017 02:40:00"
    assert data["meta"]["modified"] == CREATED_MS
    assert set(data["patterns"]) == {
        "patterns",
        "pattern_array_h",
        "pattern_array_l",
        "channel1sequence",
        "channel2sequence",
    }
    assert data["patterns"]["pattern_array_l"] == "    word Pattern2, Pattern2, Pattern2, Pattern2 ; 128\n"
    assert data["patterns"]["channel1sequence"] == "    byte 1\n    byte 129\n"
    assert data["patterns"]["channel2sequence"] == "    byte 2\n    byte 3\n"
    assert data["hats"]["pattern"].split("\n")[0] == "    byte %00001000"
    assert data["hats"]["volume"] == 5


def test_song_is_not_mutated() -> None:
    song = parse_song(_song_data())
    before = asdict(song)
    assemblify(song, ENCODER)
    assert asdict(song) == before
    assert song.meta.created == CREATED_MS


def test_renderer_receives_template_and_bag() -> None:
    calls = []

    def fake_render(name, data):
        calls.append((name, data))
        return "rendered"

    song = parse_song(_song_data())
    out = assemblify(song, ENCODER, template="custom", render=fake_render, format_timestamp=lambda ms: "then")

    assert out == "rendered"
    assert len(calls) == 1
    name, data = calls[0]
    assert name == "custom"
    assert data["meta"]["created"] == "then"


def test_renderer_failure_propagates() -> None:
    def broken_render(name, data):
        raise OSError("template store unavailable")

    with pytest.raises(OSError, match="template store unavailable"):
        assemblify(parse_song(_song_data()), ENCODER, render=broken_render)


def test_unknown_template_is_fatal() -> None:
    with pytest.raises(KeyError, match="unknown template 'nes'"):
        assemblify(parse_song(_song_data()), ENCODER, template="nes")


def test_asm_document_layout() -> None:
    asm = assemblify(parse_song(_song_data()), ENCODER)

    assert asm.startswith("; Demo\n; by Someone\n; created 14-07-2017 02:40:00\n")
    assert "TEMPODELAY equ 6\n" in asm
    assert "HATSTART   equ 2\n" in asm
    assert "    byte 31, 255\n    byte 255, 255\n    byte 255, 255\n    byte 255, 255\n" in asm
    assert "    byte 255, 255\n    byte 255, 255\n    byte 240, 255\n" in asm

    order = [
        "Pattern1\n",
        "patternArrayH\n    word",
        "patternArrayL\n    word",
        "song1\n    byte 1\n",
        "song2\n    byte 2\n",
        "hatPattern\n    byte %00001000\n",
    ]
    positions = [asm.index(marker) for marker in order]
    assert positions == sorted(positions)


def test_asm_output_is_deterministic() -> None:
    data = _song_data()
    assert assemblify(parse_song(data), ENCODER) == assemblify(parse_song(data), ENCODER)


def test_render_formats_nested_bag() -> None:
    TEMPLATES["title-only"] = "{meta[title]}/{patterns[channel1sequence]}"
    try:
        assert render("title-only", {"meta": {"title": "x"}, "patterns": {"channel1sequence": "y"}}) == "x/y"
    finally:
        del TEMPLATES["title-only"]


def test_format_timestamp_at_upper_bound() -> None:
    assert format_timestamp(MAX_TIMESTAMP_MS) == "31-12-9999 23:59:59"
