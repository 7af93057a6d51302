from pathlib import Path
import sys
from typing import Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import slocum.pattern_compiler as pattern_compiler  # noqa: E402
from slocum.pattern_compiler import (  # noqa: E402
    CompileContext,
    block_identity,
    compile_channel,
    expand_steps,
)
from slocum.song import Channel, Step  # noqa: E402
from slocum.tia import load_tuning_tables  # noqa: E402

ENCODER = load_tuning_tables(REPO_ROOT / "tests" / "fixtures" / "tuning_tables.json")

REST_BLOCK = "    byte 255, 255\n" * 4 + "\n    byte %00000000\n\n"


def _channel(steps: int, placed: Optional[dict] = None, *, attenuate: bool = False) -> Channel:
    step_list = [None] * steps
    for idx, step in (placed or {}).items():
        step_list[idx] = step
    return Channel(attenuate=attenuate, steps=step_list)


def _compile(channel: Channel, steps: int, ctx: Optional[CompileContext] = None):
    ctx = ctx if ctx is not None else CompileContext()
    return compile_channel(channel, steps, ENCODER.encode, 0, ctx), ctx


def test_expand_16_steps_fills_every_other_slot() -> None:
    a, b = Step(sound=8), Step(sound=9)
    slots = expand_steps(_channel(16, {0: a, 15: b}), 16)
    assert len(slots) == 32
    assert slots[0] is a
    assert slots[30] is b
    assert all(s is None for i, s in enumerate(slots) if i not in (0, 30))


def test_expand_32_steps_is_identity() -> None:
    steps = [Step(sound=8) if i % 3 == 0 else None for i in range(32)]
    assert expand_steps(Channel(attenuate=False, steps=steps), 32) == steps


def test_expand_rejects_non_dividing_step_count() -> None:
    with pytest.raises(ValueError, match="does not evenly divide 32"):
        expand_steps(_channel(12), 12)


def test_expand_rejects_short_channel() -> None:
    with pytest.raises(ValueError, match="channel holds 15 steps, pattern declares 16"):
        expand_steps(_channel(15), 16)


def test_empty_channel_is_four_identical_rest_blocks() -> None:
    compiled, ctx = _compile(_channel(16), 16)

    assert len(ctx) == 1
    identity, text = ctx.blocks[0]
    assert text == REST_BLOCK
    assert identity == block_identity(REST_BLOCK)
    assert compiled.block_ids == [identity] * 4
    assert not compiled.attenuate


def test_block_text_and_accents_for_16_steps() -> None:
    channel = _channel(
        16,
        {
            0: Step(sound=1, note="C", octave=3, accent=True),
            1: Step(sound=8),
            3: Step(sound=1, note="G", octave=3, accent=True),
        },
    )
    compiled, ctx = _compile(channel, 16)

    first = ctx.blocks[0][1]
    assert first == (
        "    byte 31, 255\n"
        "    byte 240, 255\n"
        "    byte 255, 255\n"
        "    byte 20, 255\n"
        "\n    byte %10000010\n\n"
    )
    assert compiled.block_ids[1:] == [block_identity(REST_BLOCK)] * 3
    assert len(ctx) == 2


def test_32_step_pattern_uses_every_slot() -> None:
    channel = _channel(32, {1: Step(sound=8), 2: Step(sound=9, accent=True)})
    _, ctx = _compile(channel, 32)
    assert ctx.blocks[0][1].startswith("    byte 255, 240\n    byte 241, 255\n")
    assert "byte %00100000" in ctx.blocks[0][1]


def test_accent_on_rest_is_ignored() -> None:
    channel = _channel(16, {0: Step(accent=True), 1: Step(sound=1, accent=True)})
    _, ctx = _compile(channel, 16)
    assert ctx.blocks[0][1] == REST_BLOCK


def test_code_zero_is_not_a_rest() -> None:
    channel = _channel(16, {0: Step(sound=2, note="C", octave=3, accent=True)})
    _, ctx = _compile(channel, 16)
    assert ctx.blocks[0][1].startswith("    byte 0, 255\n")
    assert "byte %10000000" in ctx.blocks[0][1]


def test_context_deduplicates_across_channels() -> None:
    ctx = CompileContext()
    step = Step(sound=8)
    a, _ = _compile(_channel(16, {0: step}), 16, ctx)
    b, _ = _compile(_channel(16, {0: step}, attenuate=True), 16, ctx)

    assert a.block_ids == b.block_ids
    assert b.attenuate
    assert len(ctx) == 2
    assert a.block_ids[0] in ctx


def test_identity_ignores_surrounding_whitespace() -> None:
    assert block_identity(REST_BLOCK) == block_identity(REST_BLOCK.strip())


def test_identity_collision_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(pattern_compiler, "block_identity", lambda text: "same")
    ctx = CompileContext()
    assert ctx.record("one") == "same"
    assert ctx.record("one") == "same"
    with pytest.raises(RuntimeError, match="block identity collision for same"):
        ctx.record("two")
