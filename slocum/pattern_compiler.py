"""Compile one channel of a pattern into 8-slot assembly blocks.

The sequencer kit always runs 32 slots per pattern.  Shorter patterns are
spread across the grid (a 16-step pattern fills every other slot), and the
resulting 32 slots are cut into four blocks of 8:

    byte A, B          ; 4 lines, two slot codes each
    ...
                       ; blank line
    byte %aaaaaaaa     ; accent bits, one per slot

Identical blocks are stored once.  Each block is keyed by the SHA-1 of its
stripped text; ``CompileContext`` keeps the blocks in first-seen order so
labels can be handed out deterministically afterwards.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .song import SEQUENCER_SLOTS, Channel, Step
from .tia import REST_CODE

BLOCK_SLOTS = 8
BLOCKS_PER_PATTERN = SEQUENCER_SLOTS // BLOCK_SLOTS
INDENT = "    "

EncodeFn = Callable[[int, Optional[Step]], Optional[int]]


def block_identity(text: str) -> str:
    return hashlib.sha1(text.strip().encode("utf-8")).hexdigest()


@dataclass
class CompileContext:
    """Per-call block store.  Never share one between compilations."""

    blocks: List[Tuple[str, str]] = field(default_factory=list)
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    def record(self, text: str) -> str:
        identity = block_identity(text)
        pos = self._index.get(identity)
        if pos is None:
            self._index[identity] = len(self.blocks)
            self.blocks.append((identity, text))
        elif self.blocks[pos][1] != text:
            raise RuntimeError(
                f"block identity collision for {identity}: "
                "two different blocks hash to the same key"
            )
        return identity

    def __len__(self) -> int:
        return len(self.blocks)

    def __contains__(self, identity: object) -> bool:
        return identity in self._index


@dataclass(frozen=True)
class CompiledChannel:
    block_ids: List[str]
    attenuate: bool


def expand_steps(channel: Channel, steps: int) -> List[Optional[Step]]:
    """Place ``steps`` channel steps onto the 32-slot grid."""

    if steps <= 0 or SEQUENCER_SLOTS % steps != 0:
        raise ValueError(f"step count {steps} does not evenly divide {SEQUENCER_SLOTS}")
    if len(channel.steps) != steps:
        raise ValueError(f"channel holds {len(channel.steps)} steps, pattern declares {steps}")

    increment = SEQUENCER_SLOTS // steps
    slots: List[Optional[Step]] = [None] * SEQUENCER_SLOTS
    for idx, step in enumerate(channel.steps):
        slots[idx * increment] = step
    return slots


def compile_channel(
    channel: Channel,
    steps: int,
    encode: EncodeFn,
    tuning: int,
    ctx: CompileContext,
) -> CompiledChannel:
    slots = expand_steps(channel, steps)
    block_ids: List[str] = []

    for start in range(0, SEQUENCER_SLOTS, BLOCK_SLOTS):
        lines: List[str] = []
        accents: List[str] = []
        codes: List[int] = []

        for step in slots[start : start + BLOCK_SLOTS]:
            code = encode(tuning, step)
            accents.append("1" if code is not None and step is not None and step.accent else "0")
            codes.append(REST_CODE if code is None else code)

        for pair in range(0, BLOCK_SLOTS, 2):
            lines.append(f"{INDENT}byte {codes[pair]}, {codes[pair + 1]}\n")

        text = "".join(lines) + f"\n{INDENT}byte %{''.join(accents)}\n\n"
        block_ids.append(ctx.record(text))

    return CompiledChannel(block_ids=block_ids, attenuate=channel.attenuate)
