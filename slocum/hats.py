from __future__ import annotations

from typing import Sequence

from .pattern_compiler import BLOCK_SLOTS, INDENT


def encode_hat_pattern(pattern: Sequence[int]) -> str:
    """Pack the hi-hat pattern into ``byte %xxxxxxxx`` lines, 8 slots each."""

    lines = []
    for start in range(0, len(pattern), BLOCK_SLOTS):
        digits = "".join(str(value) for value in pattern[start : start + BLOCK_SLOTS])
        lines.append(f"{INDENT}byte %{digits}")
    return "\n".join(lines)
