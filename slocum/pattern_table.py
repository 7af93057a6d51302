"""Route compiled channels into the high/low pattern tables.

Every channel of every pattern becomes one table entry (four block
references).  Attenuated channels go to the low volume table, whose
indices start at 128; everything else goes to the high volume table,
starting at 0.  Each physical channel gets a sequence track listing the
table index it plays for each pattern.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence, Tuple

from .pattern_compiler import INDENT, CompileContext, EncodeFn, compile_channel
from .song import CHANNELS_PER_PATTERN, Pattern

logger = logging.getLogger(__name__)

HIGH_TABLE_BASE = 0
LOW_TABLE_BASE = 128
# highest sequence byte each table may produce
HIGH_TABLE_MAX = LOW_TABLE_BASE - 1
LOW_TABLE_MAX = 255
LABEL_PREFIX = "Pattern"


@dataclass(frozen=True)
class PatternTables:
    patterns: str
    pattern_array_h: str
    pattern_array_l: str
    channel1sequence: str
    channel2sequence: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def assign_labels(ctx: CompileContext) -> List[Tuple[str, str]]:
    """Return (identity, label) pairs in first-occurrence order."""

    return [(identity, f"{LABEL_PREFIX}{pos + 1}") for pos, (identity, _) in enumerate(ctx.blocks)]


def relabel(text: str, labels: Sequence[Tuple[str, str]]) -> str:
    """Replace every identity in ``text`` with its label in a single pass."""

    if not labels:
        return text
    mapping = dict(labels)
    pattern = re.compile("|".join(re.escape(identity) for identity, _ in labels))
    return pattern.sub(lambda m: mapping[m.group(0)], text)


def assemble_pattern_tables(
    patterns: Sequence[Pattern],
    encode: EncodeFn,
    tuning: int,
) -> PatternTables:
    ctx = CompileContext()
    high_index = HIGH_TABLE_BASE
    low_index = LOW_TABLE_BASE

    array_h: List[str] = []
    array_l: List[str] = []
    sequences: List[List[str]] = [[] for _ in range(CHANNELS_PER_PATTERN)]

    for pidx, pattern in enumerate(patterns):
        if len(pattern.channels) != CHANNELS_PER_PATTERN:
            raise ValueError(
                f"patterns[{pidx}] has {len(pattern.channels)} channels, "
                f"expected {CHANNELS_PER_PATTERN}"
            )
        for channel_index, channel in enumerate(pattern.channels):
            compiled = compile_channel(channel, pattern.steps, encode, tuning, ctx)
            refs = ", ".join(compiled.block_ids)

            # the table comment shows the slot index, the sequence plays index + 1
            if compiled.attenuate:
                if low_index >= LOW_TABLE_MAX:
                    raise ValueError(
                        f"patterns[{pidx}].channels[{channel_index}]: low volume table is full "
                        f"({LOW_TABLE_MAX - LOW_TABLE_BASE} attenuated entries max)"
                    )
                array_l.append(f"{INDENT}word {refs} ; {low_index}\n")
                low_index += 1
                table_index = low_index
            else:
                if high_index >= HIGH_TABLE_MAX:
                    raise ValueError(
                        f"patterns[{pidx}].channels[{channel_index}]: high volume table is full "
                        f"({HIGH_TABLE_MAX - HIGH_TABLE_BASE} entries max)"
                    )
                array_h.append(f"{INDENT}word {refs} ; {high_index}\n")
                high_index += 1
                table_index = high_index

            sequences[channel_index].append(f"{INDENT}byte {table_index}\n")

    labels = assign_labels(ctx)
    logger.debug(
        "compiled %d pattern(s) into %d unique block(s); high=%d low=%d",
        len(patterns),
        len(labels),
        len(array_h),
        len(array_l),
    )

    content = "".join(f"{label}\n{text}" for (_, label), (_, text) in zip(labels, ctx.blocks))

    return PatternTables(
        patterns=content,
        pattern_array_h=relabel("".join(array_h), labels),
        pattern_array_l=relabel("".join(array_l), labels),
        channel1sequence="".join(sequences[0]),
        channel2sequence="".join(sequences[1]),
    )
