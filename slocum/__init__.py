"""Compile Slocum tracker songs into Atari 2600 Sequencer Kit assembly."""

from .assembler import (  # noqa: F401
    DEFAULT_TEMPLATE,
    assemblify,
    build_data_bag,
    format_timestamp,
)
from .hats import encode_hat_pattern  # noqa: F401
from .pattern_compiler import (  # noqa: F401
    BLOCK_SLOTS,
    CompileContext,
    CompiledChannel,
    block_identity,
    compile_channel,
    expand_steps,
)
from .pattern_table import (  # noqa: F401
    HIGH_TABLE_BASE,
    LOW_TABLE_BASE,
    PatternTables,
    assemble_pattern_tables,
    assign_labels,
    relabel,
)
from .song import (  # noqa: F401
    HAT_PATTERN_LENGTH,
    SEQUENCER_SLOTS,
    VALID_STEP_COUNTS,
    Channel,
    HatConfig,
    Pattern,
    Song,
    SongMeta,
    Step,
    load_song,
    new_song_data,
    parse_song,
)
from .tia import (  # noqa: F401
    REST_CODE,
    NoteEncoder,
    TuningTableEncoder,
    load_tuning_tables,
)
