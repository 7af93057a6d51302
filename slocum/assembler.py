"""Turn a song into assembly source for the Slocum sequencer kit."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping

from . import templates
from .hats import encode_hat_pattern
from .pattern_table import assemble_pattern_tables
from .song import Song
from .tia import NoteEncoder

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "asm"

RenderFn = Callable[[str, Mapping[str, object]], str]
TimestampFn = Callable[[int], str]


def format_timestamp(timestamp_ms: int) -> str:
    """Render a millisecond epoch timestamp as a UTC date string."""

    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%d-%m-%Y %H:%M:%S")


def build_data_bag(
    song: Song,
    encoder: NoteEncoder,
    *,
    format_timestamp: TimestampFn = format_timestamp,
) -> Dict[str, object]:
    # asdict() deep-copies, so the caller's song is never touched
    data = asdict(song)
    data["meta"]["created"] = format_timestamp(song.meta.created)
    data["patterns"] = assemble_pattern_tables(
        song.patterns, encoder.encode, song.meta.tuning
    ).to_dict()
    data["hats"]["pattern"] = encode_hat_pattern(song.hats.pattern)
    return data


def assemblify(
    song: Song,
    encoder: NoteEncoder,
    *,
    template: str = DEFAULT_TEMPLATE,
    render: RenderFn = templates.render,
    format_timestamp: TimestampFn = format_timestamp,
) -> str:
    """Compile ``song`` and render it through the named template.

    Renderer failures propagate unchanged.
    """
    data = build_data_bag(song, encoder, format_timestamp=format_timestamp)
    logger.debug("rendering song %r with template %r", song.meta.title, template)
    return render(template, data)
