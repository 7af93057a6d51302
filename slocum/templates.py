"""Named document skeletons for compiled songs.

Templates are plain ``str.format`` strings addressed into the nested data
bag built by ``slocum.assembler.build_data_bag`` (``{meta[title]}``,
``{patterns[pattern_array_h]}``, ...).  DASM source uses no braces, so no
escaping is needed in the skeletons.
"""

from __future__ import annotations

from typing import Dict, Mapping

ASM_TEMPLATE = """\
; {meta[title]}
; by {meta[author]}
; created {meta[created]}
;
; song data for Paul Slocum's Atari 2600 Sequencer Kit

TEMPODELAY equ {meta[tempo]}

HATSTART   equ {hats[start]}
HATVOLUME  equ {hats[volume]}
HATPITCH   equ {hats[pitch]}
HATSOUND   equ {hats[sound]}

; ---------------------------------------------------------------
; patterns

{patterns[patterns]}
; ---------------------------------------------------------------
; high volume pattern table

patternArrayH
{patterns[pattern_array_h]}
; ---------------------------------------------------------------
; low volume pattern table

patternArrayL
{patterns[pattern_array_l]}
; ---------------------------------------------------------------
; song sequence

song1
{patterns[channel1sequence]}
song2
{patterns[channel2sequence]}
; ---------------------------------------------------------------
; hi-hat pattern

hatPattern
{hats[pattern]}
"""

TEMPLATES: Dict[str, str] = {
    "asm": ASM_TEMPLATE,
}


def render(name: str, data: Mapping[str, object]) -> str:
    try:
        template = TEMPLATES[name]
    except KeyError:
        known = ", ".join(sorted(TEMPLATES))
        raise KeyError(f"unknown template {name!r}; known templates: {known}") from None
    return template.format_map(data)
