"""Licence plate normalisation."""

from __future__ import annotations

import re
from typing import NamedTuple

_NOISE = re.compile(r"[^a-zA-Zа-яА-Я0-9]")

# Russian civil plates only use the twelve letters that exist in both alphabets.
_RUS_PLATE = re.compile(r"^([АВЕКМНОРСТУХ])(\d{3})([АВЕКМНОРСТУХ]{2})(\d{2,3})$")


class PlateParts(NamedTuple):
    letter: str
    digits: str
    series: str
    region: str


def normalize_plate(plate: str | None) -> str:
    """Strip separators and upper-case: ``"а 456 в_с 99"`` → ``"А456ВС99"``."""
    if not plate:
        return ""
    return _NOISE.sub("", plate).upper()


def split_plate(plate: str | None) -> PlateParts | None:
    """Split a Russian civil plate into its parts, or ``None`` if it isn't one."""
    match = _RUS_PLATE.match(normalize_plate(plate))
    if match is None:
        return None
    return PlateParts(*match.groups())
