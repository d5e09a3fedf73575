"""Version string comparison used by app and platform version filters."""

from __future__ import annotations

import math
import re
from itertools import zip_longest

_VERSION_RE = re.compile(r"(\d+\.)*\d+")
_NUMERIC_PART_RE = re.compile(r"\d+")
_LEXICOGRAPHICAL_PART_RE = re.compile(r"\d+[A-Za-z]*")
_U32_MAX = 0xFFFFFFFF


def _parse_u32(part: str) -> int | None:
    """Parse an unsigned 32-bit decimal integer, or return None."""
    if not part or not part.isascii() or not part.isdigit():
        return None
    number = int(part)
    return number if number <= _U32_MAX else None


def _numeric_parts(text: str) -> list[int]:
    """Numeric parts of the matched version text; parts that do not parse are dropped."""
    return [number for number in map(_parse_u32, text.split(".")) if number is not None]


def _extract_version(value: str) -> list[int]:
    """Numeric parts of the first version-like run in a string (e.g. 1.2.3 in v1.2.3-beta)."""
    match = _VERSION_RE.search(value)
    return _numeric_parts(match.group()) if match else []


def version_compare(v1: str, v2: str) -> float:
    """Compare two version strings.

    Returns 1.0 if v1 is newer, -1.0 if older and 0.0 if equal. Missing parts
    count as zero. If only one side holds a version, the result is NaN.
    """
    v1_parts = _extract_version(v1)
    v2_parts = _extract_version(v2)

    if not v1_parts and not v2_parts:
        return 0.0
    if not v1_parts or not v2_parts:
        return math.nan

    for left, right in zip_longest(v1_parts, v2_parts, fillvalue=0):
        if left > right:
            return 1.0
        if left < right:
            return -1.0
    return 0.0


def version_compare_equality(v1: str, v2: str) -> bool:
    """Whether two version strings are the same version.

    The numeric parts must match exactly, part count included, and any
    prefix or suffix around the version must be identical. Dots directly
    after the version are ignored.
    """
    m1 = _VERSION_RE.search(v1)
    m2 = _VERSION_RE.search(v2)
    if m1 is None or m2 is None:
        return False

    if _numeric_parts(m1.group()) != _numeric_parts(m2.group()):
        return False

    v1_prefix = v1[: m1.start()]
    v2_prefix = v2[: m2.start()]
    v1_suffix = v1[m1.end():].lstrip(".")
    v2_suffix = v2[m2.end():].lstrip(".")

    if bool(v1_prefix) != bool(v2_prefix) or bool(v1_suffix) != bool(v2_suffix):
        return False
    if v1_suffix != v2_suffix:
        return False
    return v1_prefix == v2_prefix


def _to_float(part: str) -> float:
    if part.isascii():
        try:
            return float(part)
        except ValueError:
            pass
    return math.nan


def semver_compare(
    v1: str, v2: str, lexicographical: bool = False, zero_extend: bool = False
) -> float:
    """Compare dot-separated versions part by part.

    Every part must be digits (optionally followed by letters when
    lexicographical); otherwise the result is NaN. With zero_extend the
    shorter version is padded with zeros. In lexicographical mode valid
    versions always compare equal.
    """
    v1_parts = v1.split(".")
    v2_parts = v2.split(".")
    pattern = _LEXICOGRAPHICAL_PART_RE if lexicographical else _NUMERIC_PART_RE

    def valid(parts: list[str]) -> bool:
        return bool(parts) and all(pattern.fullmatch(part) for part in parts)

    if not valid(v1_parts) or not valid(v2_parts):
        return math.nan

    if zero_extend:
        width = max(len(v1_parts), len(v2_parts))
        v1_parts += ["0"] * (width - len(v1_parts))
        v2_parts += ["0"] * (width - len(v2_parts))

    v1_numbers = [] if lexicographical else [_to_float(p) for p in v1_parts]
    v2_numbers = [] if lexicographical else [_to_float(p) for p in v2_parts]

    for index, left in enumerate(v1_numbers):
        if index == len(v2_numbers):
            return 1.0
        right = v2_numbers[index]
        if left == right:
            continue
        return 1.0 if left > right else -1.0

    if len(v1_numbers) != len(v2_numbers):
        return -1.0
    return 0.0