"""Casing rating helpers based on the grade safety-factor table."""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)

# Safety factor ``s`` per API casing grade.  Grades missing from the table
# fall back to ``DEFAULT_SAFETY_FACTOR`` without raising.
SAFETY_FACTORS = {
    "K-55": 1.05,
    "L-80": 1.08,
    "N-80": 1.08,
    "P-110": 1.125,
    "Q-125": 1.125,
    "T-95": 1.125,
    "C-90": 1.125,
}
DEFAULT_SAFETY_FACTOR = 1.08
RATING_DESIGN_FACTOR = 1.08
MM_TO_INCH = 0.03937

_FRACTIONS = {
    0.0625: "1/16",
    0.125: "1/8",
    0.1875: "3/16",
    0.25: "1/4",
    0.3125: "5/16",
    0.375: "3/8",
    0.4375: "7/16",
    0.5: "1/2",
    0.5625: "9/16",
    0.625: "5/8",
    0.6875: "11/16",
    0.75: "3/4",
    0.8125: "13/16",
    0.875: "7/8",
    0.9375: "15/16",
}


def safety_factor(metal_type: str | None) -> float:
    """Return the safety factor for ``metal_type`` or the default."""

    grade = str(metal_type or "").strip().upper()
    factor = SAFETY_FACTORS.get(grade)
    if factor is None:
        logger.debug("Unknown metal grade %r, using default factor %.3f", metal_type, DEFAULT_SAFETY_FACTOR)
        return DEFAULT_SAFETY_FACTOR
    return factor


def calculate_rating(external_pressure: float, metal_type: str | None) -> float:
    """Return the normalised rating ``100 * p / (s * 1.08)``.

    ``external_pressure`` values that cannot be converted to a finite float
    produce a rating of ``0`` so callers can treat the row as unusable.
    """

    try:
        pressure = float(external_pressure)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(pressure):
        return 0.0
    return (100.0 * pressure) / (safety_factor(metal_type) * RATING_DESIGN_FACTOR)


def mm_to_fractional_inches(mm: float) -> str:
    """Convert ``mm`` to whole inches plus the nearest sixteenth fraction."""

    inches = float(mm) * MM_TO_INCH
    whole = math.floor(inches)
    fraction = inches - whole
    nearest = min(_FRACTIONS, key=lambda frac: abs(frac - fraction))
    # A remainder closer to zero than to 1/16 renders as whole inches.
    if abs(nearest - fraction) < 0.05 and fraction >= nearest / 2.0:
        return f"{whole} {_FRACTIONS[nearest]}"
    return f"{whole}"


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_mm_with_inches(value: float | str | None) -> str:
    """Return ``"<mm> mm (<inches>")"`` or ``"-"`` for missing values."""

    if value in (None, "", 0):
        return "-"
    try:
        num = float(value)
    except (TypeError, ValueError):
        return "-"
    if math.isnan(num):
        return "-"
    return f'{_format_number(num)} mm ({mm_to_fractional_inches(num)}")'


__all__ = [
    "SAFETY_FACTORS",
    "DEFAULT_SAFETY_FACTOR",
    "safety_factor",
    "calculate_rating",
    "mm_to_fractional_inches",
    "format_mm_with_inches",
]
