"""Drill collar and drill pipe sizing helpers."""

from __future__ import annotations

import math
from typing import Mapping, Sequence

import numpy as np

from section_utils import section_names

DEFAULT_L0C = 76.91
SURFACE_L0C = 68.37
JOINT_LENGTH_M = 9.0
DEFAULT_BUOYANCY = 0.862
DEFAULT_PIPE_AREA = 34.01
DEFAULT_INNER_AREA = 92.62
STEEL_DENSITY = 7.85
STRESS_SAFETY_FACTOR = 1.5

# Minimum tensile strength (MPa) and grade for the drill pipe catalogue.
DRILL_PIPE_STRENGTHS = (517.0, 655.0, 725.0, 930.0)
DRILL_PIPE_GRADES = ("E 75", "X 95", "G 105", "S135")


def nearest_drill_collar(diameters: Sequence[float], value: float) -> float | None:
    """Return the catalogue diameter closest to ``value``."""

    if diameters is None or len(diameters) == 0:
        return None
    arr = np.asarray(diameters, dtype=float)
    return float(arr[int(np.argmin(np.abs(arr - float(value))))])


def nearest_strength(strengths: Sequence[float], target: float) -> float:
    """Return the closest strength, never below the weakest entry."""

    if strengths is None or len(strengths) == 0:
        return 0.0
    if target <= strengths[0]:
        return float(strengths[0])
    arr = np.asarray(strengths, dtype=float)
    return float(arr[int(np.argmin(np.abs(arr - float(target))))])


def grade_for_strength(strength: float | None) -> str:
    if strength is None:
        return "N/A"
    for limit, grade in zip(DRILL_PIPE_STRENGTHS, DRILL_PIPE_GRADES):
        if strength <= limit:
            return grade
    return DRILL_PIPE_GRADES[-1]


def collar_section_names(count: int) -> list[str]:
    """Return drill collar section names for ``count`` sections.

    Strings of four or more sections name their intermediates Upper,
    Middle and Lower instead of numbering them.
    """

    names = section_names(count)
    if len(names) < 4:
        return names
    middle = ["Upper Intermediate"]
    if len(names) >= 5:
        middle.append("Middle Intermediate")
    middle.extend(["Lower Intermediate"] * (len(names) - 2 - len(middle)))
    return [names[0], *middle, names[-1]]


def drill_collar_sizes(
    at_head_values: Sequence[float],
    bit_sizes: Sequence[float],
    diameters: Sequence[float],
) -> list[dict]:
    """Pick a drill collar per section from ``2 * at_head - bit_size``."""

    count = min(len(at_head_values), len(bit_sizes))
    names = collar_section_names(count)
    results = []
    for idx in range(count):
        name = names[idx]
        at_head = float(at_head_values[idx])
        bit_size = float(bit_sizes[idx])
        collar = nearest_drill_collar(diameters, 2.0 * at_head - bit_size)
        l0c = SURFACE_L0C if name == "Surface" else DEFAULT_L0C
        results.append(
            {
                "section": name,
                "at_head": at_head,
                "bit_size": bit_size,
                "drill_collar": collar or 0.0,
                "number_of_columns": math.ceil(l0c / JOINT_LENGTH_M),
                "L0c": l0c,
            }
        )
    return results


def _param(instance: Mapping[str, object], key: str, default: float = 0.0) -> float:
    try:
        value = float(instance.get(key, default) or default)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return value


def design_drill_string(
    instance: Mapping[str, object],
    bit_size: float,
    collar_diameter_mm: float,
    pipe_properties: Mapping[str, float] | None = None,
) -> dict:
    """Return drill pipe loads, required grade and maximum pipe length.

    ``instance`` carries the well parameters (``WOB`` in tonnes, ``C``,
    ``qc``, ``H``, ``Lhw``, ``qp``, ``P``, ``gamma``, ``qhw``, ``Dhw``,
    ``Dep``, ``n``, ``d_alpha`` and optional ``K1..K3``).  ``pipe_properties``
    overrides the catalogue values ``b``, ``Mp``, ``AP`` and ``AIP``.
    Quantities that cannot be evaluated from the inputs are returned as
    ``None``.
    """

    props = dict(pipe_properties or {})
    wob = _param(instance, "WOB")
    c = _param(instance, "C")
    qc = _param(instance, "qc")
    depth = _param(instance, "H")
    lhw = _param(instance, "Lhw")
    qp = _param(instance, "qp")
    pressure = _param(instance, "P")
    gamma = _param(instance, "gamma")
    qhw = _param(instance, "qhw")
    dhw = _param(instance, "Dhw")
    dep = _param(instance, "Dep")
    rpm = _param(instance, "n")
    d_alpha = _param(instance, "d_alpha")
    b = _param(props, "b") or DEFAULT_BUOYANCY
    mp = _param(props, "Mp")
    ap = _param(props, "AP") or DEFAULT_PIPE_AREA
    aip = _param(props, "AIP") or DEFAULT_INNER_AREA

    l0c = wob * 1000.0 / (c * qc * b) if c > 0 and qc > 0 else None
    lp = depth - (lhw + l0c) if depth > 0 and l0c is not None else None

    tension = None
    tec = None
    if lp is not None:
        tension = ((gamma * lp * qp + lhw * qhw + l0c * qc) * b) / ap
        tc = tension + pressure * (aip / ap)
        tec = tc * _param(instance, "K1", 1.0) * _param(instance, "K2", 1.0) * _param(instance, "K3", 1.0)

    dec = float(collar_diameter_mm) / 1000.0
    np_power = 0.0
    if all(v for v in (d_alpha, gamma, lp, dep, l0c, dec, lhw, dhw, rpm)):
        np_power = d_alpha * gamma * (lp * dep ** 2 + l0c * dec ** 2 + lhw * dhw ** 2) * rpm ** 1.7
    nb_power = 0.0
    if wob and bit_size and rpm:
        nb_power = 3.2e-4 * math.sqrt(wob * 1000.0) * (float(bit_size) / 10.0) ** 1.75 * rpm
    tau = 0.0
    if np_power and nb_power and rpm and mp:
        tau = (30.0 * ((np_power + nb_power) * 1e3) / (math.pi * rpm * mp * 1e-9)) * 1e-6

    equivalent = None
    required = None
    strength = None
    lmax = None
    if tec is not None:
        equivalent = math.sqrt((tec * 0.1) ** 2 + 4.0 * tau ** 2)
        required = equivalent * STRESS_SAFETY_FACTOR
        strength = nearest_strength(DRILL_PIPE_STRENGTHS, required)
        radicand = ((strength / STRESS_SAFETY_FACTOR) ** 2 - 4.0 * tau ** 2) * 1e12
        denominator = ((STEEL_DENSITY - gamma) ** 2) * 1e8
        if radicand >= 0 and denominator > 0 and qp > 0:
            lmax = math.sqrt(radicand / denominator) - ((l0c * qc + lhw * qhw) / qp)

    return {
        "L0c": l0c,
        "Lp": lp,
        "T": tension,
        "Tec": tec,
        "tau": tau,
        "equivalent_stress": equivalent,
        "required_strength": required,
        "strength": strength,
        "grade": grade_for_strength(strength),
        "Lmax": lmax,
        "H": depth if depth > 0 else None,
    }


__all__ = [
    "DRILL_PIPE_STRENGTHS",
    "DRILL_PIPE_GRADES",
    "collar_section_names",
    "nearest_drill_collar",
    "nearest_strength",
    "grade_for_strength",
    "drill_collar_sizes",
    "design_drill_string",
]
