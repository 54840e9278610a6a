"""Helpers for preparing casing sections and tabulating solved rows."""

from __future__ import annotations

import math
from typing import Iterable, Mapping

import pandas as pd

from casing_model import LENGTH_KEYS, SectionSolution, row_length
from rating_utils import calculate_rating

# Column headings accepted by :func:`rows_from_frame`.
FRAME_COLUMNS = {
    "External pressure": "external_pressure",
    "Metal type": "metal_type",
    "Metal grade": "metal_type",
    "Tensile strength": "tensile_strength",
    "Unit weight": "unit_weight",
    "Internal diameter": "internal_diameter",
    "Depth": "depth",
    "HAD": "rating",
    "Rating": "rating",
}


def section_names(count: int) -> list[str]:
    """Return display names for ``count`` casing sections, deepest first."""

    try:
        total = int(count)
    except (TypeError, ValueError):
        return []
    if total <= 0:
        return []
    if total == 1:
        return ["Production"]
    if total == 3:
        return ["Production", "Intermediate", "Surface"]
    names = ["Production"]
    names.extend(f"Intermediate {idx}" for idx in range(1, total - 1))
    names.append("Surface")
    return names


def collect_candidate_rows(
    catalogue_rows: Iterable[Mapping[str, object]],
    depth: float,
    *,
    surface: bool = False,
) -> tuple[list[dict], bool]:
    """Accumulate candidate rows until one is rated for ``depth``.

    ``catalogue_rows`` are the specification rows already filtered to one
    casing size and grade.  Rows are taken in order of increasing external
    pressure; the first row whose rating reaches ``depth`` is capped to it
    and ends the scan.  Surface rows are always stamped with ``depth``.

    Returns the rows sorted by rating (ascending) and whether a sufficient
    row was found.
    """

    target = float(depth)
    if target <= 0:
        raise ValueError("Section depth must be positive")

    def _pressure(entry: Mapping[str, object]) -> float:
        try:
            return float(entry.get("external_pressure", 0.0))
        except (TypeError, ValueError):
            return 0.0

    collected: list[dict] = []
    sufficient = False
    for entry in sorted(catalogue_rows, key=_pressure):
        pressure = _pressure(entry)
        metal_type = str(entry.get("metal_type") or "")
        rating = calculate_rating(pressure, metal_type)
        row = {
            "rating": rating,
            "external_pressure": pressure,
            "metal_type": metal_type,
            "tensile_strength": entry.get("tensile_strength"),
            "unit_weight": entry.get("unit_weight"),
            "internal_diameter": entry.get("internal_diameter"),
        }
        if surface:
            row["depth"] = target
            row["rating"] = min(rating, target)
        collected.append(row)
        if rating >= target:
            row["rating"] = target
            row["depth"] = target
            sufficient = True
            break

    collected.sort(key=lambda item: item["rating"])
    return collected, sufficient


def _clean_value(value: object) -> object:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def rows_from_frame(frame: pd.DataFrame | Iterable[dict] | None) -> list[dict]:
    """Return candidate row dictionaries from a tabular section listing."""

    if frame is None:
        return []
    if not isinstance(frame, pd.DataFrame):
        frame = pd.DataFrame(list(frame))
    if frame.empty:
        return []
    renamed = frame.rename(columns=FRAME_COLUMNS)
    return [
        {key: _clean_value(val) for key, val in record.items()}
        for record in renamed.to_dict("records")
    ]


def solution_frame(solution: SectionSolution) -> pd.DataFrame:
    """Tabulate the annotated rows of ``solution`` for display."""

    records = []
    for row in solution.rows:
        segment = next((idx + 1 for idx, key in enumerate(LENGTH_KEYS) if row.get(key) is not None), None)
        records.append(
            {
                "Section": solution.section,
                "Rating": row.get("rating", row.get("had")),
                "Metal type": row.get("metal_type", row.get("metalType")),
                "Segment": segment,
                "Length": row_length(row),
                "Condition": row.get("condition_value"),
                "Satisfied": bool(row.get("condition_satisfied", False)),
            }
        )
    columns = ["Section", "Rating", "Metal type", "Segment", "Length", "Condition", "Satisfied"]
    return pd.DataFrame(records, columns=columns)


__all__ = [
    "section_names",
    "collect_candidate_rows",
    "rows_from_frame",
    "solution_frame",
]
