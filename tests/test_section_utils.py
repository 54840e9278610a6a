"""Tests for section naming, candidate collection and tabulation."""

from __future__ import annotations

import math
import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from casing_model import solve_section
from rating_utils import calculate_rating
from section_utils import collect_candidate_rows, rows_from_frame, section_names, solution_frame


@pytest.mark.parametrize(
    "count, expected",
    [
        (0, []),
        (1, ["Production"]),
        (2, ["Production", "Surface"]),
        (3, ["Production", "Intermediate", "Surface"]),
        (4, ["Production", "Intermediate 1", "Intermediate 2", "Surface"]),
        ("x", []),
    ],
)
def test_section_names(count, expected):
    assert section_names(count) == expected


def _catalogue():
    return [
        {"external_pressure": 30.0, "metal_type": "N-80", "tensile_strength": 700.0, "unit_weight": 34.0},
        {"external_pressure": 10.0, "metal_type": "N-80", "tensile_strength": 600.0, "unit_weight": 30.0},
        {"external_pressure": 20.0, "metal_type": "N-80", "tensile_strength": 650.0, "unit_weight": 32.0},
    ]


def test_collect_candidate_rows_stops_at_sufficient_rating():
    rows, sufficient = collect_candidate_rows(_catalogue(), 1500.0)

    assert sufficient
    assert [row["external_pressure"] for row in rows] == [10.0, 20.0]
    assert rows[0]["rating"] == pytest.approx(calculate_rating(10.0, "N-80"))
    assert rows[1]["rating"] == 1500.0
    assert rows[1]["depth"] == 1500.0
    assert "depth" not in rows[0]


def test_collect_candidate_rows_reports_insufficient_catalogue():
    rows, sufficient = collect_candidate_rows(_catalogue(), 5000.0)

    assert not sufficient
    assert len(rows) == 3
    assert [row["rating"] for row in rows] == sorted(row["rating"] for row in rows)


def test_collect_candidate_rows_caps_surface_rows():
    rows, sufficient = collect_candidate_rows(_catalogue(), 1000.0, surface=True)

    assert sufficient
    assert all(row["depth"] == 1000.0 for row in rows)
    assert all(row["rating"] <= 1000.0 for row in rows)


def test_collect_candidate_rows_rejects_bad_depth():
    with pytest.raises(ValueError):
        collect_candidate_rows(_catalogue(), 0.0)


def test_rows_from_frame_renames_columns_and_drops_nan():
    frame = pd.DataFrame(
        {
            "HAD": [2400.0, 1800.0],
            "Metal type": ["N-80", "L-80"],
            "Tensile strength": [600.0, 650.0],
            "Unit weight": [30.0, 32.0],
            "Depth": [2000.0, float("nan")],
        }
    )
    rows = rows_from_frame(frame)

    assert rows[0]["rating"] == 2400.0
    assert rows[1]["metal_type"] == "L-80"
    assert rows[0]["depth"] == 2000.0
    assert rows[1]["depth"] is None


def test_rows_from_frame_handles_empty_inputs():
    assert rows_from_frame(None) == []
    assert rows_from_frame(pd.DataFrame()) == []
    assert rows_from_frame([{"rating": 5.0}]) == [{"rating": 5.0}]


def test_solution_frame_lists_each_row():
    rows = [
        {"rating": 2400.0, "external_pressure": 20.0, "tensile_strength": 600.0, "unit_weight": 30.0, "metal_type": "N-80"},
        {"rating": 1800.0, "external_pressure": 20.0, "tensile_strength": 650.0, "unit_weight": 32.0, "metal_type": "N-80"},
        {"rating": 1200.0, "external_pressure": 20.0, "tensile_strength": 700.0, "unit_weight": 34.0, "metal_type": "N-80"},
    ]
    solution = solve_section(rows, 2000.0, section="Production")
    frame = solution_frame(solution)

    assert list(frame.columns) == ["Section", "Rating", "Metal type", "Segment", "Length", "Condition", "Satisfied"]
    assert len(frame) == 3
    assert list(frame["Segment"]) == [1, 2, 3]
    assert set(frame["Section"]) == {"Production"}
    assert math.isclose(frame["Length"].sum(), solution.total_length)
