"""Tests for drill collar and drill pipe sizing."""

from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from drill_collar_utils import (
    collar_section_names,
    design_drill_string,
    drill_collar_sizes,
    grade_for_strength,
    nearest_drill_collar,
    nearest_strength,
)

DIAMETERS = [120.6, 158.8, 203.2, 228.6]


def test_nearest_drill_collar():
    assert nearest_drill_collar(DIAMETERS, 2 * 244.5 - 311.1) == 158.8
    assert nearest_drill_collar([], 100.0) is None


@pytest.mark.parametrize(
    "target, expected",
    [(400.0, 517.0), (600.0, 655.0), (700.0, 725.0), (2000.0, 930.0)],
)
def test_nearest_strength(target, expected):
    assert nearest_strength([517.0, 655.0, 725.0, 930.0], target) == expected


@pytest.mark.parametrize(
    "strength, grade",
    [(517.0, "E 75"), (655.0, "X 95"), (725.0, "G 105"), (930.0, "S135"), (1200.0, "S135"), (None, "N/A")],
)
def test_grade_for_strength(strength, grade):
    assert grade_for_strength(strength) == grade


def test_drill_collar_sizes_per_section():
    results = drill_collar_sizes([244.5, 339.7, 508.0], [215.9, 311.1, 444.5], DIAMETERS)

    assert [item["section"] for item in results] == ["Production", "Intermediate", "Surface"]
    assert results[0]["L0c"] == 76.91
    assert results[0]["number_of_columns"] == 9
    assert results[2]["L0c"] == 68.37
    assert results[2]["number_of_columns"] == 8
    assert results[1]["drill_collar"] == 228.6


def test_design_drill_string_loads():
    instance = {
        "WOB": 18.0,
        "C": 0.75,
        "qc": 362.0,
        "H": 3000.0,
        "Lhw": 100.0,
        "qp": 30.0,
        "P": 5.0,
        "gamma": 1.2,
        "qhw": 60.0,
    }
    result = design_drill_string(instance, 215.9, 158.8)

    assert result["L0c"] == pytest.approx(76.91, abs=0.01)
    assert result["Lp"] == pytest.approx(3000.0 - 100.0 - result["L0c"])
    expected_t = ((1.2 * result["Lp"] * 30.0 + 100.0 * 60.0 + result["L0c"] * 362.0) * 0.862) / 34.01
    assert result["T"] == pytest.approx(expected_t)
    assert result["Tec"] == pytest.approx(expected_t + 5.0 * 92.62 / 34.01)
    assert result["tau"] == 0.0
    assert result["required_strength"] == pytest.approx(result["equivalent_stress"] * 1.5)
    assert result["grade"] in {"E 75", "X 95", "G 105", "S135"}
    assert result["H"] == 3000.0


def test_design_drill_string_missing_inputs():
    result = design_drill_string({}, 215.9, 158.8)

    assert result["L0c"] is None
    assert result["Lp"] is None
    assert result["Tec"] is None
    assert result["grade"] == "N/A"
    assert result["H"] is None
    assert not math.isnan(result["tau"])


@pytest.mark.parametrize(
    "count, expected",
    [
        (2, ["Production", "Surface"]),
        (3, ["Production", "Intermediate", "Surface"]),
        (4, ["Production", "Upper Intermediate", "Lower Intermediate", "Surface"]),
        (
            5,
            ["Production", "Upper Intermediate", "Middle Intermediate", "Lower Intermediate", "Surface"],
        ),
    ],
)
def test_collar_section_names(count, expected):
    assert collar_section_names(count) == expected


def test_drill_collar_sizes_names_long_strings():
    results = drill_collar_sizes([244.5, 339.7, 406.4, 508.0], [215.9, 311.1, 374.7, 444.5], DIAMETERS)

    assert [item["section"] for item in results] == [
        "Production",
        "Upper Intermediate",
        "Lower Intermediate",
        "Surface",
    ]
    assert [item["L0c"] for item in results] == [76.91, 76.91, 76.91, 68.37]
