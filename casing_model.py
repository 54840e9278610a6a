"""Casing string length allocation.

Each casing section carries a short list of candidate pipe specifications.
The solver splits the section depth ``H`` into segments ``L1..L4`` so that the
interaction equation between neighbouring segments lands as close to ``1.0``
as the search grid allows:

``y_k = (H - (L1 + ... + Lk)) / rating(row_k)``
``z_k = Lk * unit_weight(row_{k-1}) * 1.488 / (tensile_strength(row_k) * 1000)``
``condition = y2**2 + y1 * z2 + z1**2``

Rows are ranked by rating, the strongest row carrying ``L1``.  When the row
index runs past the available rows the last row supplies the coefficients.
Lengths past ``L2`` follow from a closed-form strength balance.

All functions are pure: input rows are never mutated and every search
variable is local to a single call.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
import logging
import math
from typing import Callable, Iterable, Mapping, Sequence

import numpy as np

from rating_utils import calculate_rating

logger = logging.getLogger(__name__)

WEIGHT_FACTOR = 1.488
TENSILE_DESIGN_FACTOR = 1.75
FLOAT_TOL = 1e-9

LENGTH_KEYS = ("length1", "length2", "length3", "length4")
Y_KEYS = ("y1", "y2", "y3", "y4")
Z_KEYS = ("z1", "z2", "z3", "z4")
DIAGNOSTIC_KEYS = LENGTH_KEYS + Y_KEYS + Z_KEYS + ("condition_value", "condition_satisfied")

_FIELD_ALIASES = {
    "rating": ("rating", "had", "HAD"),
    "external_pressure": ("external_pressure", "externalPressure"),
    "tensile_strength": ("tensile_strength", "tensileStrength"),
    "unit_weight": ("unit_weight", "unitWeight"),
    "metal_type": ("metal_type", "metalType"),
    "internal_diameter": ("internal_diameter", "internalDiameter"),
    "depth": ("depth",),
}

TraceCallback = Callable[[str, Mapping[str, object]], None]


@dataclass(frozen=True)
class SolverConfig:
    """Tolerances and search ranges for the length solver."""

    target_condition: float = 1.0
    baseline_tolerance: float = 0.2
    exact_tolerance: float = 0.001
    satisfied_tolerance: float = 0.01
    sweep_start_pct: float = 5.0
    sweep_stop_pct: float = 75.0
    sweep_step_pct: float = 2.0
    min_segment_length: float = 10.0
    pair_sweep_stop_pct: float = 95.0
    pair_dense_start_pct: float = 10.0
    pair_dense_stop_pct: float = 50.0
    pair_dense_step_pct: float = 0.5
    refine_window_fraction: float = 0.05
    refine_window_min: float = 20.0
    refine_steps: int = 25
    pair_sum_tolerance: float = 1.0
    default_depth: float | None = 2000.0
    max_rows: int = 4
    min_search_rows: int = 3
    min_extension_length: float = 10.0


@dataclass(frozen=True)
class CandidateRow:
    """Normalised view of one casing specification row."""

    rating: float
    external_pressure: float
    tensile_strength: float
    unit_weight: float
    metal_type: str = ""
    internal_diameter: float | None = None
    depth: float | None = None
    index: int = -1
    source: Mapping[str, object] = field(default_factory=dict, compare=False, repr=False)

    @property
    def usable(self) -> bool:
        return (
            self.rating > 0.0
            and self.external_pressure > 0.0
            and self.tensile_strength > 0.0
            and self.unit_weight > 0.0
        )

    @property
    def key(self) -> tuple[str, float, float, float, float]:
        """Identity used to skip duplicate rows when borrowing."""

        return (
            self.metal_type,
            round(self.rating, 6),
            round(self.external_pressure, 6),
            round(self.tensile_strength, 6),
            round(self.unit_weight, 6),
        )


@dataclass(frozen=True)
class LengthCandidate:
    """One evaluated length assignment."""

    lengths: tuple[float, ...]
    condition: float
    error: float
    depth_valid: bool


@dataclass(frozen=True)
class SectionSolution:
    """Annotated rows and summary values for one solved section."""

    section: str
    depth: float
    rows: tuple[dict, ...]
    lengths: tuple[float, ...]
    condition_value: float | None
    condition_satisfied: bool
    depth_valid: bool
    strategy: str
    borrowed: int = 0
    evaluations: int = 0
    internal_diameter: float | None = None

    @property
    def total_length(self) -> float:
        return float(sum(self.lengths))


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------

def _float_or_none(value: object) -> float | None:
    try:
        val = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(val):
        return None
    return val


def _lookup(entry: Mapping[str, object], name: str) -> object:
    for key in _FIELD_ALIASES[name]:
        value = entry.get(key)
        if value not in (None, ""):
            return value
    return None


def normalise_row(entry: CandidateRow | Mapping[str, object], index: int = -1) -> CandidateRow:
    """Return a :class:`CandidateRow` for ``entry``.

    Missing or non-numeric strength values become ``0`` which marks the row
    as unusable.  A missing rating is derived from the external pressure and
    metal grade.
    """

    if isinstance(entry, CandidateRow):
        return entry if index < 0 else replace(entry, index=index)
    external = _float_or_none(_lookup(entry, "external_pressure")) or 0.0
    metal_type = str(_lookup(entry, "metal_type") or "")
    rating = _float_or_none(_lookup(entry, "rating"))
    if rating is None:
        rating = calculate_rating(external, metal_type) if external > 0.0 else 0.0
    return CandidateRow(
        rating=rating,
        external_pressure=external,
        tensile_strength=_float_or_none(_lookup(entry, "tensile_strength")) or 0.0,
        unit_weight=_float_or_none(_lookup(entry, "unit_weight")) or 0.0,
        metal_type=metal_type,
        internal_diameter=_float_or_none(_lookup(entry, "internal_diameter")),
        depth=_float_or_none(_lookup(entry, "depth")),
        index=index,
        source=entry,
    )


def row_length(row: Mapping[str, object]) -> float | None:
    """Return the first assigned ``length1..length4`` value of ``row``."""

    for key in LENGTH_KEYS:
        value = _float_or_none(row.get(key))
        if value is not None:
            return value
    return None


def _clean_copy(entry: Mapping[str, object]) -> dict:
    row = copy.deepcopy(dict(entry))
    for key in DIAGNOSTIC_KEYS:
        row.pop(key, None)
    return row


# ---------------------------------------------------------------------------
# Candidate selection and borrowing
# ---------------------------------------------------------------------------

def rank_rows(rows: Iterable[CandidateRow]) -> list[CandidateRow]:
    """Return ``rows`` ordered by rating, highest first (stable)."""

    return sorted(rows, key=lambda row: row.rating, reverse=True)


def resolve_depth(
    rows: Sequence[CandidateRow],
    depth: float | None = None,
    *,
    cfg: SolverConfig | None = None,
) -> float:
    """Return the target depth ``H`` for a section.

    Precedence: explicit ``depth``, the deepest row ``depth`` field,
    ``cfg.default_depth`` and finally the top row's rating.
    """

    cfg = cfg or SolverConfig()
    explicit = _float_or_none(depth)
    if explicit is not None and explicit > 0.0:
        return explicit
    row_depths = [row.depth for row in rows if row.depth is not None and row.depth > 0.0]
    if row_depths:
        return max(row_depths)
    if cfg.default_depth is not None and cfg.default_depth > 0.0:
        return float(cfg.default_depth)
    ranked = rank_rows(rows)
    return ranked[0].rating if ranked else 0.0


def select_candidates(
    rows: Sequence[CandidateRow | Mapping[str, object]],
    depth: float | None = None,
    *,
    cfg: SolverConfig | None = None,
) -> tuple[list[CandidateRow], float]:
    """Return the top usable rows by rating and the resolved depth."""

    cfg = cfg or SolverConfig()
    normalised = [normalise_row(row, idx) for idx, row in enumerate(rows)]
    usable = [row for row in normalised if row.usable]
    return rank_rows(usable)[: cfg.max_rows], resolve_depth(normalised, depth, cfg=cfg)


def pool_borrower(
    rows: Iterable[CandidateRow | Mapping[str, object]],
) -> Callable[[frozenset], list[CandidateRow]]:
    """Return a borrow function serving the usable rows of ``rows``."""

    pool = rank_rows(row for row in (normalise_row(r) for r in rows) if row.usable)

    def borrow(exclude: frozenset) -> list[CandidateRow]:
        return [row for row in pool if row.key not in exclude]

    return borrow


def borrow_rows(
    selected: Sequence[CandidateRow],
    borrow: Callable[[frozenset], Iterable[CandidateRow | Mapping[str, object]]] | None,
    *,
    cfg: SolverConfig | None = None,
) -> list[CandidateRow]:
    """Top up ``selected`` with distinct pool rows for a full search.

    Borrowed rows carry ``index == -1`` so they only contribute
    coefficients and never receive a stored length.
    """

    cfg = cfg or SolverConfig()
    combined = list(selected)
    # One-row sections take L1 = H and need no extra coefficients.
    if borrow is None or len(combined) < 2 or len(combined) >= cfg.min_search_rows:
        return combined
    present = {row.key for row in combined}
    pool = [normalise_row(row) for row in borrow(frozenset(present))]
    for row in rank_rows(pool):
        if len(combined) >= cfg.max_rows:
            break
        if not row.usable or row.key in present:
            continue
        present.add(row.key)
        combined.append(replace(row, index=-1))
    return combined


# ---------------------------------------------------------------------------
# Interaction equation and closed-form extension
# ---------------------------------------------------------------------------

def _safe_div(numerator: float, denominator: float) -> float:
    if denominator <= 0.0:
        return 0.0
    return numerator / denominator


def _coefficient_row(calc_rows: Sequence[CandidateRow], idx: int) -> CandidateRow:
    return calc_rows[min(idx, len(calc_rows) - 1)]


def segment_terms(
    lengths: Sequence[float],
    k: int,
    calc_rows: Sequence[CandidateRow],
    depth: float,
) -> tuple[float, float]:
    """Return ``(y_k, z_k)`` for the ``k``-th segment (1-based)."""

    below = _coefficient_row(calc_rows, k)
    carrier = _coefficient_row(calc_rows, k - 1)
    cumulative = float(sum(lengths[:k]))
    y = _safe_div(depth - cumulative, below.rating)
    z = _safe_div(lengths[k - 1] * carrier.unit_weight * WEIGHT_FACTOR, below.tensile_strength * 1000.0)
    return y, z


def interaction_condition(
    l1: float,
    l2: float,
    calc_rows: Sequence[CandidateRow],
    depth: float,
) -> float:
    """Evaluate ``y2**2 + y1*z2 + z1**2`` for the first two segments."""

    lengths = (l1, l2)
    y1, z1 = segment_terms(lengths, 1, calc_rows, depth)
    y2, z2 = segment_terms(lengths, 2, calc_rows, depth)
    return y2 * y2 + y1 * z2 + z1 * z1


def closed_form_length(
    prior_lengths: Sequence[float],
    calc_rows: Sequence[CandidateRow],
    target_index: int,
) -> float | None:
    """Return the strength-balance length for ``calc_rows[target_index]``.

    ``None`` means the row cannot carry a positive length.
    """

    if target_index >= len(calc_rows):
        return None
    row = calc_rows[target_index]
    if row.unit_weight <= 0.0 or row.tensile_strength <= 0.0:
        return None
    load = sum(length * calc_rows[i].unit_weight for i, length in enumerate(prior_lengths))
    value = (row.tensile_strength * 1000.0 / TENSILE_DESIGN_FACTOR - load * WEIGHT_FACTOR) / (
        row.unit_weight * WEIGHT_FACTOR
    )
    if not math.isfinite(value) or value <= 0.0:
        return None
    return value


def extend_lengths(
    l1: float,
    l2: float,
    calc_rows: Sequence[CandidateRow],
    depth: float,
    *,
    cfg: SolverConfig | None = None,
) -> tuple[float | None, float | None]:
    """Return ``(L3, L4)`` capped to the depth left after ``L1`` and ``L2``."""

    cfg = cfg or SolverConfig()
    l3 = closed_form_length((l1, l2), calc_rows, 2)
    if l3 is None:
        return None, None
    l3 = min(l3, depth - l1 - l2)
    if l3 <= 0.0:
        return None, None
    remaining = depth - l1 - l2 - l3
    if len(calc_rows) < 4 or remaining <= cfg.min_extension_length:
        return l3, None
    l4 = closed_form_length((l1, l2, l3), calc_rows, 3)
    if l4 is None:
        return l3, None
    return l3, min(l4, remaining)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class _BestTracker:
    """Keep the preferred candidate seen so far.

    Before a depth-valid baseline within ``baseline_tolerance`` exists the
    globally smallest error wins; afterwards only depth-valid candidates with
    a smaller error replace it.
    """

    def __init__(self, cfg: SolverConfig, trace: TraceCallback | None = None) -> None:
        self.cfg = cfg
        self.trace = trace
        self.best: LengthCandidate | None = None
        self.has_baseline = False
        self.exact = False
        self.evaluations = 0

    def offer(self, candidate: LengthCandidate) -> bool:
        """Record ``candidate`` and return ``True`` once an exact match is held."""

        self.evaluations += 1
        if self.has_baseline:
            if candidate.depth_valid and candidate.error < self.best.error:
                self.best = candidate
        elif candidate.depth_valid and candidate.error < self.cfg.baseline_tolerance:
            self.best = candidate
            self.has_baseline = True
            logger.debug("Baseline accepted: lengths=%s error=%.5f", candidate.lengths, candidate.error)
            if self.trace:
                self.trace("baseline", {"lengths": candidate.lengths, "error": candidate.error})
        elif self.best is None or candidate.error < self.best.error:
            self.best = candidate
        if self.has_baseline and self.best is candidate and candidate.error < self.cfg.exact_tolerance:
            self.exact = True
            if self.trace:
                self.trace("exact", {"lengths": candidate.lengths, "error": candidate.error})
        return self.exact


def _percent_grid(start: float, stop: float, step: float) -> np.ndarray:
    values = np.arange(start, stop + step / 2.0, step)
    return np.round(values, 6) / 100.0


def _refine_values(centre: float, depth: float, low: float, high: float, cfg: SolverConfig) -> np.ndarray:
    window = max(depth * cfg.refine_window_fraction, cfg.refine_window_min)
    lo = max(low, centre - window)
    hi = min(high, centre + window)
    if hi < lo:
        return np.empty(0)
    return np.linspace(lo, hi, 2 * max(1, int(cfg.refine_steps)) + 1)


def _evaluate_triple(
    l1: float,
    l2: float,
    calc_rows: Sequence[CandidateRow],
    depth: float,
    cfg: SolverConfig,
) -> LengthCandidate:
    condition = interaction_condition(l1, l2, calc_rows, depth)
    l3, l4 = extend_lengths(l1, l2, calc_rows, depth, cfg=cfg)
    lengths = tuple(float(v) for v in (l1, l2, l3, l4) if v is not None)
    valid = l3 is not None and sum(lengths) <= depth + FLOAT_TOL
    return LengthCandidate(lengths, condition, abs(condition - cfg.target_condition), valid)


def _evaluate_pair(
    l1: float,
    calc_rows: Sequence[CandidateRow],
    depth: float,
    cfg: SolverConfig,
) -> LengthCandidate:
    l2 = depth - l1
    condition = interaction_condition(l1, l2, calc_rows, depth)
    return LengthCandidate((float(l1), float(l2)), condition, abs(condition - cfg.target_condition), l2 > 0.0)


def search_three_rows(
    calc_rows: Sequence[CandidateRow],
    depth: float,
    *,
    cfg: SolverConfig | None = None,
    trace: TraceCallback | None = None,
) -> tuple[LengthCandidate | None, int]:
    """Coarse percentage sweep over ``(L1, L2)`` followed by local refinement.

    Returns the preferred candidate (possibly violating the depth when no
    depth-valid combination exists) and the number of evaluations.
    """

    cfg = cfg or SolverConfig()
    tracker = _BestTracker(cfg, trace)
    grid = _percent_grid(cfg.sweep_start_pct, cfg.sweep_stop_pct, cfg.sweep_step_pct)
    min_len = cfg.min_segment_length

    for pct1 in grid:
        l1 = float(pct1 * depth)
        if l1 < min_len:
            continue
        remaining = depth - l1
        for pct2 in grid:
            l2 = float(pct2 * remaining)
            if l2 < min_len:
                continue
            if tracker.offer(_evaluate_triple(l1, l2, calc_rows, depth, cfg)):
                break
        if tracker.exact:
            break

    if tracker.has_baseline and not tracker.exact:
        base = tracker.best
        for l1 in _refine_values(base.lengths[0], depth, min_len, depth, cfg):
            l1 = float(l1)
            for l2 in _refine_values(base.lengths[1], depth, min_len, depth - l1, cfg):
                if tracker.offer(_evaluate_triple(l1, float(l2), calc_rows, depth, cfg)):
                    break
            if tracker.exact:
                break

    return tracker.best, tracker.evaluations


def search_two_rows(
    calc_rows: Sequence[CandidateRow],
    depth: float,
    *,
    cfg: SolverConfig | None = None,
    trace: TraceCallback | None = None,
) -> tuple[LengthCandidate | None, int]:
    """Sweep ``L1`` with ``L2 = H - L1`` and refine around the best match."""

    cfg = cfg or SolverConfig()
    tracker = _BestTracker(cfg, trace)
    min_len = cfg.min_segment_length
    grid = np.unique(
        np.concatenate(
            [
                _percent_grid(cfg.sweep_start_pct, cfg.pair_sweep_stop_pct, cfg.sweep_step_pct),
                _percent_grid(cfg.pair_dense_start_pct, cfg.pair_dense_stop_pct, cfg.pair_dense_step_pct),
            ]
        )
    )
    for pct in grid:
        l1 = float(pct * depth)
        if l1 < min_len or l1 >= depth:
            continue
        if tracker.offer(_evaluate_pair(l1, calc_rows, depth, cfg)):
            break

    if tracker.best is not None and not tracker.exact:
        centre = tracker.best.lengths[0]
        for l1 in _refine_values(centre, depth, min_len, depth - min_len, cfg):
            if tracker.offer(_evaluate_pair(float(l1), calc_rows, depth, cfg)):
                break

    return tracker.best, tracker.evaluations


def _existing_pair(
    calc_rows: Sequence[CandidateRow],
    depth: float,
    cfg: SolverConfig,
) -> LengthCandidate | None:
    """Return the caller's ``(L1, L2)`` when it already solves the section."""

    l1 = _float_or_none(calc_rows[0].source.get("length1"))
    l2 = _float_or_none(calc_rows[1].source.get("length2"))
    if l1 is None or l2 is None or l1 <= 0.0 or l2 <= 0.0:
        return None
    if abs(l1 + l2 - depth) > cfg.pair_sum_tolerance:
        return None
    condition = interaction_condition(l1, l2, calc_rows, depth)
    error = abs(condition - cfg.target_condition)
    if error >= cfg.satisfied_tolerance:
        return None
    return LengthCandidate((l1, l2), condition, error, True)


def solve_lengths(
    calc_rows: Sequence[CandidateRow],
    depth: float,
    *,
    owned: int | None = None,
    cfg: SolverConfig | None = None,
    trace: TraceCallback | None = None,
) -> tuple[LengthCandidate | None, str, int]:
    """Dispatch on the row count and return ``(candidate, strategy, evaluations)``.

    ``owned`` is the number of leading ``calc_rows`` that belong to the
    section; the rest are borrowed and only feed coefficients.  A section
    owning two rows is always solved with ``L1 + L2 = H``.
    """

    cfg = cfg or SolverConfig()
    if not calc_rows or depth <= 0.0:
        return None, "none", 0
    count = len(calc_rows) if owned is None else min(owned, len(calc_rows))
    if count == 1:
        condition = interaction_condition(depth, 0.0, calc_rows[:1], depth)
        candidate = LengthCandidate((float(depth),), condition, abs(condition - cfg.target_condition), True)
        return candidate, "single", 1
    if count == 2:
        kept = _existing_pair(calc_rows, depth, cfg)
        if kept is not None:
            logger.debug("Keeping existing pair %s (error %.5f)", kept.lengths, kept.error)
            return kept, "kept", 1
        candidate, evaluations = search_two_rows(calc_rows, depth, cfg=cfg, trace=trace)
        return candidate, "pair", evaluations
    candidate, evaluations = search_three_rows(calc_rows, depth, cfg=cfg, trace=trace)
    return candidate, "triple", evaluations


# ---------------------------------------------------------------------------
# Annotation, backfill and aggregation
# ---------------------------------------------------------------------------

def _is_satisfied(condition: float | None, cfg: SolverConfig) -> bool:
    if condition is None or not math.isfinite(condition):
        return False
    return abs(condition - cfg.target_condition) < cfg.satisfied_tolerance


def _annotate_segment(
    target: dict,
    k: int,
    lengths: Sequence[float],
    calc_rows: Sequence[CandidateRow],
    depth: float,
    condition: float | None,
    cfg: SolverConfig,
) -> None:
    y, z = segment_terms(lengths, k, calc_rows, depth)
    target[LENGTH_KEYS[k - 1]] = float(lengths[k - 1])
    target[Y_KEYS[k - 1]] = y
    target[Z_KEYS[k - 1]] = z
    target["condition_value"] = condition
    target["condition_satisfied"] = _is_satisfied(condition, cfg)


def backfill_lengths(
    annotated: list[dict],
    selected: Sequence[CandidateRow],
    calc_rows: Sequence[CandidateRow],
    depth: float,
    *,
    cfg: SolverConfig | None = None,
) -> int:
    """Give unresolved section rows the depth left over by earlier segments.

    ``annotated`` is updated in place; the number of rows filled is returned.
    Single-row sections always take the resolved depth ``H`` as ``L1``; it
    is the row's own ``depth`` unless the caller passed one explicitly.
    """

    cfg = cfg or SolverConfig()
    if not selected:
        return 0
    if len(selected) == 1:
        row = selected[0]
        target = annotated[row.index]
        for key in DIAGNOSTIC_KEYS:
            target.pop(key, None)
        condition = interaction_condition(depth, 0.0, [row], depth)
        _annotate_segment(target, 1, (float(depth),), [row], depth, condition, cfg)
        return 1

    lengths: list[float] = []
    filled = 0
    for k, row in enumerate(selected):
        target = annotated[row.index]
        existing = _float_or_none(target.get(LENGTH_KEYS[k]))
        if existing is not None:
            lengths.append(existing)
            continue
        remainder = depth - sum(lengths)
        if remainder <= FLOAT_TOL:
            break
        lengths.append(remainder)
        condition = None
        if len(lengths) >= 2:
            condition = interaction_condition(lengths[0], lengths[1], calc_rows, depth)
        _annotate_segment(target, k + 1, lengths, calc_rows, depth, condition, cfg)
        filled += 1
        logger.debug("Backfilled length%d=%.3f", k + 1, remainder)
    return filled


def weighted_internal_diameter(rows: Iterable[Mapping[str, object]]) -> float | None:
    """Return the length-weighted mean internal diameter of ``rows``."""

    pairs: list[tuple[float, float]] = []
    for row in rows:
        length = row_length(row)
        diameter = _float_or_none(_lookup(row, "internal_diameter"))
        if length is None or length <= 0.0 or diameter is None or diameter <= 0.0:
            continue
        pairs.append((length, diameter))
    if not pairs:
        return None
    if len(pairs) == 1:
        return pairs[0][1]
    weights = np.array([p[0] for p in pairs], dtype=float)
    diameters = np.array([p[1] for p in pairs], dtype=float)
    total = float(weights.sum())
    if total <= 0.0:
        return None
    return float(np.dot(weights, diameters) / total)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def solve_section(
    rows: Sequence[Mapping[str, object]],
    depth: float | None = None,
    *,
    section: str = "",
    cfg: SolverConfig | None = None,
    borrow: Callable[[frozenset], Iterable[CandidateRow | Mapping[str, object]]] | None = None,
    trace: TraceCallback | None = None,
) -> SectionSolution:
    """Allocate segment lengths for one casing section.

    ``rows`` is never modified; the returned solution carries annotated
    copies in the caller's order.  ``borrow`` receives the identity keys of
    the rows already present and returns extra rows used when the section
    owns fewer than three usable rows.
    """

    cfg = cfg or SolverConfig()
    selected, target_depth = select_candidates(rows, depth, cfg=cfg)
    if trace:
        trace("selected", {"section": section, "rows": len(selected), "depth": target_depth})
    if not selected or target_depth <= 0.0:
        logger.debug("Section %r has no usable rows; returning input unchanged", section)
        return SectionSolution(
            section=section,
            depth=target_depth,
            rows=tuple(copy.deepcopy(dict(row)) for row in rows),
            lengths=(),
            condition_value=None,
            condition_satisfied=False,
            depth_valid=False,
            strategy="none",
        )

    calc_rows = borrow_rows(selected, borrow, cfg=cfg)
    borrowed = len(calc_rows) - len(selected)
    if borrowed:
        logger.debug("Section %r borrowed %d row(s)", section, borrowed)
        if trace:
            trace("borrowed", {"section": section, "rows": borrowed})

    candidate, strategy, evaluations = solve_lengths(
        calc_rows, target_depth, owned=len(selected), cfg=cfg, trace=trace
    )
    annotated = [_clean_copy(row) for row in rows]
    if candidate is not None:
        for k, length in enumerate(candidate.lengths):
            if k >= len(calc_rows) or calc_rows[k].index < 0:
                continue
            _annotate_segment(
                annotated[calc_rows[k].index],
                k + 1,
                candidate.lengths,
                calc_rows,
                target_depth,
                candidate.condition,
                cfg,
            )

    filled = backfill_lengths(annotated, selected, calc_rows, target_depth, cfg=cfg)
    if filled and trace:
        trace("backfill", {"section": section, "rows": filled})

    lengths = tuple(
        length
        for length in (
            _float_or_none(annotated[row.index].get(LENGTH_KEYS[k])) for k, row in enumerate(selected)
        )
        if length is not None
    )
    condition = annotated[selected[0].index].get("condition_value")
    solution = SectionSolution(
        section=section,
        depth=target_depth,
        rows=tuple(annotated),
        lengths=lengths,
        condition_value=condition,
        condition_satisfied=_is_satisfied(condition, cfg),
        depth_valid=bool(candidate.depth_valid) if candidate is not None else False,
        strategy=strategy,
        borrowed=borrowed,
        evaluations=evaluations,
        internal_diameter=weighted_internal_diameter(annotated),
    )
    logger.debug(
        "Section %r solved via %s: lengths=%s condition=%s",
        section,
        strategy,
        lengths,
        condition,
    )
    if trace:
        trace(
            "solved",
            {
                "section": section,
                "strategy": strategy,
                "lengths": lengths,
                "condition": condition,
                "evaluations": evaluations,
            },
        )
    return solution


def solve_sections(
    sections: Mapping[str, Sequence[Mapping[str, object]]],
    depths: Mapping[str, float] | None = None,
    *,
    cfg: SolverConfig | None = None,
    share_rows: bool = True,
    trace: TraceCallback | None = None,
) -> dict[str, SectionSolution]:
    """Solve every section, letting sparse sections borrow from the others."""

    cfg = cfg or SolverConfig()
    depths = depths or {}
    results: dict[str, SectionSolution] = {}
    for name, rows in sections.items():
        borrow = None
        if share_rows:
            others = [row for other, other_rows in sections.items() if other != name for row in other_rows]
            borrow = pool_borrower(others)
        results[name] = solve_section(
            rows,
            depths.get(name),
            section=name,
            cfg=cfg,
            borrow=borrow,
            trace=trace,
        )
    return results


__all__ = [
    "SolverConfig",
    "CandidateRow",
    "LengthCandidate",
    "SectionSolution",
    "normalise_row",
    "row_length",
    "rank_rows",
    "resolve_depth",
    "select_candidates",
    "pool_borrower",
    "borrow_rows",
    "segment_terms",
    "interaction_condition",
    "closed_form_length",
    "extend_lengths",
    "search_three_rows",
    "search_two_rows",
    "solve_lengths",
    "backfill_lengths",
    "weighted_internal_diameter",
    "solve_section",
    "solve_sections",
]
