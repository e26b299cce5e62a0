"""
Greedy nearest-available propensity score matching.

Each treated unit is paired with the untreated unit whose score is closest in
absolute distance. Treated units are visited in ascending score order and
equidistant candidates resolve to the smallest input index, so a run is a
deterministic function of its inputs.
"""

import numpy as np
import pandas as pd
from typing import NamedTuple, Optional, Sequence

from ..core.exceptions import InvalidInputError

NO_MATCH = -1


class MatchResult(NamedTuple):
    """
    Per-unit output of a matching run. Every array has one entry per input unit.

    matched_index : np.ndarray
        Partner index, or ``NO_MATCH``. An untreated unit used more than once
        points back at the first treated unit that selected it.
    usage_count : np.ndarray
        Number of pairs the unit belongs to (1 for a matched treated unit).
    pair_id : np.ndarray
        Pair identifier starting at 1, 0 when the unit is in no pair.
    """
    matched_index: np.ndarray
    usage_count: np.ndarray
    pair_id: np.ndarray

    @property
    def n_matched(self) -> int:
        """Number of treated units that received a partner."""
        return len(np.unique(self.pair_id[self.pair_id > 0]))

    def to_frame(self, index: Optional[pd.Index] = None) -> pd.DataFrame:
        return pd.DataFrame({
            'matched_index': self.matched_index,
            'usage_count': self.usage_count,
            'pair_id': self.pair_id,
        }, index=index)


def _as_vector(values, name: str) -> np.ndarray:
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.dtype.kind in 'USV':
        raise InvalidInputError(f"{name} must be numeric, got dtype {arr.dtype}")
    try:
        return arr.astype(float)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be numeric without missing values")


def _validate(treatment, score, exclude):
    flags = _as_vector(treatment, 'treatment')
    scores = _as_vector(score, 'score')

    if len(flags) != len(scores):
        raise InvalidInputError(
            f"treatment and score lengths differ: {len(flags)} != {len(scores)}")

    binary = np.isin(flags, (0.0, 1.0))
    if not binary.all():
        bad = sorted(set(flags[~binary].tolist()), key=str)
        raise InvalidInputError(f"treatment must be binary (0, 1), found: {bad}")

    missing = ~np.isfinite(scores)
    if missing.any():
        raise InvalidInputError(
            f"score has {int(missing.sum())} missing or non-finite values "
            f"(first at index {int(np.argmax(missing))})")

    if exclude is None:
        excluded = np.zeros(len(flags), dtype=bool)
    else:
        excluded = np.asarray(exclude, dtype=bool)
        if excluded.shape != flags.shape:
            raise InvalidInputError(
                f"exclude must have one flag per unit: {excluded.shape} != {flags.shape}")

    return flags.astype(int), scores, excluded


def greedy_match(treatment: Sequence, score: Sequence, caliper: Optional[float] = None,
                 replace: bool = True, exclude: Optional[Sequence] = None) -> MatchResult:
    """
    Match every treated unit to its nearest untreated unit by score.

    Parameters
    ----------
    treatment : array-like of {0, 1}
        Treatment flag per unit
    score : array-like of float
        Propensity score (probability or linear index) per unit
    caliper : float, optional
        Maximum absolute score distance for a valid match
    replace : bool, default True
        Whether an untreated unit may serve more than one treated unit
    exclude : array-like of bool, optional
        Units to leave out entirely (e.g. off common support)

    Returns
    -------
    MatchResult
        Matched index, usage count and pair id per unit

    Raises
    ------
    InvalidInputError
        If lengths differ, treatment is not binary or score has missing values

    Examples
    --------
    >>> result = greedy_match([1, 0, 0, 1], [0.5, 0.1, 0.9, 0.6])
    >>> result.matched_index.tolist()
    [1, 0, 3, 2]
    """
    flags, scores, excluded = _validate(treatment, score, exclude)
    if caliper is not None and caliper < 0:
        raise InvalidInputError(f"caliper must be non-negative, got {caliper}")

    n = len(flags)
    matched = np.full(n, NO_MATCH, dtype=int)
    usage = np.zeros(n, dtype=int)
    pair_id = np.zeros(n, dtype=int)

    # Ascending index order, so argmin's first hit is the smallest index among ties
    controls = np.flatnonzero((flags == 0) & ~excluded)
    control_scores = scores[controls]
    available = np.ones(len(controls), dtype=bool)

    # Primary key score, then treatment flag; lexsort is stable for the rest
    order = np.lexsort((flags, scores))

    next_pair = 1
    for i in order:
        if flags[i] != 1 or excluded[i] or not available.any():
            continue

        distances = np.abs(control_scores - scores[i])
        distances[~available] = np.inf
        j = int(np.argmin(distances))
        if caliper is not None and distances[j] > caliper:
            continue

        partner = controls[j]
        matched[i] = partner
        usage[i] = 1
        pair_id[i] = next_pair
        if usage[partner] == 0:
            matched[partner] = i
            pair_id[partner] = next_pair
        usage[partner] += 1
        next_pair += 1

        if not replace:
            available[j] = False

    return MatchResult(matched, usage, pair_id)
