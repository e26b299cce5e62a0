"""
Causal Inference Classroom
==========================

Worked examples of four causal inference techniques:
- Multiple Imputation (MI)
- Propensity Score Matching (PSM)
- Difference-in-Differences (DiD)
- Regression Discontinuity Design (RDD)

Example usage:
    >>> from causal_classroom import greedy_match
    >>> result = greedy_match([1, 0, 0, 1], [0.5, 0.1, 0.9, 0.6])
    >>> result.pair_id.tolist()
    [1, 1, 2, 2]
"""

__version__ = "0.1.0"

from .matching import NO_MATCH, MatchResult, greedy_match
from .methods.difference_in_differences import DifferenceInDifferences
from .methods.multiple_imputation import MultipleImputation
from .methods.propensity_score_matching import PropensityScoreMatching
from .methods.regression_discontinuity_design import RegressionDiscontinuityDesign
from .datasets.synthetic import generate_did_data, generate_rdd_data, generate_psm_data, generate_missing_data

__all__ = [
    'NO_MATCH',
    'MatchResult',
    'greedy_match',
    'DifferenceInDifferences',
    'MultipleImputation',
    'PropensityScoreMatching',
    'RegressionDiscontinuityDesign',
    'generate_did_data',
    'generate_rdd_data',
    'generate_psm_data',
    'generate_missing_data',
]
