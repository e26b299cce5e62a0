"""
Causal inference methods module.
"""

from .difference_in_differences import DifferenceInDifferences
from .multiple_imputation import MultipleImputation
from .propensity_score_matching import PropensityScoreMatching
from .regression_discontinuity_design import RegressionDiscontinuityDesign

__all__ = [
    'DifferenceInDifferences',
    'MultipleImputation',
    'PropensityScoreMatching',
    'RegressionDiscontinuityDesign'
]
