"""
Core utilities and base classes for causal inference methods.
"""

from .base import CausalInferenceBase
from .exceptions import (
    CausalInferenceError,
    DataValidationError,
    EstimationError,
    InvalidInputError,
    ModelSpecificationError,
)

__all__ = [
    'CausalInferenceBase',
    'CausalInferenceError',
    'DataValidationError',
    'EstimationError',
    'InvalidInputError',
    'ModelSpecificationError',
]
