"""
Utility functions for causal inference.
"""

from .data_validation import validate_binary_treatment, validate_panel_data, check_balance

__all__ = [
    'validate_binary_treatment',
    'validate_panel_data',
    'check_balance',
]
