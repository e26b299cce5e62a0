"""
Synthetic datasets used by the classroom examples and tests.
"""

from .synthetic import generate_psm_data, generate_did_data, generate_rdd_data, generate_missing_data

__all__ = [
    'generate_psm_data',
    'generate_did_data',
    'generate_rdd_data',
    'generate_missing_data',
]
