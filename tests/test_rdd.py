"""
Tests for Regression Discontinuity Design implementation.
"""

import pytest
import pandas as pd
import numpy as np
import sys
import os

# Add the parent directory to the path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from causal_classroom.methods import RegressionDiscontinuityDesign
from causal_classroom.datasets import generate_rdd_data
from causal_classroom.core.exceptions import DataValidationError, EstimationError, ModelSpecificationError


class TestRegressionDiscontinuityDesign:
    """Test suite for RegressionDiscontinuityDesign class."""

    @pytest.fixture
    def sample_data(self):
        """Generate sample data for testing."""
        return generate_rdd_data(
            n_obs=200,
            cutoff=0.0,
            treatment_effect=3.0,
            noise_std=1.0,
            random_seed=42
        )

    @pytest.fixture
    def rdd(self, sample_data):
        return RegressionDiscontinuityDesign(
            data=sample_data,
            outcome_var='outcome',
            running_var='running_var',
            cutoff=0.0
        )

    def test_initialization(self, rdd, sample_data):
        """Test RDD initialization."""
        assert rdd.outcome_var == 'outcome'
        assert rdd.running_var == 'running_var'
        assert rdd.cutoff == 0.0
        assert rdd.treatment_var == 'treatment'
        assert 'running_var_centered' in rdd.data.columns
        assert 'treatment' in rdd.data.columns
        # the caller's frame is left untouched
        assert 'treatment' not in sample_data.columns

    def test_initialization_with_existing_treatment(self, sample_data):
        """Test RDD initialization with existing treatment variable."""
        sample_data['my_treatment'] = (sample_data['running_var'] >= 0.0).astype(int)

        rdd = RegressionDiscontinuityDesign(
            data=sample_data,
            outcome_var='outcome',
            running_var='running_var',
            cutoff=0.0,
            treatment_var='my_treatment'
        )

        assert rdd.treatment_var == 'my_treatment'

    def test_derived_treatment_does_not_overwrite_column(self, sample_data):
        """An existing 'treatment' column is not silently replaced by the sharp flag."""
        sample_data['treatment'] = 0

        with pytest.raises(DataValidationError):
            RegressionDiscontinuityDesign(
                data=sample_data,
                outcome_var='outcome',
                running_var='running_var',
                cutoff=0.0
            )

    def test_missing_running_variable(self):
        """Test error handling for missing running variable."""
        bad_data = pd.DataFrame({
            'outcome': [1, 2, 3],
            'other_var': [1, 2, 3]
        })

        with pytest.raises(DataValidationError):
            RegressionDiscontinuityDesign(
                data=bad_data,
                outcome_var='outcome',
                running_var='running_var',
                cutoff=0.0
            )

    def test_cutoff_outside_range(self, sample_data):
        """Test error handling for cutoff outside data range."""
        with pytest.raises(DataValidationError):
            RegressionDiscontinuityDesign(
                data=sample_data,
                outcome_var='outcome',
                running_var='running_var',
                cutoff=100.0
            )

    def test_continuity_check(self, rdd):
        """Test continuity assumption check."""
        continuity_results = rdd.check_continuity_assumption()

        assert 'assumption_satisfied' in continuity_results
        assert isinstance(continuity_results['assumption_satisfied'], bool)

        if not continuity_results.get('insufficient_data', False):
            assert 'density_left' in continuity_results
            assert 'density_right' in continuity_results
            assert 'density_ratio' in continuity_results

    def test_bandwidth_selection(self, rdd):
        """Test bandwidth selection."""
        bandwidth = rdd.optimal_bandwidth_selection()

        assert isinstance(bandwidth, float)
        assert bandwidth > 0
        assert 'optimal_bandwidth' in rdd.results_

    def test_rdd_estimation(self, rdd):
        """Test RDD effect estimation."""
        effect_results = rdd.estimate_rdd_effect(bandwidth=1.0, polynomial_order=1)

        expected_keys = [
            'treatment_effect', 'standard_error', 't_statistic', 'p_value',
            'ci_lower', 'ci_upper', 'n_obs', 'r_squared', 'bandwidth'
        ]
        for key in expected_keys:
            assert key in effect_results

        assert effect_results['n_obs'] > 0
        assert effect_results['bandwidth'] == 1.0

    def test_recovers_effect(self):
        data = generate_rdd_data(n_obs=2000, treatment_effect=3.0, random_seed=1)
        rdd = RegressionDiscontinuityDesign(data, 'outcome', 'running_var', cutoff=0.0)

        effect_results = rdd.estimate_rdd_effect(bandwidth=1.0)

        assert abs(effect_results['treatment_effect'] - 3.0) < 1.0

    def test_polynomial_orders(self, rdd):
        """Test different polynomial orders."""
        linear_results = rdd.estimate_rdd_effect(bandwidth=1.0, polynomial_order=1)
        assert 'treatment_effect' in linear_results

        quadratic_results = rdd.estimate_rdd_effect(bandwidth=1.0, polynomial_order=2)
        assert 'running_var_sq' in quadratic_results['model'].params.index

        with pytest.raises(ModelSpecificationError):
            rdd.estimate_rdd_effect(bandwidth=1.0, polynomial_order=3)

    def test_kernels(self, rdd):
        """Test different kernel functions."""
        for kernel in ['triangular', 'uniform', 'epanechnikov']:
            results = rdd.estimate_rdd_effect(bandwidth=1.0, kernel=kernel)
            assert results['kernel'] == kernel

        with pytest.raises(ModelSpecificationError):
            rdd.estimate_rdd_effect(bandwidth=1.0, kernel='gaussian')

    def test_insufficient_bandwidth(self, rdd):
        """Very small bandwidth leaves too few observations."""
        with pytest.raises(EstimationError):
            rdd.estimate_rdd_effect(bandwidth=0.001)

    def test_bandwidth_sensitivity(self, rdd):
        table = rdd.bandwidth_sensitivity(multipliers=(0.001, 1.0, 2.0), bandwidth=0.8)

        assert list(table.columns) == ['multiplier', 'bandwidth', 'treatment_effect',
                                       'standard_error', 'n_obs']
        # the tiny bandwidth is skipped
        assert table['multiplier'].tolist() == [1.0, 2.0]
        assert table['n_obs'].is_monotonic_increasing

    def test_summary_method(self, rdd):
        """Test summary method."""
        summary_before = rdd.summary()
        assert "No estimation results" in summary_before

        rdd.estimate_rdd_effect(bandwidth=1.0)
        summary_after = rdd.summary()
        assert "Treatment Effect" in summary_after
        assert isinstance(summary_after, str)

    def test_estimate_method(self, rdd):
        """The estimate method runs RDD estimation at the rule-of-thumb bandwidth."""
        results = rdd.estimate()

        assert 'treatment_effect' in results
        assert 'standard_error' in results
        assert 'p_value' in results

    def test_run_full_analysis(self, rdd):
        """Test the full analysis pipeline."""
        results = rdd.run_full_analysis()

        assert isinstance(results, dict)
        assert 'rdd_effect' in results
        assert 'optimal_bandwidth' in results
        assert 'bandwidth_sensitivity' in results


if __name__ == "__main__":
    # Run tests if script is executed directly
    pytest.main([__file__])
