"""
Tests for Difference-in-Differences implementation.
"""

import pytest
import pandas as pd
import numpy as np
import sys
import os

# Add the parent directory to the path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from causal_classroom.methods import DifferenceInDifferences
from causal_classroom.datasets import generate_did_data
from causal_classroom.core.exceptions import DataValidationError, EstimationError


class TestDifferenceInDifferences:
    """Test suite for DifferenceInDifferences class."""

    @pytest.fixture
    def sample_data(self):
        """Generate sample data for testing."""
        return generate_did_data(
            n_units=50,
            n_periods=8,
            treatment_period=5,
            treatment_effect=2.0,
            random_seed=42
        )

    @pytest.fixture
    def did(self, sample_data):
        return DifferenceInDifferences(
            data=sample_data,
            outcome_var='outcome',
            unit_var='unit_id',
            time_var='period',
            treatment_var='treated',
            post_var='post',
            treatment_start=5
        )

    def test_initialization(self, did):
        """Test DiD initialization."""
        assert did.outcome_var == 'outcome'
        assert did.unit_var == 'unit_id'
        assert did.time_var == 'period'
        assert did.treatment_var == 'treated'
        assert did.post_var == 'post'
        assert did.treatment_start == 5
        assert did.panel_info['is_balanced']
        assert did.panel_info['n_units'] == 50

    def test_missing_columns(self):
        """Test error handling for missing columns."""
        bad_data = pd.DataFrame({
            'outcome': [1, 2, 3],
            'unit_id': [1, 1, 2],
            'treated': [1, 1, 0]
            # Missing required columns: period, post
        })

        with pytest.raises(DataValidationError):
            DifferenceInDifferences(
                data=bad_data,
                outcome_var='outcome',
                unit_var='unit_id',
                time_var='period',
                treatment_var='treated',
                post_var='post',
                treatment_start=5
            )

    def test_non_binary_post(self, sample_data):
        sample_data['post'] = sample_data['post'] * 2

        with pytest.raises(DataValidationError):
            DifferenceInDifferences(sample_data, 'outcome', 'unit_id', 'period',
                                    'treated', 'post', treatment_start=5)

    def test_basic_did_estimation(self, did):
        """Test basic DiD estimation."""
        results = did.estimate_basic_did()

        expected_keys = [
            'control_pre', 'control_post', 'treatment_pre', 'treatment_post',
            'control_diff', 'treatment_diff', 'did_estimate'
        ]
        for key in expected_keys:
            assert key in results

        assert results['did_estimate'] == pytest.approx(
            results['treatment_diff'] - results['control_diff'])
        assert abs(results['did_estimate'] - 2.0) < 1.0

    def test_regression_did_estimation(self, did):
        """The interaction coefficient equals the 2x2 estimate."""
        basic = did.estimate_basic_did()
        results = did.estimate_regression_did()

        expected_keys = [
            'model', 'did_coefficient', 'did_pvalue',
            'did_confidence_interval', 'r_squared'
        ]
        for key in expected_keys:
            assert key in results

        assert results['did_coefficient'] == pytest.approx(basic['did_estimate'])
        assert results['cov_type'] == 'HC3'

    def test_clustered_standard_errors(self, did):
        results = did.estimate_regression_did(cluster=True)

        assert results['cov_type'] == 'cluster'
        assert results['did_standard_error'] > 0
        low, high = results['did_confidence_interval']
        assert low < results['did_coefficient'] < high

    def test_parallel_trends_check(self, did):
        """Test parallel trends assumption check."""
        results = did.check_parallel_trends()

        expected_keys = [
            'treatment_slope', 'control_slope', 'slope_difference',
            'trend_test_pvalue', 'assumption_satisfied'
        ]
        for key in expected_keys:
            assert key in results

        assert isinstance(results['assumption_satisfied'], bool)
        # both groups share a 0.5 per-period trend
        assert abs(results['treatment_slope'] - 0.5) < 0.5

    def test_parallel_trends_needs_pre_periods(self, did):
        with pytest.raises(EstimationError):
            did.check_parallel_trends(pre_period_end=1)

    def test_placebo_test(self, did):
        """Test placebo test."""
        results = did.placebo_test()

        expected_keys = [
            'fake_treatment_time', 'placebo_coefficient',
            'placebo_pvalue', 'test_passed'
        ]
        for key in expected_keys:
            assert key in results

        assert results['fake_treatment_time'] == 3
        assert isinstance(results['test_passed'], bool)

    def test_summary_method(self, did):
        """Test summary method."""
        summary_before = did.summary()
        assert "No estimation results" in summary_before

        did.estimate_basic_did()
        summary_after = did.summary()
        assert "DiD Estimate" in summary_after
        assert isinstance(summary_after, str)

    def test_run_all_checks(self, did):
        results = did.run_all_checks()

        for key in ('basic_did', 'regression_did', 'placebo_test'):
            assert key in results
        assert 'parallel_trends' in did.assumption_checks


if __name__ == "__main__":
    # Run tests if script is executed directly
    pytest.main([__file__])
