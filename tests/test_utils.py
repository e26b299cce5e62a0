"""
Tests for the data validation helpers.
"""

import pytest
import pandas as pd
import numpy as np
import sys
import os

# Add the parent directory to the path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from causal_classroom.utils import validate_binary_treatment, validate_panel_data, check_balance
from causal_classroom.datasets import generate_did_data
from causal_classroom.core.exceptions import DataValidationError


class TestValidation:

    def test_binary_treatment(self):
        validate_binary_treatment(pd.DataFrame({'t': [0, 1, 1]}), 't')

        with pytest.raises(DataValidationError):
            validate_binary_treatment(pd.DataFrame({'t': [0, 1, 2]}), 't')

        with pytest.raises(DataValidationError):
            validate_binary_treatment(pd.DataFrame({'t': [1, 1]}), 't')

        with pytest.raises(DataValidationError):
            validate_binary_treatment(pd.DataFrame({'t': [0, 1, np.nan]}), 't')

        with pytest.raises(DataValidationError):
            validate_binary_treatment(pd.DataFrame({'x': [0, 1]}), 't')

    def test_panel_data(self):
        data = generate_did_data(n_units=10, n_periods=4, treatment_period=3)
        info = validate_panel_data(data, 'unit_id', 'period', 'outcome', 'treated')

        assert info['n_units'] == 10
        assert info['n_periods'] == 4
        assert info['is_balanced']
        assert info['completeness_rate'] == 1.0
        assert info['treatment_units'] == 5

        info = validate_panel_data(data.iloc[1:], 'unit_id', 'period', 'outcome', 'treated')
        assert not info['is_balanced']


class TestCheckBalance:

    @pytest.fixture
    def data(self):
        return pd.DataFrame({
            'treated': [1, 1, 1, 0, 0, 0],
            'age': [30.0, 35.0, 40.0, 25.0, 28.0, 50.0],
        })

    def test_unweighted(self, data):
        balance = check_balance(data, 'treated', ['age'])

        assert balance['age']['treatment_mean'] == pytest.approx(35.0)
        assert balance['age']['control_mean'] == pytest.approx(103.0 / 3)
        assert 0 <= balance['age']['t_pvalue'] <= 1

    def test_weights_act_as_frequencies(self, data):
        weights = pd.Series([1, 1, 1, 2, 1, 0], index=data.index)
        weighted = check_balance(data, 'treated', ['age'], weights=weights)

        expanded = data.loc[[0, 1, 2, 3, 3, 4]].reset_index(drop=True)
        unweighted = check_balance(expanded, 'treated', ['age'])

        for key in ('control_mean', 'standardized_diff', 't_statistic'):
            assert weighted['age'][key] == pytest.approx(unweighted['age'][key])

    def test_threshold(self, data):
        strict = check_balance(data, 'treated', ['age'], threshold=0.0)
        loose = check_balance(data, 'treated', ['age'], threshold=10.0)

        assert not strict['age']['balanced']
        assert loose['age']['balanced']

    def test_missing_covariate(self, data):
        with pytest.raises(DataValidationError):
            check_balance(data, 'treated', ['income'])


if __name__ == "__main__":
    # Run tests if script is executed directly
    pytest.main([__file__])
