"""
Data validation utilities for causal inference.
"""

import pandas as pd
import numpy as np
from statsmodels.stats.weightstats import DescrStatsW, ttest_ind
from typing import List, Dict, Any, Optional

from ..core.exceptions import DataValidationError


def validate_binary_treatment(data: pd.DataFrame, treatment_var: str) -> None:
    """
    Check that a treatment column holds only 0/1 flags and both groups occur.

    Raises
    ------
    DataValidationError
        If the column is missing, has missing values or is not binary
    """
    if treatment_var not in data.columns:
        raise DataValidationError(f"Treatment variable '{treatment_var}' not found in data")

    flags = data[treatment_var]
    if flags.isnull().any():
        raise DataValidationError(
            f"Treatment variable '{treatment_var}' has {flags.isnull().sum()} missing values")

    treatment_values = sorted(flags.unique().tolist())
    if treatment_values != [0, 1]:
        raise DataValidationError(
            f"Treatment variable must be binary (0, 1), found: {treatment_values}"
        )


def validate_panel_data(data: pd.DataFrame, unit_var: str, time_var: str,
                        outcome_var: str, treatment_var: str) -> Dict[str, Any]:
    """
    Validate panel data structure for difference-in-differences analysis.

    Parameters
    ----------
    data : pd.DataFrame
        The dataset to validate
    unit_var : str
        Name of the unit identifier column
    time_var : str
        Name of the time variable column
    outcome_var : str
        Name of the outcome variable column
    treatment_var : str
        Name of the treatment group indicator column

    Returns
    -------
    Dict[str, Any]
        Panel shape and group composition

    Raises
    ------
    DataValidationError
        If required columns are missing or treatment is not binary
    """
    required_cols = [unit_var, time_var, outcome_var, treatment_var]
    missing_cols = [col for col in required_cols if col not in data.columns]
    if missing_cols:
        raise DataValidationError(f"Missing required columns: {missing_cols}")

    validate_binary_treatment(data, treatment_var)

    missing_counts = data[required_cols].isnull().sum()
    if missing_counts.any():
        print("⚠ Warning: Missing values detected:")
        for col, count in missing_counts[missing_counts > 0].items():
            print(f"  {col}: {count} missing values")

    n_units = data[unit_var].nunique()
    n_periods = data[time_var].nunique()
    expected_obs = n_units * n_periods
    actual_obs = len(data)

    treatment_units = data.loc[data[treatment_var] == 1, unit_var].nunique()
    control_units = data.loc[data[treatment_var] == 0, unit_var].nunique()

    results = {
        'n_units': n_units,
        'n_periods': n_periods,
        'expected_observations': expected_obs,
        'actual_observations': actual_obs,
        'is_balanced': actual_obs == expected_obs,
        'completeness_rate': actual_obs / expected_obs if expected_obs else 0.0,
        'treatment_units': treatment_units,
        'control_units': control_units,
    }

    print("✓ Panel validation completed:")
    print(f"  Units: {n_units} (Treatment: {treatment_units}, Control: {control_units})")
    print(f"  Time periods: {n_periods}")
    print(f"  Panel balance: {'Balanced' if results['is_balanced'] else 'Unbalanced'}")

    return results


def check_balance(data: pd.DataFrame, treatment_var: str, covariates: List[str],
                  weights: Optional[pd.Series] = None,
                  threshold: float = 0.1) -> Dict[str, Dict[str, float]]:
    """
    Compare covariate means between treatment and control groups.

    With ``weights`` each row counts that many times, which is how a
    control reused by several matched pairs enters the comparison.

    Parameters
    ----------
    data : pd.DataFrame
        The dataset
    treatment_var : str
        Name of the treatment variable
    covariates : List[str]
        Covariate column names to check
    weights : pd.Series, optional
        Non-negative frequency weight per row, aligned to ``data``
    threshold : float, default 0.1
        Largest absolute standardized difference considered balanced

    Returns
    -------
    Dict[str, Dict[str, float]]
        Per-covariate means, standardized difference and t-test
    """
    missing_cols = [col for col in covariates if col not in data.columns]
    if missing_cols:
        raise DataValidationError(f"Missing covariate columns: {missing_cols}")

    if weights is None:
        weights = pd.Series(1.0, index=data.index)

    is_treated = data[treatment_var] == 1
    balance_results = {}

    for covar in covariates:
        treat_stats = DescrStatsW(data.loc[is_treated, covar], weights=weights[is_treated], ddof=1)
        control_stats = DescrStatsW(data.loc[~is_treated, covar], weights=weights[~is_treated], ddof=1)

        pooled_std = np.sqrt((treat_stats.var + control_stats.var) / 2)
        difference = treat_stats.mean - control_stats.mean
        std_diff = difference / pooled_std if pooled_std > 0 else 0.0

        t_stat, p_value, _ = ttest_ind(
            treat_stats.data, control_stats.data,
            weights=(treat_stats.weights, control_stats.weights))

        balance_results[covar] = {
            'treatment_mean': treat_stats.mean,
            'control_mean': control_stats.mean,
            'difference': difference,
            'standardized_diff': std_diff,
            't_statistic': t_stat,
            't_pvalue': p_value,
            'balanced': bool(abs(std_diff) < threshold),
        }

        print(f"{covar:20s}: Std diff = {std_diff:6.3f}, p-value = {p_value:.3f}")

    return balance_results
