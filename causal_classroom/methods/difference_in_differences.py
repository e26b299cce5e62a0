"""
Difference-in-Differences on a unit-by-period panel.
"""

import pandas as pd
import numpy as np
import statsmodels.api as sm
from scipy import stats
from typing import Dict, Any, Optional, Union

from ..core.base import CausalInferenceBase
from ..core.exceptions import DataValidationError, EstimationError
from ..utils.data_validation import validate_panel_data

Period = Union[int, float]


class DifferenceInDifferences(CausalInferenceBase):
    """
    Difference-in-Differences analysis on a panel with numeric time periods.

    Parameters:
    -----------
    data : pd.DataFrame
        Panel with one row per unit and period
    outcome_var : str
        Outcome column
    unit_var : str
        Unit identifier column (a store, a region, a customer)
    time_var : str
        Numeric period column
    treatment_var : str
        1 for units in the treated group, 0 for comparison units
    post_var : str
        1 for periods on or after ``treatment_start``, 0 before
    treatment_start : int or float
        First period in which the treated group receives treatment
    """

    def __init__(self, data: pd.DataFrame, outcome_var: str, unit_var: str,
                 time_var: str, treatment_var: str, post_var: str,
                 treatment_start: Period):
        super().__init__(data, outcome_var, treatment_var)

        self.unit_var = unit_var
        self.time_var = time_var
        self.post_var = post_var
        self.treatment_start = treatment_start
        self.assumption_checks = {}

        self._validate_did_data()

    def _validate_did_data(self) -> None:
        absent = [col for col in (self.unit_var, self.time_var, self.post_var)
                  if col not in self.data.columns]
        if absent:
            raise DataValidationError(f"Panel is missing columns: {absent}")

        found = sorted(self.data[self.post_var].unique().tolist())
        if found != [0, 1]:
            raise DataValidationError(
                f"Post indicator '{self.post_var}' must take values 0 and 1, found: {found}")

        if not pd.api.types.is_numeric_dtype(self.data[self.time_var]):
            raise DataValidationError(f"Time column '{self.time_var}' must be numeric")

        self.panel_info = validate_panel_data(self.data, self.unit_var, self.time_var,
                                              self.outcome_var, self.treatment_var)

    def estimate(self) -> Dict[str, Any]:
        """Run the 2x2 DiD estimate."""
        return self.estimate_basic_did()

    def summary(self) -> str:
        if self.results_ is None:
            return "No estimation results available. Run estimate() first."

        lines = ["Difference-in-Differences", "=" * 50]

        if 'basic_did' in self.results_:
            cells = self.results_['basic_did']
            lines += [
                f"DiD Estimate: {cells['did_estimate']:.3f}",
                f"  change in treated group:    {cells['treatment_diff']:.3f}",
                f"  change in comparison group: {cells['control_diff']:.3f}",
            ]

        if 'regression_did' in self.results_:
            reg = self.results_['regression_did']
            lines.append(f"Regression DiD: {reg['did_coefficient']:.3f} "
                         f"(SE {reg['did_standard_error']:.3f}, p={reg['did_pvalue']:.3f})")

        if 'placebo_test' in self.results_:
            verdict = "passed" if self.results_['placebo_test']['test_passed'] else "failed"
            lines.append(f"Placebo test: {verdict}")

        return "\n".join(lines)

    def _pre_treatment(self, last_period: Period) -> pd.DataFrame:
        frame = self.data[self.data[self.time_var] <= last_period]
        if frame[self.time_var].nunique() < 2:
            raise EstimationError(
                f"Need at least two pre-treatment periods up to {last_period}, "
                f"found {frame[self.time_var].nunique()}")
        return frame.copy()

    def _interaction_fit(self, frame: pd.DataFrame, after: pd.Series, **fit_kwargs):
        """OLS of the outcome on group, period indicator and their product."""
        X = sm.add_constant(pd.DataFrame({
            self.treatment_var: frame[self.treatment_var],
            'after': after,
            'interaction': frame[self.treatment_var] * after,
        }))
        return sm.OLS(frame[self.outcome_var], X).fit(**fit_kwargs)

    def check_parallel_trends(self, pre_period_end: Optional[Period] = None) -> Dict[str, Any]:
        """
        Compare pre-treatment outcome trends of the two groups.

        Group-mean slopes are reported for reading; the decision uses the
        period-by-group interaction of an OLS fit on the individual
        pre-treatment observations, so a small p-value means diverging trends.

        Parameters:
        -----------
        pre_period_end : int or float, optional
            Last period counted as pre-treatment; defaults to the period
            before ``treatment_start``
        """
        self._section("PARALLEL TRENDS")

        if pre_period_end is None:
            pre_period_end = self.treatment_start - 1
        pre = self._pre_treatment(pre_period_end)

        means = pre.pivot_table(index=self.time_var, columns=self.treatment_var,
                                values=self.outcome_var, aggfunc='mean')
        periods = means.index.to_numpy(dtype=float)
        treated_slope = stats.linregress(periods, means[1]).slope
        control_slope = stats.linregress(periods, means[0]).slope

        X = sm.add_constant(pd.DataFrame({
            'period': pre[self.time_var],
            'group': pre[self.treatment_var],
            'period_x_group': pre[self.time_var] * pre[self.treatment_var],
        }))
        pvalue = sm.OLS(pre[self.outcome_var], X).fit().pvalues['period_x_group']

        results = {
            'treatment_slope': treated_slope,
            'control_slope': control_slope,
            'slope_difference': abs(treated_slope - control_slope),
            'trend_test_pvalue': pvalue,
            'group_means': means,
            'assumption_satisfied': bool(pvalue > 0.05),
        }

        print(f"Slope of mean outcome, periods <= {pre_period_end}:")
        print(f"  treated    {treated_slope:8.3f}")
        print(f"  comparison {control_slope:8.3f}")
        print(f"  gap        {results['slope_difference']:8.3f}")
        print(f"Interaction p-value: {pvalue:.3f}")
        if results['assumption_satisfied']:
            print("✓ Trends look parallel before treatment")
        else:
            print("⚠ Pre-treatment trends diverge; DiD estimate may be biased")

        self.assumption_checks['parallel_trends'] = results
        return results

    def estimate_basic_did(self) -> Dict[str, Any]:
        """The 2x2 estimator: change in treated mean minus change in comparison mean"""
        self._section("2x2 DIFFERENCE-IN-DIFFERENCES")

        cells = self.data.pivot_table(index=self.treatment_var, columns=self.post_var,
                                      values=self.outcome_var, aggfunc='mean')
        changes = cells[1] - cells[0]

        results = {
            'control_pre': cells.loc[0, 0],
            'control_post': cells.loc[0, 1],
            'treatment_pre': cells.loc[1, 0],
            'treatment_post': cells.loc[1, 1],
            'control_diff': changes[0],
            'treatment_diff': changes[1],
            'did_estimate': changes[1] - changes[0],
        }

        table = cells.rename(index={0: 'comparison', 1: 'treated'}, columns={0: 'pre', 1: 'post'})
        table['change'] = changes.to_numpy()
        print(table.round(2).to_string())
        print(f"\nDiD estimate: {results['did_estimate']:.2f}")

        return self._store('basic_did', results)

    def estimate_regression_did(self, robust_se: bool = True, cluster: bool = False) -> Dict[str, Any]:
        """
        DiD as the interaction coefficient in y ~ treated + post + treated:post

        Parameters:
        -----------
        robust_se : bool, default True
            Heteroskedasticity-robust (HC3) standard errors
        cluster : bool, default False
            Cluster standard errors by unit; takes precedence over ``robust_se``
        """
        self._section("REGRESSION DiD")

        if cluster:
            cov_type = 'cluster'
            fit_kwargs = {'cov_type': 'cluster',
                          'cov_kwds': {'groups': pd.factorize(self.data[self.unit_var])[0]}}
        else:
            cov_type = 'HC3' if robust_se else 'nonrobust'
            fit_kwargs = {'cov_type': cov_type}

        model = self._interaction_fit(self.data, self.data[self.post_var], **fit_kwargs)
        low, high = model.conf_int().loc['interaction']

        results = {
            'model': model,
            'did_coefficient': model.params['interaction'],
            'did_standard_error': model.bse['interaction'],
            'did_pvalue': model.pvalues['interaction'],
            'did_confidence_interval': (low, high),
            'r_squared': model.rsquared,
            'cov_type': cov_type,
        }

        print(f"Coefficients ({cov_type} standard errors):")
        print(f"  baseline (comparison, pre) {model.params['const']:8.2f}")
        print(f"  treated group              {model.params[self.treatment_var]:8.2f}")
        print(f"  post period                {model.params['after']:8.2f}")
        print(f"  treated x post             {results['did_coefficient']:8.2f}"
              f"   [{low:.2f}, {high:.2f}], p={results['did_pvalue']:.4f}")
        print(f"R²: {model.rsquared:.3f}")

        if results['did_pvalue'] < 0.05:
            print("✓ Effect is significant at the 5% level")
        else:
            print("⚠ Effect is not significant at the 5% level")

        return self._store('regression_did', results)

    def placebo_test(self, fake_treatment_time: Optional[Period] = None) -> Dict[str, Any]:
        """
        Pretend treatment started earlier and re-estimate on pre-treatment rows.

        A real effect should not appear before treatment, so a significant
        placebo coefficient points to pre-existing group differences. The
        default fake start is the middle pre-treatment period.
        """
        self._section("PLACEBO TEST")

        pre = self._pre_treatment(self.treatment_start - 1)
        if fake_treatment_time is None:
            periods = np.sort(pre[self.time_var].unique())
            fake_treatment_time = periods[len(periods) // 2]

        after = (pre[self.time_var] >= fake_treatment_time).astype(int)
        model = self._interaction_fit(pre, after)

        results = {
            'fake_treatment_time': fake_treatment_time,
            'placebo_coefficient': model.params['interaction'],
            'placebo_pvalue': model.pvalues['interaction'],
            'placebo_model': model,
            'test_passed': bool(model.pvalues['interaction'] > 0.05),
        }

        print(f"Fake treatment start: {fake_treatment_time}")
        print(f"  placebo effect {results['placebo_coefficient']:.2f} "
              f"(p={results['placebo_pvalue']:.4f})")
        if results['test_passed']:
            print("✓ No effect before treatment")
        else:
            print("⚠ Spurious pre-treatment effect detected")

        return self._store('placebo_test', results)

    def run_all_checks(self) -> Dict[str, Any]:
        """Parallel trends, both estimators, the placebo test and a summary"""
        print("DIFFERENCE-IN-DIFFERENCES WORKFLOW")
        print("=" * 60)

        self.check_parallel_trends()
        self.estimate_basic_did()
        self.estimate_regression_did()
        self.placebo_test()
        self.print_summary()

        return self.results_

    def print_summary(self) -> None:
        self._section("SUMMARY")

        panel = "balanced" if self.panel_info['is_balanced'] else "unbalanced"
        print(f"Panel: {self.panel_info['n_units']} units x "
              f"{self.panel_info['n_periods']} periods ({panel})")

        for name, check in self.assumption_checks.items():
            mark = "✓" if check.get('assumption_satisfied', False) else "⚠"
            print(f"{mark} {name.replace('_', ' ')}")

        if self.results_:
            print(self.summary())
