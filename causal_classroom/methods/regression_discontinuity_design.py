"""
Regression Discontinuity Design implementation for causal inference.
"""

import pandas as pd
import numpy as np
import statsmodels.api as sm
from typing import Dict, Any, Optional, List, Sequence

from ..core.base import CausalInferenceBase
from ..core.exceptions import DataValidationError, EstimationError, ModelSpecificationError

KERNELS = ('triangular', 'uniform', 'epanechnikov')


class RegressionDiscontinuityDesign(CausalInferenceBase):
    """
    Sharp Regression Discontinuity Design with local polynomial estimation.

    Parameters:
    -----------
    data : pd.DataFrame
        The dataset containing the variables for analysis
    outcome_var : str
        Name of the outcome variable column
    running_var : str
        Name of the running variable (assignment variable) column
    cutoff : float
        The cutoff value for treatment assignment
    treatment_var : str, optional
        Name of the treatment indicator column. If None, units at or above the
        cutoff are treated
    """

    def __init__(self, data: pd.DataFrame, outcome_var: str, running_var: str,
                 cutoff: float, treatment_var: Optional[str] = None):
        if running_var not in data.columns:
            raise DataValidationError(f"Running variable '{running_var}' not found in data")

        self.running_var = running_var
        self.cutoff = cutoff

        if treatment_var is None:
            treatment_var = 'treatment'
            if treatment_var in data.columns:
                raise DataValidationError(
                    f"Column '{treatment_var}' already exists; pass it as treatment_var "
                    f"or rename it before deriving the sharp treatment flag")
            data = data.assign(**{treatment_var: (data[running_var] >= cutoff).astype(int)})

        super().__init__(data, outcome_var, treatment_var)

        self.data['running_var_centered'] = self.data[self.running_var] - self.cutoff
        self.assumption_checks = {}

        self._validate_rdd_data()

    def _validate_rdd_data(self) -> None:
        """Validate RDD-specific input data and variables"""
        missing_data = self.data[[self.running_var, self.outcome_var]].isnull().sum()
        if missing_data.any():
            print("⚠️ Missing values detected (rows are dropped from estimation):")
            for col, count in missing_data[missing_data > 0].items():
                print(f"  {col}: {count} missing values")

        running_min = self.data[self.running_var].min()
        running_max = self.data[self.running_var].max()
        if not (running_min <= self.cutoff <= running_max):
            raise DataValidationError(
                f"Cutoff {self.cutoff} outside data range [{running_min}, {running_max}]")

        print(f"✅ RDD data validation passed")
        print(f"  - Total observations: {len(self.data):,}")
        print(f"  - Running variable range: [{running_min:.2f}, {running_max:.2f}]")
        print(f"  - Cutoff: {self.cutoff}")
        print(f"  - Treatment units: {(self.data[self.treatment_var] == 1).sum():,}")
        print(f"  - Control units: {(self.data[self.treatment_var] == 0).sum():,}")

    def estimate(self) -> Dict[str, Any]:
        """Estimate the discontinuity at the rule-of-thumb bandwidth."""
        return self.estimate_rdd_effect()

    def summary(self) -> str:
        """
        Return a summary of the estimation results.

        Returns
        -------
        str
            Formatted summary of results
        """
        if self.results_ is None:
            return "No estimation results available. Run estimate() first."

        summary_lines = ["Regression Discontinuity Design Results", "=" * 50]

        if 'rdd_effect' in self.results_:
            effect = self.results_['rdd_effect']
            summary_lines.append(f"Treatment Effect: {effect['treatment_effect']:.3f}")
            summary_lines.append(f"Standard Error: {effect['standard_error']:.3f}")
            summary_lines.append(f"P-value: {effect['p_value']:.3f}")
            summary_lines.append(f"95% CI: [{effect['ci_lower']:.3f}, {effect['ci_upper']:.3f}]")
            summary_lines.append(f"Bandwidth: {effect['bandwidth']:.3f}")
            summary_lines.append(f"Observations: {effect['n_obs']}")

        return "\n".join(summary_lines)

    def check_continuity_assumption(self, n_bins: int = 50) -> Dict[str, Any]:
        """
        Compare the density of the running variable just below and just above
        the cutoff. A large jump suggests units manipulated their assignment.
        """
        self._section("ASSUMPTION CHECK: CONTINUITY (NO MANIPULATION)")

        centered = self.data['running_var_centered'].dropna()
        bin_width = (centered.max() - centered.min()) / n_bins

        # Two bins on each side of the cutoff
        counts_left = [((centered >= -k * bin_width) & (centered < -(k - 1) * bin_width)).sum()
                       for k in (1, 2)]
        counts_right = [((centered >= (k - 1) * bin_width) & (centered < k * bin_width)).sum()
                        for k in (1, 2)]

        density_left = float(np.mean(counts_left))
        density_right = float(np.mean(counts_right))

        if density_left == 0 or density_right == 0:
            print("❌ Insufficient data near cutoff for density test")
            results = {'assumption_satisfied': False, 'insufficient_data': True}
        else:
            density_ratio = density_right / density_left
            manipulation_suspected = bool(abs(np.log(density_ratio)) > 0.5)

            results = {
                'density_left': density_left,
                'density_right': density_right,
                'density_ratio': density_ratio,
                'manipulation_suspected': manipulation_suspected,
                'bin_width': bin_width,
                'assumption_satisfied': not manipulation_suspected
            }

            print(f"Density continuity test:")
            print(f"  Density left of cutoff: {density_left:.2f}")
            print(f"  Density right of cutoff: {density_right:.2f}")
            print(f"  Ratio (right/left): {density_ratio:.3f}")

            if manipulation_suspected:
                print("⚠️ POTENTIAL MANIPULATION detected - large density jump")
            else:
                print("✅ NO OBVIOUS MANIPULATION - density appears continuous")

        self.assumption_checks['continuity'] = results
        return results

    def optimal_bandwidth_selection(self) -> float:
        """
        Rule-of-thumb bandwidth in the spirit of Imbens-Kalyanaraman:
        1.84 * (range / 4) * n^(-1/5), floored at a twentieth of the range.
        """
        self._section("OPTIMAL BANDWIDTH SELECTION")

        centered = self.data['running_var_centered'].dropna()
        n = len(centered)
        range_running = centered.max() - centered.min()

        bandwidth = max(1.84 * (range_running / 4) * n ** (-1 / 5), range_running / 20)
        within_bandwidth = int((centered.abs() <= bandwidth).sum())

        print(f"Rule-of-thumb bandwidth: {bandwidth:.3f}")
        print(f"Observations within bandwidth: {within_bandwidth:,}")

        if within_bandwidth < 50:
            print("⚠️ WARNING: Very few observations within the bandwidth")

        self._store('optimal_bandwidth', {
            'bandwidth': bandwidth,
            'observations_within': within_bandwidth
        })
        return float(bandwidth)

    def estimate_rdd_effect(self, bandwidth: Optional[float] = None,
                            polynomial_order: int = 1, kernel: str = 'triangular') -> Dict[str, Any]:
        """
        Estimate RDD treatment effect

        Parameters:
        -----------
        bandwidth : float, optional
            Bandwidth for local estimation. If None, uses the rule-of-thumb bandwidth
        polynomial_order : int, default 1
            Order of polynomial for local regression (1=linear, 2=quadratic)
        kernel : str, default 'triangular'
            Kernel function ('triangular', 'uniform', 'epanechnikov')
        """
        self._section("RDD TREATMENT EFFECT ESTIMATION")

        if bandwidth is None:
            bandwidth = self.optimal_bandwidth_selection()
        else:
            print(f"Using specified bandwidth: {bandwidth:.3f}")

        effect_result = self._fit_local_polynomial(bandwidth, polynomial_order, kernel)

        print(f"RDD estimation results:")
        print(f"  Treatment effect: {effect_result['treatment_effect']:.3f}")
        print(f"  Standard error: {effect_result['standard_error']:.3f}")
        print(f"  t-statistic: {effect_result['t_statistic']:.3f}")
        print(f"  p-value: {effect_result['p_value']:.3f}")
        print(f"  95% CI: [{effect_result['ci_lower']:.3f}, {effect_result['ci_upper']:.3f}]")
        print(f"  Observations used: {effect_result['n_obs']}")

        if effect_result['p_value'] < 0.05:
            print("✅ STATISTICALLY SIGNIFICANT at 5% level")
        else:
            print("⚠️ NOT statistically significant at 5% level")

        return self._store('rdd_effect', effect_result)

    def _fit_local_polynomial(self, bandwidth: float, polynomial_order: int,
                              kernel: str) -> Dict[str, Any]:
        """Kernel-weighted least squares on both sides of the cutoff"""
        if polynomial_order not in (1, 2):
            raise ModelSpecificationError("Only polynomial orders 1 and 2 are supported")
        if kernel not in KERNELS:
            raise ModelSpecificationError(f"Kernel must be one of {KERNELS}")
        if bandwidth <= 0:
            raise ModelSpecificationError("Bandwidth must be positive")

        window = self.data[self.data['running_var_centered'].abs() <= bandwidth]
        window = window.dropna(subset=['running_var_centered', self.outcome_var])
        if len(window) < 10:
            raise EstimationError(
                f"Insufficient observations within bandwidth {bandwidth:.3f}: {len(window)}")

        r = window['running_var_centered']
        treated = window[self.treatment_var]

        X = pd.DataFrame({'running_var': r, 'treatment': treated,
                          'running_var_treatment': r * treated})
        if polynomial_order == 2:
            X['running_var_sq'] = r ** 2
            X['running_var_sq_treatment'] = r ** 2 * treated
        X = sm.add_constant(X)

        u = r / bandwidth
        if kernel == 'triangular':
            weights = np.maximum(0, 1 - u.abs())
        elif kernel == 'epanechnikov':
            weights = np.maximum(0, 0.75 * (1 - u ** 2))
        else:
            weights = np.ones(len(r))

        # Units exactly at the bandwidth edge get zero weight and drop out
        keep = np.asarray(weights) > 0
        model = sm.WLS(window[self.outcome_var][keep], X[keep], weights=np.asarray(weights)[keep]).fit()

        treatment_effect = model.params['treatment']
        standard_error = model.bse['treatment']

        return {
            'treatment_effect': float(treatment_effect),
            'standard_error': float(standard_error),
            't_statistic': float(model.tvalues['treatment']),
            'p_value': float(model.pvalues['treatment']),
            'ci_lower': float(treatment_effect - 1.96 * standard_error),
            'ci_upper': float(treatment_effect + 1.96 * standard_error),
            'n_obs': int(keep.sum()),
            'model': model,
            'r_squared': model.rsquared,
            'bandwidth': bandwidth,
            'polynomial_order': polynomial_order,
            'kernel': kernel
        }

    def bandwidth_sensitivity(self, multipliers: Sequence[float] = (0.5, 0.75, 1.0, 1.5, 2.0),
                              bandwidth: Optional[float] = None) -> pd.DataFrame:
        """Re-estimate the effect at multiples of a reference bandwidth"""
        if bandwidth is None:
            bandwidth = self.optimal_bandwidth_selection()

        self._section("ROBUSTNESS CHECK: BANDWIDTH SENSITIVITY")

        rows: List[Dict[str, Any]] = []
        for multiplier in multipliers:
            bw = bandwidth * multiplier
            try:
                fit = self._fit_local_polynomial(bw, polynomial_order=1, kernel='triangular')
            except EstimationError as exc:
                print(f"  x{multiplier:<5} bandwidth {bw:.3f}: skipped ({exc})")
                continue
            rows.append({
                'multiplier': multiplier,
                'bandwidth': bw,
                'treatment_effect': fit['treatment_effect'],
                'standard_error': fit['standard_error'],
                'n_obs': fit['n_obs']
            })
            print(f"  x{multiplier:<5} bandwidth {bw:.3f}: effect {fit['treatment_effect']:.3f} "
                  f"(SE {fit['standard_error']:.3f}, n={fit['n_obs']})")

        sensitivity = pd.DataFrame(rows, columns=['multiplier', 'bandwidth', 'treatment_effect',
                                                  'standard_error', 'n_obs'])
        self._store('bandwidth_sensitivity', {'table': sensitivity})
        return sensitivity

    def run_full_analysis(self, bandwidth: Optional[float] = None) -> Dict[str, Any]:
        """Run complete RDD analysis pipeline"""
        print("RUNNING COMPREHENSIVE RDD ANALYSIS")
        print("=" * 60)

        self.check_continuity_assumption()

        if bandwidth is None:
            bandwidth = self.optimal_bandwidth_selection()

        self.estimate_rdd_effect(bandwidth=bandwidth)
        self.bandwidth_sensitivity(bandwidth=bandwidth)
        self.print_summary()

        return self.results_

    def print_summary(self) -> None:
        """Print comprehensive analysis summary"""
        self._section("RDD ANALYSIS SUMMARY")

        if self.results_ and 'rdd_effect' in self.results_:
            effect = self.results_['rdd_effect']
            print(f"Treatment Effect:")
            print(f"  Estimate: {effect['treatment_effect']:.3f}")
            print(f"  Standard Error: {effect['standard_error']:.3f}")
            print(f"  p-value: {effect['p_value']:.3f}")
            print(f"  95% CI: [{effect['ci_lower']:.3f}, {effect['ci_upper']:.3f}]")

        print(f"\nAssumption Checks:")
        if 'continuity' in self.assumption_checks:
            continuity_ok = self.assumption_checks['continuity'].get('assumption_satisfied', False)
            print(f"  Density Continuity: {'✅ SATISFIED' if continuity_ok else '⚠️ VIOLATED'}")
