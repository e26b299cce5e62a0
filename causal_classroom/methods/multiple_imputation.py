"""
Multiple imputation of missing covariates for regression-based effect estimation.
"""

import pandas as pd
import numpy as np
import statsmodels.api as sm
from statsmodels.imputation import mice
from scipy import stats
from typing import Dict, Any, List

from ..core.base import CausalInferenceBase
from ..core.exceptions import DataValidationError, EstimationError
from ..utils.data_validation import validate_binary_treatment


class MultipleImputation(CausalInferenceBase):
    """
    Treatment effect estimation from a regression of the outcome on treatment
    and covariates when some values are missing.

    Three strategies are contrasted: dropping incomplete rows, filling with
    column means, and multiple imputation by chained equations pooled with
    Rubin's rules.

    Parameters:
    -----------
    data : pd.DataFrame
        The dataset containing the variables for analysis
    outcome_var : str
        Name of the outcome variable column
    treatment_var : str
        Name of the treatment indicator column (1 = treatment, 0 = control);
        must be fully observed
    covariates : list
        Covariate column names; these may contain missing values
    """

    def __init__(self, data: pd.DataFrame, outcome_var: str, treatment_var: str,
                 covariates: List[str]):
        super().__init__(data, outcome_var, treatment_var)
        self.covariates = covariates
        self.columns = [outcome_var, treatment_var] + covariates
        self.formula = f"{outcome_var} ~ " + " + ".join([treatment_var] + covariates)
        self.mice_results = None

        self._validate_mi_data()

    def _validate_mi_data(self) -> None:
        missing_cols = [col for col in self.covariates if col not in self.data.columns]
        if missing_cols:
            raise DataValidationError(f"Missing required covariate columns: {missing_cols}")

        bad_names = [col for col in self.columns if not col.isidentifier()]
        if bad_names:
            raise DataValidationError(f"Column names must be valid identifiers: {bad_names}")

        validate_binary_treatment(self.data, self.treatment_var)

        self.missing_counts = self.data[self.columns].isnull().sum()
        n_complete = int(self.data[self.columns].notnull().all(axis=1).sum())

        print(f"✅ Data validation passed")
        print(f"  - Total observations: {len(self.data):,}")
        print(f"  - Complete cases: {n_complete:,} ({n_complete / len(self.data):.1%})")
        for col, count in self.missing_counts[self.missing_counts > 0].items():
            print(f"  - {col}: {count} missing values ({count / len(self.data):.1%})")

    def estimate(self) -> Dict[str, Any]:
        """Run multiple imputation with default settings."""
        return self.impute_and_pool()

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

        summary_lines = ["Multiple Imputation Results", "=" * 50]
        labels = {
            'complete_case': 'Complete-case',
            'mean_imputation': 'Mean imputation',
            'multiple_imputation': 'Multiple imputation'
        }
        for key, label in labels.items():
            if key in self.results_:
                res = self.results_[key]
                summary_lines.append(
                    f"{label} Treatment Effect: {res['coefficient']:.3f} "
                    f"(SE {res['standard_error']:.3f})")

        return "\n".join(summary_lines)

    def _report(self, label: str, results: Dict[str, Any]) -> None:
        print(f"{label}:")
        print(f"  Observations: {results['n_obs']:,}")
        print(f"  Treatment effect: {results['coefficient']:.3f}")
        print(f"  Standard error: {results['standard_error']:.3f}")
        print(f"  p-value: {results['p_value']:.3f}")
        print(f"  95% CI: [{results['ci_lower']:.3f}, {results['ci_upper']:.3f}]")

    def _ols_effect(self, frame: pd.DataFrame) -> Dict[str, Any]:
        X = sm.add_constant(frame[[self.treatment_var] + self.covariates])
        model = sm.OLS(frame[self.outcome_var], X).fit()
        coef = model.params[self.treatment_var]
        se = model.bse[self.treatment_var]
        return {
            'coefficient': float(coef),
            'standard_error': float(se),
            'p_value': float(model.pvalues[self.treatment_var]),
            'ci_lower': float(coef - 1.96 * se),
            'ci_upper': float(coef + 1.96 * se),
            'n_obs': int(model.nobs),
            'model': model
        }

    def complete_case_analysis(self) -> Dict[str, Any]:
        """OLS on rows with no missing values (listwise deletion)"""
        self._section("COMPLETE-CASE ANALYSIS")

        complete = self.data[self.columns].dropna()
        if len(complete) <= len(self.covariates) + 2:
            raise EstimationError(f"Too few complete cases for regression: {len(complete)}")

        results = self._ols_effect(complete)
        self._report("Listwise deletion", results)
        return self._store('complete_case', results)

    def mean_imputation_analysis(self) -> Dict[str, Any]:
        """OLS after filling each covariate with its observed mean"""
        self._section("SINGLE MEAN IMPUTATION")

        filled = self.data[self.columns].copy()
        filled[self.covariates] = filled[self.covariates].fillna(filled[self.covariates].mean())
        filled = filled.dropna(subset=[self.outcome_var])

        results = self._ols_effect(filled)
        self._report("Mean imputation", results)
        print("⚠️ Single imputation treats filled values as observed; standard errors are too small")
        return self._store('mean_imputation', results)

    def impute_and_pool(self, n_imputations: int = 10, n_burnin: int = 10,
                        random_state: int = 42) -> Dict[str, Any]:
        """
        Multiple imputation by chained equations, pooled with Rubin's rules.

        Parameters:
        -----------
        n_imputations : int, default 10
            Number of completed datasets to analyse
        n_burnin : int, default 10
            Chained-equation cycles discarded before the first imputation
        random_state : int, default 42
            Seed for the imputation draws
        """
        self._section("MULTIPLE IMPUTATION (MICE)")

        if n_imputations < 2:
            raise EstimationError("Rubin's rules need at least two imputations")

        imp_data = mice.MICEData(self.data[self.columns].reset_index(drop=True),
                                 rng=np.random.default_rng(random_state))
        analysis = mice.MICE(self.formula, sm.OLS, imp_data)
        pooled = analysis.fit(n_burnin=n_burnin, n_imputations=n_imputations)
        self.mice_results = pooled

        position = list(pooled.exog_names).index(self.treatment_var)
        coef = float(pooled.params[position])
        se = float(np.sqrt(pooled.cov_params()[position, position]))
        p_value = float(2 * stats.norm.sf(abs(coef / se)))

        results = {
            'coefficient': coef,
            'standard_error': se,
            'p_value': p_value,
            'ci_lower': coef - 1.96 * se,
            'ci_upper': coef + 1.96 * se,
            'n_obs': len(self.data),
            'n_imputations': n_imputations,
            'fraction_missing_info': float(pooled.frac_miss_info[position])
        }

        self._report(f"Pooled over {n_imputations} imputations", results)
        print(f"  Fraction of missing information: {results['fraction_missing_info']:.3f}")

        return self._store('multiple_imputation', results)

    def compare_estimates(self) -> pd.DataFrame:
        """Side-by-side table of every strategy that has been run"""
        self._section("COMPARISON OF MISSING-DATA STRATEGIES")

        if self.results_ is None:
            raise EstimationError("No estimates to compare; run an analysis first")

        columns = ['coefficient', 'standard_error', 'ci_lower', 'ci_upper', 'n_obs']
        table = pd.DataFrame({
            key: {col: self.results_[key][col] for col in columns}
            for key in ('complete_case', 'mean_imputation', 'multiple_imputation')
            if key in self.results_
        }).T

        print(table.to_string(float_format=lambda v: f"{v:.3f}"))
        return table

    def run_full_analysis(self, n_imputations: int = 10) -> Dict[str, Any]:
        """Run all three strategies and compare them"""
        print("RUNNING COMPREHENSIVE MISSING-DATA ANALYSIS")
        print("=" * 60)

        self.complete_case_analysis()
        self.mean_imputation_analysis()
        self.impute_and_pool(n_imputations=n_imputations)
        self._store('comparison', {'table': self.compare_estimates()})

        return self.results_
