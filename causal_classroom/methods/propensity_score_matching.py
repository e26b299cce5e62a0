"""
Propensity Score Matching implementation for causal inference.
"""

import pandas as pd
import numpy as np
import statsmodels.api as sm
from sklearn.linear_model import LogisticRegression
from sklearn.ensemble import RandomForestClassifier
from sklearn.preprocessing import StandardScaler
from sklearn.metrics import roc_auc_score
from scipy import stats
from scipy.special import logit
from typing import Dict, Any, Optional, List

from ..core.base import CausalInferenceBase
from ..core.exceptions import DataValidationError, EstimationError, ModelSpecificationError
from ..matching import NO_MATCH, greedy_match
from ..utils.data_validation import check_balance, validate_binary_treatment


class PropensityScoreMatching(CausalInferenceBase):
    """
    Propensity Score Matching analysis: score estimation, common support and
    balance checks, greedy nearest-neighbour matching and ATT estimation.

    Parameters:
    -----------
    data : pd.DataFrame
        The dataset containing the variables for analysis
    outcome_var : str
        Name of the outcome variable column
    treatment_var : str
        Name of the treatment indicator column (1 = treatment, 0 = control)
    covariates : list
        List of covariate column names to use for propensity score estimation
    unit_id : str, optional
        Name of unit identifier column (for tracking matched pairs)
    """

    def __init__(self, data: pd.DataFrame, outcome_var: str, treatment_var: str,
                 covariates: List[str], unit_id: Optional[str] = None):
        super().__init__(data, outcome_var, treatment_var)

        # Matcher output is positional, so rows are addressed 0..n-1
        self.data = self.data.reset_index(drop=True)

        self.covariates = covariates
        self.unit_id = unit_id if unit_id else 'unit_id'
        if self.unit_id not in self.data.columns:
            self.data[self.unit_id] = range(len(self.data))

        self.propensity_scores = None
        self.score_type = None
        self.match_result = None
        self.matched_data = None
        self.assumption_checks = {}

        self._validate_psm_data()

    def _validate_psm_data(self) -> None:
        """Validate PSM-specific input data and variables"""
        missing_cols = [col for col in self.covariates if col not in self.data.columns]
        if missing_cols:
            raise DataValidationError(f"Missing required covariate columns: {missing_cols}")

        validate_binary_treatment(self.data, self.treatment_var)

        missing_data = self.data[[self.outcome_var] + self.covariates].isnull().sum()
        if missing_data.any():
            print("⚠️  Missing values detected (covariates are mean-filled for scoring):")
            for col, count in missing_data[missing_data > 0].items():
                print(f"  {col}: {count} missing values")

        print(f"✅ Data validation passed")
        print(f"  - Total observations: {len(self.data):,}")
        print(f"  - Treatment units: {(self.data[self.treatment_var] == 1).sum():,}")
        print(f"  - Control units: {(self.data[self.treatment_var] == 0).sum():,}")
        print(f"  - Covariates: {len(self.covariates)}")

    def estimate(self) -> Dict[str, Any]:
        """Run the full PSM analysis and return the results dictionary."""
        return self.run_full_analysis()

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

        summary_lines = ["Propensity Score Matching Results", "=" * 50]

        if 'matching' in self.results_:
            matching = self.results_['matching']
            summary_lines.append(
                f"Matched treated units: {matching['n_matched']} of {matching['n_treated']}")

        if 'treatment_effect' in self.results_:
            effect = self.results_['treatment_effect']
            summary_lines.append(f"Average Treatment Effect on the Treated: {effect['att']:.3f}")
            summary_lines.append(f"Standard Error: {effect['standard_error']:.3f}")
            summary_lines.append(f"P-value: {effect['p_value']:.3f}")
            summary_lines.append(f"95% CI: [{effect['ci_lower']:.3f}, {effect['ci_upper']:.3f}]")

        return "\n".join(summary_lines)

    def estimate_propensity_scores(self, method: str = 'logistic',
                                   score_type: str = 'probability') -> np.ndarray:
        """
        Estimate the score used for matching.

        Parameters:
        -----------
        method : str, default 'logistic'
            Model for the treatment probability ('logistic', 'random_forest')
        score_type : str, default 'probability'
            'probability' matches on P(treated | X); 'linear' matches on the
            log-odds index, which is unbounded
        """
        self._section("PROPENSITY SCORE ESTIMATION")

        if score_type not in ('probability', 'linear'):
            raise ModelSpecificationError("score_type must be 'probability' or 'linear'")

        X = self.data[self.covariates].copy()
        X = X.fillna(X.mean())
        y = self.data[self.treatment_var]

        if method == 'logistic':
            scaler = StandardScaler()
            X_scaled = scaler.fit_transform(X)

            model = LogisticRegression(random_state=42, max_iter=1000)
            model.fit(X_scaled, y)
            probabilities = model.predict_proba(X_scaled)[:, 1]
            linear_index = model.decision_function(X_scaled)

        elif method == 'random_forest':
            model = RandomForestClassifier(n_estimators=100, random_state=42, max_depth=10)
            model.fit(X, y)
            probabilities = model.predict_proba(X)[:, 1]
            linear_index = logit(np.clip(probabilities, 1e-6, 1 - 1e-6))

        else:
            raise ModelSpecificationError("Method must be 'logistic' or 'random_forest'")

        self.propensity_model = model
        self.score_type = score_type
        self.propensity_scores = probabilities if score_type == 'probability' else linear_index
        self.data['propensity_score'] = probabilities
        self.data['propensity_index'] = linear_index

        auc_score = roc_auc_score(y, probabilities)
        extreme_low = int((probabilities < 0.1).sum())
        extreme_high = int((probabilities > 0.9).sum())

        print(f"Propensity score estimation complete:")
        print(f"  Method: {method} (matching on {score_type} scale)")
        print(f"  Features used: {X.shape[1]}")
        print(f"  AUC: {auc_score:.3f}")
        print(f"  Score range: [{self.propensity_scores.min():.3f}, {self.propensity_scores.max():.3f}]")

        if extreme_low or extreme_high:
            print(f"⚠️  Extreme propensity scores detected:")
            print(f"  < 0.1: {extreme_low} observations")
            print(f"  > 0.9: {extreme_high} observations")

        self._store('propensity_estimation', {
            'method': method,
            'score_type': score_type,
            'auc': auc_score,
            'extreme_scores': extreme_low + extreme_high,
            'feature_count': X.shape[1]
        })
        return self.propensity_scores

    def _require_scores(self) -> None:
        if self.propensity_scores is None:
            raise EstimationError("Must estimate propensity scores first")

    def _support_mask(self) -> np.ndarray:
        """Units whose score lies inside the range shared by both groups."""
        treated = (self.data[self.treatment_var] == 1).to_numpy()
        scores = self.propensity_scores
        lower = max(scores[treated].min(), scores[~treated].min())
        upper = min(scores[treated].max(), scores[~treated].max())
        return (scores >= lower) & (scores <= upper)

    def check_overlap(self) -> Dict[str, Any]:
        """Check common support/overlap assumption"""
        self._section("ASSUMPTION CHECK: COMMON SUPPORT/OVERLAP")
        self._require_scores()

        treated = (self.data[self.treatment_var] == 1).to_numpy()
        treatment_ps = self.propensity_scores[treated]
        control_ps = self.propensity_scores[~treated]

        treatment_range = (treatment_ps.min(), treatment_ps.max())
        control_range = (control_ps.min(), control_ps.max())
        overlap_range = (max(treatment_range[0], control_range[0]),
                         min(treatment_range[1], control_range[1]))
        overlap_exists = bool(overlap_range[0] < overlap_range[1])
        overlap_pct = self._support_mask().mean() * 100

        ks_stat, ks_pvalue = stats.ks_2samp(treatment_ps, control_ps)

        results = {
            'treatment_range': treatment_range,
            'control_range': control_range,
            'overlap_range': overlap_range,
            'overlap_exists': overlap_exists,
            'overlap_percentage': overlap_pct,
            'ks_statistic': ks_stat,
            'ks_pvalue': ks_pvalue
        }

        print(f"Overlap analysis:")
        print(f"  Treatment range: [{treatment_range[0]:.3f}, {treatment_range[1]:.3f}]")
        print(f"  Control range: [{control_range[0]:.3f}, {control_range[1]:.3f}]")
        print(f"  Overlap range: [{overlap_range[0]:.3f}, {overlap_range[1]:.3f}]")
        print(f"  Observations in overlap: {overlap_pct:.1f}%")
        print(f"  KS test p-value: {ks_pvalue:.3f}")

        if overlap_exists and overlap_pct > 80:
            print("✅ COMMON SUPPORT: GOOD OVERLAP")
            results['assumption_satisfied'] = True
        elif overlap_exists and overlap_pct > 50:
            print("⚠️ COMMON SUPPORT: MODERATE OVERLAP")
            results['assumption_satisfied'] = False
        else:
            print("❌ COMMON SUPPORT: POOR OVERLAP")
            results['assumption_satisfied'] = False

        self.assumption_checks['overlap'] = results
        return results

    def check_balance_before_matching(self) -> Dict[str, Dict[str, float]]:
        """Check covariate balance before matching"""
        self._section("COVARIATE BALANCE: BEFORE MATCHING")

        balance_results = check_balance(self.data, self.treatment_var, self.covariates)
        large_imbalances = sum(1 for v in balance_results.values() if abs(v['standardized_diff']) > 0.25)

        print(f"\nBalance summary:")
        print(f"  Variables with |std diff| > 0.25: {large_imbalances}/{len(self.covariates)}")

        if large_imbalances == 0:
            print("✅ GOOD BALANCE before matching")
        elif large_imbalances <= len(self.covariates) * 0.3:
            print("⚠️ MODERATE IMBALANCE before matching")
        else:
            print("❌ POOR BALANCE before matching")

        self.assumption_checks['balance_before'] = balance_results
        return balance_results

    def perform_matching(self, caliper: Optional[float] = None, replacement: bool = True,
                         common_support: bool = False) -> Optional[pd.DataFrame]:
        """
        Greedy nearest-neighbour matching on the estimated score.

        Parameters:
        -----------
        caliper : float, optional
            Maximum score distance for a match (on the matching scale)
        replacement : bool, default True
            Whether a control may be matched to several treated units
        common_support : bool, default False
            Drop units outside the overlap region before matching

        Returns:
        --------
        pd.DataFrame or None
            Matched sample with ``_pair_id``, ``_matched_index`` and ``_weight``
            columns, or None when no treated unit found a partner
        """
        self._section("PROPENSITY SCORE MATCHING: GREEDY NEAREST NEIGHBOUR")
        self._require_scores()

        exclude = ~self._support_mask() if common_support else None
        result = greedy_match(self.data[self.treatment_var], self.propensity_scores,
                              caliper=caliper, replace=replacement, exclude=exclude)
        self.match_result = result

        self.data['_matched_index'] = result.matched_index
        self.data['_weight'] = result.usage_count
        self.data['_pair_id'] = result.pair_id

        is_treated = self.data[self.treatment_var] == 1
        n_treated = int(is_treated.sum())
        controls_used = self.data.loc[~is_treated, '_weight']

        matching = {
            'n_treated': n_treated,
            'n_matched': result.n_matched,
            'n_unmatched': n_treated - result.n_matched,
            'n_controls_used': int((controls_used > 0).sum()),
            'max_control_reuse': int(controls_used.max()) if len(controls_used) else 0,
            'caliper': caliper,
            'replacement': replacement,
            'common_support': common_support
        }
        self._store('matching', matching)

        if result.n_matched == 0:
            print("❌ No successful matches found")
            self.matched_data = None
            return None

        self.matched_data = self.data[self.data['_weight'] > 0].copy()

        print(f"Matching complete:")
        print(f"  Treatment units matched: {matching['n_matched']} of {n_treated}")
        print(f"  Distinct control units used: {matching['n_controls_used']}")
        print(f"  Maximum reuse of a control: {matching['max_control_reuse']}")
        if matching['n_unmatched']:
            print(f"⚠️  {matching['n_unmatched']} treated units left unmatched")

        self._assess_match_quality()
        return self.matched_data

    def _matched_pairs(self):
        """Positional (treated, control) indices of every matched pair."""
        treated = (self.data[self.treatment_var] == 1).to_numpy()
        partners = self.match_result.matched_index
        treated_idx = np.flatnonzero(treated & (partners != NO_MATCH))
        return treated_idx, partners[treated_idx]

    def _assess_match_quality(self) -> None:
        treated_idx, control_idx = self._matched_pairs()
        distances = np.abs(self.propensity_scores[treated_idx] - self.propensity_scores[control_idx])

        print(f"\nMatch quality assessment:")
        print(f"  Mean score distance within pairs: {distances.mean():.4f}")
        print(f"  Max score distance within pairs: {distances.max():.4f}")

        self.results_['matching']['mean_pair_distance'] = distances.mean()

    def check_balance_after_matching(self) -> Dict[str, Dict[str, float]]:
        """Check covariate balance on the matched sample, weighting controls by reuse"""
        self._section("COVARIATE BALANCE: AFTER MATCHING")

        if self.matched_data is None:
            print("No matched data available")
            return {}

        balance_results = check_balance(self.matched_data, self.treatment_var, self.covariates,
                                        weights=self.matched_data['_weight'])
        well_balanced = sum(1 for v in balance_results.values() if v['balanced'])

        print(f"\nBalance summary:")
        print(f"  Well-balanced variables (|std diff| < 0.1): {well_balanced}/{len(self.covariates)}")

        if well_balanced == len(self.covariates):
            print("✅ EXCELLENT BALANCE after matching")
        elif well_balanced >= len(self.covariates) * 0.8:
            print("✅ GOOD BALANCE after matching")
        elif well_balanced >= len(self.covariates) * 0.6:
            print("⚠️ MODERATE BALANCE after matching")
        else:
            print("❌ POOR BALANCE after matching")

        self.assumption_checks['balance_after'] = balance_results
        return balance_results

    def estimate_treatment_effect(self, method: str = 'simple_difference') -> Dict[str, Any]:
        """
        Estimate the average treatment effect on the treated (ATT)

        Parameters:
        -----------
        method : str, default 'simple_difference'
            'simple_difference' averages the within-pair outcome differences;
            'regression_adjustment' fits a weighted regression with covariates
            on the matched sample
        """
        self._section("TREATMENT EFFECT ESTIMATION")

        if self.matched_data is None:
            raise EstimationError("Must perform matching first")

        treated_idx, control_idx = self._matched_pairs()
        outcome = self.data[self.outcome_var].to_numpy()
        treatment_outcomes = outcome[treated_idx]
        control_outcomes = outcome[control_idx]

        if method == 'simple_difference':
            differences = treatment_outcomes - control_outcomes
            if len(differences) < 2:
                raise EstimationError(
                    f"Need at least two matched pairs for a standard error, found {len(differences)}")
            att = differences.mean()
            se = differences.std(ddof=1) / np.sqrt(len(differences))
            t_stat, p_value = stats.ttest_1samp(differences, 0.0)

        elif method == 'regression_adjustment':
            X = sm.add_constant(self.matched_data[[self.treatment_var] + self.covariates])
            y = self.matched_data[self.outcome_var]

            model = sm.WLS(y, X, weights=self.matched_data['_weight'], missing='drop').fit(cov_type='HC3')
            att = model.params[self.treatment_var]
            se = model.bse[self.treatment_var]
            t_stat = model.tvalues[self.treatment_var]
            p_value = model.pvalues[self.treatment_var]

        else:
            raise ModelSpecificationError("Method must be 'simple_difference' or 'regression_adjustment'")

        ci_lower = att - 1.96 * se
        ci_upper = att + 1.96 * se

        control_mean = control_outcomes.mean()
        effect_pct = (att / control_mean) * 100 if control_mean != 0 else 0

        results = {
            'att': float(att),
            'standard_error': float(se),
            't_statistic': float(t_stat),
            'p_value': float(p_value),
            'ci_lower': float(ci_lower),
            'ci_upper': float(ci_upper),
            'effect_percentage': effect_pct,
            'treatment_mean': treatment_outcomes.mean(),
            'control_mean': control_mean,
            'n_pairs': len(treated_idx),
            'method': method
        }

        print(f"Treatment effect estimation:")
        print(f"  Method: {method}")
        print(f"  ATT: {att:.3f}")
        print(f"  Standard Error: {se:.3f}")
        print(f"  p-value: {p_value:.3f}")
        print(f"  95% CI: [{ci_lower:.3f}, {ci_upper:.3f}]")
        print(f"  Effect size: {effect_pct:.1f}% of matched control mean")

        if p_value < 0.05:
            print("✅ STATISTICALLY SIGNIFICANT at 5% level")
        else:
            print("⚠️ NOT STATISTICALLY SIGNIFICANT at 5% level")

        return self._store('treatment_effect', results)

    def run_full_analysis(self, caliper: Optional[float] = None, replacement: bool = True,
                          common_support: bool = False) -> Dict[str, Any]:
        """Run complete PSM analysis pipeline"""
        print("RUNNING COMPREHENSIVE PSM ANALYSIS")
        print("=" * 60)

        self.estimate_propensity_scores()

        self.check_overlap()
        self.check_balance_before_matching()

        self.perform_matching(caliper=caliper, replacement=replacement,
                              common_support=common_support)

        if self.matched_data is not None:
            self.check_balance_after_matching()
            self.estimate_treatment_effect()
            self.print_summary()

        return self.results_

    def print_summary(self) -> None:
        """Print comprehensive analysis summary"""
        self._section("PSM ANALYSIS SUMMARY")

        if self.results_ and 'propensity_estimation' in self.results_:
            ps_results = self.results_['propensity_estimation']
            print(f"Propensity Score Model:")
            print(f"  Method: {ps_results['method']}")
            print(f"  AUC: {ps_results['auc']:.3f}")
            print(f"  Extreme scores: {ps_results['extreme_scores']}")

        print(f"\nAssumption Checks:")
        if 'overlap' in self.assumption_checks:
            overlap_ok = self.assumption_checks['overlap']['assumption_satisfied']
            print(f"  Common Support: {'✅ SATISFIED' if overlap_ok else '⚠️ VIOLATED'}")

        if 'balance_before' in self.assumption_checks and 'balance_after' in self.assumption_checks:
            before_imbalanced = sum(1 for v in self.assumption_checks['balance_before'].values()
                                    if not v['balanced'])
            after_imbalanced = sum(1 for v in self.assumption_checks['balance_after'].values()
                                   if not v['balanced'])
            print(f"  Balance Improvement: {before_imbalanced} → {after_imbalanced} imbalanced variables")

        if self.results_ and 'treatment_effect' in self.results_:
            effect = self.results_['treatment_effect']
            print(f"\nTreatment Effect:")
            print(f"  ATT: {effect['att']:.3f} (p={effect['p_value']:.3f})")
            print(f"  95% CI: [{effect['ci_lower']:.3f}, {effect['ci_upper']:.3f}]")
            print(f"  Effect size: {effect['effect_percentage']:.1f}% of matched control mean")
