"""
Classroom walk-through of four causal inference techniques.

Each section simulates a toy dataset with a known effect, runs the analysis
and prints the results next to the truth.
"""

from causal_classroom import (
    DifferenceInDifferences,
    MultipleImputation,
    PropensityScoreMatching,
    RegressionDiscontinuityDesign,
    generate_did_data,
    generate_missing_data,
    generate_psm_data,
    generate_rdd_data,
)

TRUE_EFFECT = 2.0


def section(title):
    print("\n" + "#" * 70)
    print(f"# {title}")
    print("#" * 70 + "\n")


def multiple_imputation_example():
    section("1. MULTIPLE IMPUTATION")
    data = generate_missing_data(n_samples=500, treatment_effect=TRUE_EFFECT, missing_rate=0.3)
    mi = MultipleImputation(data, outcome_var='outcome', treatment_var='treated',
                            covariates=['x1', 'x2'])
    mi.run_full_analysis(n_imputations=20)
    print(f"\nTrue effect: {TRUE_EFFECT}")


def propensity_score_matching_example():
    section("2. PROPENSITY SCORE MATCHING")
    data = generate_psm_data(n_samples=1000, n_features=3, treatment_effect=TRUE_EFFECT)
    psm = PropensityScoreMatching(data, outcome_var='outcome', treatment_var='treated',
                                  covariates=['covariate_1', 'covariate_2', 'covariate_3'])
    psm.run_full_analysis(caliper=0.05)

    naive = (data.loc[data['treated'] == 1, 'outcome'].mean()
             - data.loc[data['treated'] == 0, 'outcome'].mean())
    print(f"\nNaive difference in means: {naive:.3f}")
    print(f"True effect: {TRUE_EFFECT}")


def difference_in_differences_example():
    section("3. DIFFERENCE-IN-DIFFERENCES")
    data = generate_did_data(n_units=100, n_periods=10, treatment_period=6,
                             treatment_effect=TRUE_EFFECT)
    did = DifferenceInDifferences(data, outcome_var='outcome', unit_var='unit_id',
                                  time_var='period', treatment_var='treated',
                                  post_var='post', treatment_start=6)
    did.run_all_checks()
    did.estimate_regression_did(cluster=True)
    print(f"\nTrue effect: {TRUE_EFFECT}")


def regression_discontinuity_example():
    section("4. REGRESSION DISCONTINUITY")
    data = generate_rdd_data(n_obs=1000, cutoff=0.0, treatment_effect=TRUE_EFFECT)
    rdd = RegressionDiscontinuityDesign(data, outcome_var='outcome',
                                        running_var='running_var', cutoff=0.0)
    rdd.run_full_analysis()
    print(f"\nTrue effect: {TRUE_EFFECT}")


if __name__ == "__main__":
    multiple_imputation_example()
    propensity_score_matching_example()
    difference_in_differences_example()
    regression_discontinuity_example()
