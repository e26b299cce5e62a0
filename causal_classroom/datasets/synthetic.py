"""
Toy datasets for the classroom examples.

Each generator draws from a seeded ``numpy.random.Generator`` and builds in a
known treatment effect so that estimates can be checked against the truth.
"""

import numpy as np
import pandas as pd
from scipy.special import expit


def generate_psm_data(n_samples: int = 1000, n_features: int = 3,
                      treatment_effect: float = 2.0,
                      random_seed: int = 42) -> pd.DataFrame:
    """
    Observational data where covariates drive both treatment and outcome.

    Returns columns ``unit_id``, ``covariate_1`` .. ``covariate_k``,
    ``treated`` and ``outcome``.
    """
    rng = np.random.default_rng(random_seed)

    X = rng.normal(size=(n_samples, n_features))
    selection_coefs = np.linspace(0.8, -0.4, n_features)
    treated = rng.binomial(1, expit(X @ selection_coefs - 0.3))

    outcome = treatment_effect * treated + X.sum(axis=1) + rng.normal(size=n_samples)

    data = pd.DataFrame(X, columns=[f"covariate_{k + 1}" for k in range(n_features)])
    data.insert(0, 'unit_id', np.arange(n_samples))
    data['treated'] = treated
    data['outcome'] = outcome
    return data


def generate_did_data(n_units: int = 100, n_periods: int = 10, treatment_period: int = 6,
                      treatment_effect: float = 2.0,
                      random_seed: int = 42) -> pd.DataFrame:
    """
    Balanced panel with a common time trend; the first half of the units
    are treated from ``treatment_period`` onwards.

    Returns columns ``unit_id``, ``period``, ``treated``, ``post`` and ``outcome``.
    """
    rng = np.random.default_rng(random_seed)

    units = np.repeat(np.arange(n_units), n_periods)
    periods = np.tile(np.arange(1, n_periods + 1), n_units)
    treated = (units < n_units // 2).astype(int)
    post = (periods >= treatment_period).astype(int)
    unit_effects = rng.normal(size=n_units)[units]

    outcome = (10.0 + 2.0 * treated + 0.5 * periods + unit_effects
               + treatment_effect * treated * post
               + rng.normal(size=len(units)))

    return pd.DataFrame({
        'unit_id': units,
        'period': periods,
        'treated': treated,
        'post': post,
        'outcome': outcome,
    })


def generate_rdd_data(n_obs: int = 1000, cutoff: float = 0.0, treatment_effect: float = 3.0,
                      noise_std: float = 1.0, random_seed: int = 42) -> pd.DataFrame:
    """
    Sharp design: units at or above ``cutoff`` on ``running_var`` are treated.

    Returns columns ``running_var`` and ``outcome``.
    """
    rng = np.random.default_rng(random_seed)

    running = rng.uniform(cutoff - 2.0, cutoff + 2.0, size=n_obs)
    centered = running - cutoff
    outcome = (1.0 + 0.8 * centered + 0.3 * centered ** 2
               + treatment_effect * (running >= cutoff)
               + rng.normal(scale=noise_std, size=n_obs))

    return pd.DataFrame({'running_var': running, 'outcome': outcome})


def generate_missing_data(n_samples: int = 500, treatment_effect: float = 2.0,
                          missing_rate: float = 0.3,
                          random_seed: int = 42) -> pd.DataFrame:
    """
    Confounded data with covariate ``x2`` missing at random given ``x1``.

    The missingness probability rises with ``x1`` and averages ``missing_rate``
    (for rates up to 0.5), so dropping incomplete rows biases the sample.

    Returns columns ``x1``, ``x2``, ``treated`` and ``outcome``.
    """
    rng = np.random.default_rng(random_seed)

    x1 = rng.normal(size=n_samples)
    x2 = 0.5 * x1 + rng.normal(size=n_samples)
    treated = rng.binomial(1, expit(0.5 * x1))
    outcome = 1.0 + treatment_effect * treated + x1 + 1.5 * x2 + rng.normal(size=n_samples)

    miss_prob = np.clip(2 * missing_rate * expit(1.5 * x1), 0.0, 1.0)
    x2 = np.where(rng.uniform(size=n_samples) < miss_prob, np.nan, x2)

    return pd.DataFrame({'x1': x1, 'x2': x2, 'treated': treated, 'outcome': outcome})
