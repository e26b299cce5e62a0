"""
Base classes and common functionality for causal inference methods.
"""

from abc import ABC, abstractmethod
import pandas as pd
from typing import Dict, Any, Optional

from .exceptions import DataValidationError


class CausalInferenceBase(ABC):
    """
    Abstract base class for all classroom causal inference methods.

    Every method copies its input data, validates the outcome and treatment
    columns, narrates each analysis step to stdout and collects its results
    into ``results_``.
    """

    def __init__(self, data: pd.DataFrame, outcome_var: str,
                 treatment_var: str, **kwargs):
        """
        Initialize the causal inference method.

        Parameters
        ----------
        data : pd.DataFrame
            The dataset containing all variables
        outcome_var : str
            Name of the outcome variable
        treatment_var : str
            Name of the treatment variable
        """
        if not isinstance(data, pd.DataFrame):
            raise TypeError("Data must be a pandas DataFrame")

        self.data = data.copy()
        self.outcome_var = outcome_var
        self.treatment_var = treatment_var
        self.results_ = None

        self._validate_inputs()

    def _validate_inputs(self) -> None:
        """Validate that the outcome and treatment columns exist."""
        for role, col in (('Outcome', self.outcome_var), ('Treatment', self.treatment_var)):
            if col not in self.data.columns:
                raise DataValidationError(f"{role} variable '{col}' not found in data")

    @staticmethod
    def _section(title: str) -> None:
        print("\n" + "=" * 60)
        print(title)
        print("=" * 60)

    def _store(self, key: str, results: Dict[str, Any]) -> Dict[str, Any]:
        if self.results_ is None:
            self.results_ = {}
        self.results_[key] = results
        return results

    @abstractmethod
    def estimate(self) -> Dict[str, Any]:
        """
        Estimate the causal effect.

        Returns
        -------
        Dict[str, Any]
            Dictionary containing estimation results
        """
        pass

    @abstractmethod
    def summary(self) -> str:
        """
        Return a summary of the estimation results.

        Returns
        -------
        str
            Formatted summary of results
        """
        pass

    def get_results(self) -> Optional[Dict[str, Any]]:
        """Results dictionary if estimation has been run, None otherwise."""
        return self.results_
