"""
Per-group performance metrics for polygenic scores

- AUC and ROC curve points (scikit-learn)
- Logistic association of outcome on standardized score plus covariates
  (statsmodels), giving beta / SE / p-value / OR per SD
- Odds ratios by score quantile
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.metrics import roc_auc_score, roc_curve
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationWarning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssociationResult:
    """Logistic regression of outcome on standardized score"""
    beta: Optional[float]           # log-OR per SD of score
    se: Optional[float]
    p_value: Optional[float]
    odds_ratio: Optional[float]
    converged: bool = False

    @classmethod
    def undefined(cls) -> "AssociationResult":
        return cls(beta=None, se=None, p_value=None, odds_ratio=None, converged=False)


def standardize(values: np.ndarray) -> Optional[np.ndarray]:
    """Z-score a vector; None when it has no spread."""
    values = np.asarray(values, dtype=float)
    sd = np.std(values)
    if not np.isfinite(sd) or sd == 0:
        return None
    return (values - np.mean(values)) / sd


def group_auc(outcome: np.ndarray, score: np.ndarray) -> Optional[float]:
    """AUC of score for a 0/1 outcome; None if only one class is present."""
    outcome = np.asarray(outcome)
    if len(np.unique(outcome)) < 2:
        return None
    return float(roc_auc_score(outcome, score))


def roc_points(outcome: np.ndarray, score: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """(false positive rate, true positive rate) pairs, or None if one class."""
    outcome = np.asarray(outcome)
    if len(np.unique(outcome)) < 2:
        return None
    fpr, tpr, _ = roc_curve(outcome, score)
    return fpr, tpr


def fit_group_association(outcome: np.ndarray,
                          score: np.ndarray,
                          covariates: Optional[pd.DataFrame] = None,
                          standardize_score: bool = True) -> AssociationResult:
    """
    Logistic regression of a binary outcome on score plus covariates

    Covariates that are constant within the group are dropped (they would be
    collinear with the intercept). Separation, singular designs and
    non-convergence give an undefined result instead of an exception.

    Parameters:
    -----------
    outcome : np.ndarray
        0/1 outcome
    score : np.ndarray
        Raw score
    covariates : pd.DataFrame, optional
        Additional adjustment columns, aligned with ``outcome``
    standardize_score : bool
        Z-score the score first so beta is per SD

    Returns:
    --------
    result : AssociationResult
    """
    y = np.asarray(outcome, dtype=float)
    x = standardize(score) if standardize_score else np.asarray(score, dtype=float)
    if x is None:
        logger.warning("Score has no variance in group; association undefined")
        return AssociationResult.undefined()

    columns = [x]
    if covariates is not None and covariates.shape[1] > 0:
        cov = covariates.to_numpy(dtype=float)
        varying = np.ptp(cov, axis=0) > 0
        columns.extend(cov[:, varying].T)
    X = sm.add_constant(np.column_stack(columns), has_constant='add')

    try:
        with warnings.catch_warnings():
            warnings.filterwarnings("error", category=PerfectSeparationWarning)
            warnings.filterwarnings("ignore", category=ConvergenceWarning)
            warnings.filterwarnings("ignore", category=RuntimeWarning)
            fit = sm.Logit(y, X).fit(disp=0, maxiter=100)
    except (PerfectSeparationWarning, np.linalg.LinAlgError, ValueError) as e:
        logger.warning(f"Logistic fit failed: {type(e).__name__}: {e}")
        return AssociationResult.undefined()

    params = np.asarray(fit.params)
    bse = np.asarray(fit.bse)
    pvalues = np.asarray(fit.pvalues)
    converged = bool(fit.mle_retvals.get('converged', False))

    beta, se, p = params[1], bse[1], pvalues[1]
    if not (converged and np.isfinite(beta) and np.isfinite(se) and np.isfinite(p)):
        logger.warning("Logistic fit did not converge to finite estimates")
        return AssociationResult.undefined()

    return AssociationResult(
        beta=float(beta),
        se=float(se),
        p_value=float(p),
        odds_ratio=float(np.exp(beta)),
        converged=True,
    )


def quantile_odds_ratios(prs: np.ndarray,
                         phenotype: np.ndarray,
                         n_quantiles: int = 10) -> Dict[str, Dict[str, float]]:
    """
    Odds ratios by PRS quantile, relative to the bottom quantile

    Parameters:
    -----------
    prs : np.ndarray
        PRS values
    phenotype : np.ndarray
        Binary phenotype (0/1)
    n_quantiles : int
        Number of quantiles (default: 10 for deciles)

    Returns:
    --------
    quantile_ors : dict
        ``{'Q1': {'OR', 'CI_lower', 'CI_upper', 'n_cases', 'n_controls'}, ...}``;
        OR and CI are NaN where a cell count is zero
    """
    prs = np.asarray(prs, dtype=float)
    phenotype = np.asarray(phenotype)
    quantiles = pd.qcut(prs, q=n_quantiles, labels=False, duplicates='drop')
    present = sorted(int(q) for q in np.unique(quantiles))

    ref = present[0]
    q0_cases = int(np.sum((quantiles == ref) & (phenotype == 1)))
    q0_controls = int(np.sum((quantiles == ref) & (phenotype == 0)))

    results = {}
    for rank, q in enumerate(present, 1):
        q_cases = int(np.sum((quantiles == q) & (phenotype == 1)))
        q_controls = int(np.sum((quantiles == q) & (phenotype == 0)))

        if q == ref:
            or_val, ci_lower, ci_upper = 1.0, 1.0, 1.0
        elif min(q_cases, q_controls, q0_cases, q0_controls) > 0:
            or_val = (q_cases / q_controls) / (q0_cases / q0_controls)
            # 95% CI using log(OR) ± 1.96 * SE
            se_log_or = np.sqrt(1 / q_cases + 1 / q_controls + 1 / q0_cases + 1 / q0_controls)
            log_or = np.log(or_val)
            ci_lower = float(np.exp(log_or - 1.96 * se_log_or))
            ci_upper = float(np.exp(log_or + 1.96 * se_log_or))
        else:
            or_val, ci_lower, ci_upper = np.nan, np.nan, np.nan

        results[f'Q{rank}'] = {
            'OR': float(or_val),
            'CI_lower': ci_lower,
            'CI_upper': ci_upper,
            'n_cases': q_cases,
            'n_controls': q_controls,
        }

    return results


def count_classes(outcome: Sequence) -> Tuple[int, int]:
    """(cases, controls) in a 0/1 outcome vector."""
    outcome = np.asarray(outcome)
    n_cases = int(np.sum(outcome == 1))
    return n_cases, int(np.sum(outcome == 0))
