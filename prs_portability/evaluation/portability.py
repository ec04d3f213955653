"""
Cross-ancestry evaluation of polygenic scores

For every (score, ancestry group) pair: AUC, and the logistic association
of the outcome with the standardized score. For every score: Cochran's Q
and I² of the per-group log-odds ratios.

Each pair is evaluated independently and the results are collected into
tables at the end, so one degenerate group never stops the loop.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Hashable, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..prs.heterogeneity import GroupEstimate, estimate_heterogeneity
from ..utils.data_loader import require_columns
from .metrics import count_classes, fit_group_association, group_auc

logger = logging.getLogger(__name__)

OVERALL_GROUP = "ALL"


@dataclass(frozen=True)
class GroupMetrics:
    """Performance of one score in one ancestry group"""
    score: str
    group: Hashable
    n: int
    n_cases: int
    n_controls: int
    auc: Optional[float]
    beta: Optional[float]
    se: Optional[float]
    p_value: Optional[float]
    odds_ratio: Optional[float]

    def to_group_estimate(self) -> GroupEstimate:
        return GroupEstimate(group_id=self.group, beta=self.beta, p_value=self.p_value)


@dataclass(frozen=True)
class PortabilityResults:
    """Immutable result tables of one evaluation run"""
    group_metrics: pd.DataFrame     # One row per (score, group)
    heterogeneity: pd.DataFrame     # One row per score

    def metrics_for(self, score: str) -> pd.DataFrame:
        return self.group_metrics[self.group_metrics['score'] == score]


def evaluate_group(frame: pd.DataFrame,
                   score_col: str,
                   outcome_col: str,
                   group: Hashable,
                   covariates: Sequence[str] = (),
                   min_cases: int = 5,
                   standardize_score: bool = True) -> GroupMetrics:
    """
    Evaluate one score within one group's rows

    Groups with fewer than ``min_cases`` cases or controls get undefined
    AUC and association values.
    """
    sub = frame[[score_col, outcome_col] + list(covariates)].dropna()
    outcome = sub[outcome_col].to_numpy()
    score = sub[score_col].to_numpy(dtype=float)
    n_cases, n_controls = count_classes(outcome)

    auc = None
    assoc = None
    if min(n_cases, n_controls) < max(min_cases, 1):
        logger.warning(
            f"{score_col} / {group}: {n_cases} cases, {n_controls} controls "
            f"(need {min_cases}); metrics undefined"
        )
    else:
        auc = group_auc(outcome, score)
        assoc = fit_group_association(
            outcome, score,
            covariates=sub[list(covariates)] if covariates else None,
            standardize_score=standardize_score,
        )

    return GroupMetrics(
        score=score_col,
        group=group,
        n=len(sub),
        n_cases=n_cases,
        n_controls=n_controls,
        auc=auc,
        beta=assoc.beta if assoc else None,
        se=assoc.se if assoc else None,
        p_value=assoc.p_value if assoc else None,
        odds_ratio=assoc.odds_ratio if assoc else None,
    )


def _heterogeneity_row(score: str, metrics: Sequence[GroupMetrics]) -> dict:
    result = estimate_heterogeneity([m.to_group_estimate() for m in metrics])
    return {
        'score': score,
        'n_groups': result.n_groups,
        'q_statistic': result.q_statistic,
        'q_pvalue': result.q_pvalue,
        'i_squared': result.i_squared,
        'pooled_beta': result.pooled_beta,
    }


def evaluate_scores(frame: pd.DataFrame,
                    score_cols: Sequence[str],
                    outcome_col: str,
                    ancestry_col: str = "Super_Population",
                    covariates: Sequence[str] = (),
                    min_cases: int = 5,
                    standardize_score: bool = True,
                    include_overall: bool = True,
                    show_progress: bool = False) -> PortabilityResults:
    """
    Evaluate every score in every ancestry group

    Parameters
    ----------
    frame : pd.DataFrame
        One row per sample
    score_cols : sequence of str
        Score columns to evaluate
    outcome_col : str
        0/1 outcome column
    ancestry_col : str
        Ancestry label column
    covariates : sequence of str
        Adjustment columns for the logistic model
    min_cases : int
        Minimum cases and controls for a group to be evaluated
    standardize_score : bool
        Standardize the score within each group before the logistic fit
    include_overall : bool
        Add a pooled row (group ``ALL``) per score; it is not part of Q/I²
    show_progress : bool
        Show a tqdm progress bar over scores

    Returns
    -------
    PortabilityResults
    """
    if not score_cols:
        raise ValueError("No score columns to evaluate")
    require_columns(frame, list(score_cols) + [outcome_col, ancestry_col] + list(covariates))

    groups = sorted(frame[ancestry_col].dropna().unique(), key=str)
    logger.info(f"Evaluating {len(score_cols)} scores across {len(groups)} groups")

    by_group = {g: frame[frame[ancestry_col] == g] for g in groups}

    per_score = [
        (score, [evaluate_group(by_group[g], score, outcome_col, g,
                                covariates, min_cases, standardize_score)
                 for g in groups])
        for score in tqdm(score_cols, desc="Evaluating scores", disable=not show_progress)
    ]
    heterogeneity = pd.DataFrame([_heterogeneity_row(s, metrics) for s, metrics in per_score])

    overall: List[GroupMetrics] = []
    if include_overall:
        overall = [
            evaluate_group(frame, s, outcome_col, OVERALL_GROUP,
                           covariates, min_cases, standardize_score)
            for s, _ in per_score
        ]

    group_metrics = pd.DataFrame(
        [asdict(m) for _, metrics in per_score for m in metrics]
        + [asdict(m) for m in overall]
    )

    # None -> NaN so the numeric columns stay numeric
    for col in ['auc', 'beta', 'se', 'p_value', 'odds_ratio']:
        group_metrics[col] = pd.to_numeric(group_metrics[col], errors='coerce')
    for col in ['q_statistic', 'q_pvalue', 'i_squared', 'pooled_beta']:
        heterogeneity[col] = pd.to_numeric(heterogeneity[col], errors='coerce')

    n_defined = int(heterogeneity['i_squared'].notna().sum())
    logger.info(f"✓ Heterogeneity defined for {n_defined}/{len(score_cols)} scores")

    return PortabilityResults(group_metrics=group_metrics, heterogeneity=heterogeneity)


def summarize_calibration_effect(results: PortabilityResults,
                                 raw_scores: Sequence[str],
                                 suffix: str = "_var_cal") -> pd.DataFrame:
    """
    Side-by-side I² before and after calibration for each raw score

    Calibrated columns are expected to be named ``<score><suffix>``; raw
    scores without a calibrated counterpart in ``results`` get NaN.
    """
    het = results.heterogeneity.set_index('score')
    rows = []
    for score in raw_scores:
        cal = f"{score}{suffix}"
        rows.append({
            'score': score,
            'i_squared_raw': het['i_squared'].get(score, np.nan),
            'i_squared_calibrated': het['i_squared'].get(cal, np.nan),
        })
    return pd.DataFrame(rows)
