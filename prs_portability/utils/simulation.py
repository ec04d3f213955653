"""
Synthetic multi-ancestry cohorts for demos and tests.

Each ancestry group sits at its own location in PC space. Scores are
built from a shared genetic liability plus an ancestry-dependent shift
in mean and spread (the artefact calibration is meant to remove), and
the binary outcome depends on the liability, so score performance
differs between groups.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_GROUPS = ("AFR", "AMR", "EAS", "EUR", "SAS")


def simulate_cohort(n_per_group: int = 200,
                    groups: Sequence[str] = DEFAULT_GROUPS,
                    n_pcs: int = 5,
                    n_scores: int = 2,
                    score_names: Optional[Sequence[str]] = None,
                    prevalence: float = 0.3,
                    heritability: float = 0.4,
                    ancestry_col: str = "Super_Population",
                    sample_id_col: str = "IID",
                    outcome_col: str = "PHENO",
                    pc_prefix: str = "PC",
                    seed: Optional[int] = 42) -> pd.DataFrame:
    """
    Simulate a cohort with scores, PCs, covariates and a binary outcome.

    Parameters
    ----------
    n_per_group : int
        Samples per ancestry group
    groups : sequence of str
        Ancestry labels
    n_pcs : int
        Number of principal component columns
    n_scores : int
        Number of score columns (``PGS1`` ... ``PGSn``)
    score_names : sequence of str, optional
        Names for the score columns; overrides ``n_scores``
    prevalence : float
        Fraction of cases
    heritability : float
        Share of liability variance that is genetic
    seed : int, optional
        Random seed

    Returns
    -------
    pd.DataFrame
        One row per sample
    """
    if not (0 < prevalence < 1):
        raise ValueError("prevalence must be between 0 and 1")
    if not (0 < heritability < 1):
        raise ValueError("heritability must be between 0 and 1")

    if score_names is None:
        score_names = [f"PGS{s + 1}" for s in range(n_scores)]
    elif len(score_names) == 0 or len(set(score_names)) != len(score_names):
        raise ValueError("score_names must be non-empty and unique")

    rng = np.random.default_rng(seed)
    n_groups = len(groups)
    n = n_per_group * n_groups

    centres = rng.normal(0, 0.05, size=(n_groups, n_pcs))
    group_idx = np.repeat(np.arange(n_groups), n_per_group)
    pcs = centres[group_idx] + rng.normal(0, 0.01, size=(n, n_pcs))

    liability_g = rng.normal(0, np.sqrt(heritability), n)
    liability = liability_g + rng.normal(0, np.sqrt(1 - heritability), n)
    threshold = np.quantile(liability, 1 - prevalence)
    outcome = (liability > threshold).astype(int)

    data: Dict[str, object] = {
        sample_id_col: [f"S{i:05d}" for i in range(n)],
        ancestry_col: np.asarray(groups, dtype=object)[group_idx],
        outcome_col: outcome,
        "age": rng.normal(55, 8, n).round(1),
        "sex": rng.integers(0, 2, n),
    }
    for j in range(n_pcs):
        data[f"{pc_prefix}{j + 1}"] = pcs[:, j]

    for name in score_names:
        # Portability decays along PC1; mean and spread drift with ancestry
        accuracy = np.clip(0.8 - 4.0 * np.abs(pcs[:, 0]), 0.1, 0.9)
        noise = rng.normal(0, 1, n)
        raw = accuracy * liability_g / np.sqrt(heritability) + np.sqrt(1 - accuracy ** 2) * noise
        shift = 20.0 * pcs[:, 0] - 10.0 * pcs[:, 1]
        spread = np.exp(5.0 * pcs[:, 0])
        data[name] = shift + spread * raw

    frame = pd.DataFrame(data)
    logger.info(
        f"Simulated cohort: {n} samples, {n_groups} groups, "
        f"{outcome.sum()} cases, {len(score_names)} scores"
    )
    return frame
