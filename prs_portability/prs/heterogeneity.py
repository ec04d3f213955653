"""
Cross-ancestry heterogeneity of PRS effect sizes

Takes one (beta, p-value) pair per ancestry group for a single score and
measures how much the effect varies between groups.

Methodology:
    z_i  = |Φ⁻¹(p_i / 2)|
    se_i = |β_i| / z_i
    w_i  = 1 / se_i²

    β̄   = Σ w_i β_i / Σ w_i
    Q    = Σ w_i (β_i - β̄)²                 (Cochran's Q)
    I²   = max(0, (Q - (k - 1)) / Q)        (k = usable groups)

Groups whose standard error cannot be derived (missing values, p = 1,
β = 0) are dropped before Q is computed.
"""

import logging
import math
from dataclasses import dataclass
from typing import Hashable, Optional, Sequence

import numpy as np
from scipy import stats

from ..exceptions import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupEstimate:
    """One ancestry group's regression result for one score"""
    group_id: Hashable
    beta: Optional[float]           # Effect estimate (log-OR per SD)
    p_value: Optional[float]        # Two-sided p-value in (0, 1]


@dataclass(frozen=True)
class HeterogeneityResult:
    """Container for heterogeneity statistics of one score"""
    q_statistic: Optional[float]    # Cochran's Q
    i_squared: Optional[float]      # Proportion of variance from heterogeneity
    n_groups: int                   # Groups that entered the calculation
    q_pvalue: Optional[float] = None     # P(χ²_{k-1} >= Q)
    pooled_beta: Optional[float] = None  # Inverse-variance weighted mean

    @property
    def is_defined(self) -> bool:
        return self.q_statistic is not None


def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return True


def _z_from_p(p_value: Optional[float]) -> Optional[float]:
    """|Φ⁻¹(p / 2)|, or None for a missing, out-of-range or uninformative p."""
    if _is_missing(p_value) or not (0.0 < p_value <= 1.0):
        return None
    z = abs(stats.norm.ppf(p_value / 2.0))
    if z == 0 or not np.isfinite(z):
        return None
    return float(z)


def standard_error_from_p(beta: Optional[float],
                          p_value: Optional[float]) -> Optional[float]:
    """
    Back out a standard error from an effect size and its p-value

    SE = |β| / |z|, where z is the two-sided normal quantile of p.

    Parameters:
    -----------
    beta : float or None
        Effect estimate
    p_value : float or None
        Two-sided p-value

    Returns:
    --------
    se : float or None
        None when either input is missing, p is outside (0, 1], z is zero
        (p == 1) or the result is not strictly positive and finite.
    """
    if _is_missing(beta):
        return None
    z = _z_from_p(p_value)
    if z is None:
        return None

    se = abs(beta) / z
    if not (se > 0 and np.isfinite(se)):
        return None
    return float(se)


def estimate_heterogeneity(estimates: Sequence[GroupEstimate]) -> HeterogeneityResult:
    """
    Compute Cochran's Q and I² for one score across ancestry groups

    The weights w_i = (z_i / β_i)² are never formed directly: β̄ uses
    weights rescaled by their maximum (in log space) and Q is summed as
    Σ (z_i (β_i - β̄) / β_i)², so very small or very large effect sizes do
    not overflow.

    Parameters:
    -----------
    estimates : sequence of GroupEstimate
        One entry per ancestry group

    Returns:
    --------
    result : HeterogeneityResult
        Q and I² are None when fewer than two groups are usable, or when Q
        is not finite.
    """
    usable = []
    for est in estimates:
        if standard_error_from_p(est.beta, est.p_value) is None:
            logger.debug(f"Excluding group {est.group_id!r} (no usable standard error)")
            continue
        usable.append((str(est.group_id), float(est.beta), _z_from_p(est.p_value)))

    k = len(usable)
    if k < 2:
        return HeterogeneityResult(q_statistic=None, i_squared=None, n_groups=k)

    # Fixed ordering so the sums do not depend on input order
    usable.sort()
    betas = np.array([b for _, b, _ in usable])
    zs = np.array([z for _, _, z in usable])

    if np.ptp(betas) == 0:
        pooled, q = float(betas[0]), 0.0
    else:
        log_w = 2.0 * (np.log(zs) - np.log(np.abs(betas)))
        rel_w = np.exp(log_w - log_w.max())
        with np.errstate(over='ignore', invalid='ignore'):
            pooled = float(np.sum(rel_w * betas) / np.sum(rel_w))
            q = float(np.sum((zs * (betas - pooled) / betas) ** 2))

    if not (np.isfinite(q) and np.isfinite(pooled)):
        logger.warning(f"Cochran's Q is not finite for {k} groups; heterogeneity undefined")
        return HeterogeneityResult(q_statistic=None, i_squared=None, n_groups=k)

    df = k - 1
    if q - df <= 0:
        i_squared = 0.0
    else:
        i_squared = (q - df) / q

    return HeterogeneityResult(
        q_statistic=q,
        i_squared=float(i_squared),
        n_groups=k,
        q_pvalue=float(stats.chi2.sf(q, df)),
        pooled_beta=pooled,
    )


def estimate_heterogeneity_from_arrays(betas: Sequence[Optional[float]],
                                       p_values: Sequence[Optional[float]],
                                       group_ids: Optional[Sequence[Hashable]] = None
                                       ) -> HeterogeneityResult:
    """
    Column-oriented entry point for parallel beta / p-value lists

    Raises InvalidInput if the sequences differ in length.
    """
    if len(betas) != len(p_values):
        raise InvalidInput(
            f"betas and p_values differ in length ({len(betas)} vs {len(p_values)})"
        )
    if group_ids is None:
        group_ids = list(range(len(betas)))
    elif len(group_ids) != len(betas):
        raise InvalidInput(
            f"group_ids has {len(group_ids)} entries, expected {len(betas)}"
        )

    estimates = [
        GroupEstimate(group_id=g, beta=b, p_value=p)
        for g, b, p in zip(group_ids, betas, p_values)
    ]
    return estimate_heterogeneity(estimates)
