"""
Ancestry calibration of polygenic scores

Removes the part of a score's mean and variance that is predictable from
genetic principal components, so that scores are comparable across
ancestry groups.

Model:
    Stage 1 (mean):      S = a + PC·b + r
    Stage 2 (variance):  (r - r̄)² = c + PC·d + e

    mean_calibrated     = S - Ŝ
    variance_calibrated = (S - Ŝ) / sqrt(v̂)      (only where v̂ > 0)

Both regressions are fitted once over every record passed in and then
evaluated record by record. Nothing is cached between calls.
"""

import logging
from dataclasses import dataclass
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from ..exceptions import DegenerateDesign, InsufficientData, InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreRecord:
    """One individual's score and ancestry coordinates"""
    sample_id: Hashable
    score_value: float
    principal_components: Tuple[float, ...]
    ancestry_group: Optional[str] = None


@dataclass(frozen=True)
class CalibratedScore:
    """Calibrated score for one individual"""
    sample_id: Hashable
    mean_calibrated: float
    variance_calibrated: Optional[float]   # None when predicted variance <= 0
    predicted_mean: float
    predicted_variance: float

    @property
    def variance_defined(self) -> bool:
        return self.variance_calibrated is not None


def _design_matrix(records: Sequence[ScoreRecord]) -> Tuple[np.ndarray, np.ndarray]:
    """Stack records into (PC matrix, score vector), checking shapes."""
    if len(records) == 0:
        raise InsufficientData("No records to calibrate")

    n_pcs = len(records[0].principal_components)
    if n_pcs == 0:
        raise InvalidInput("Records carry no principal components")

    for rec in records:
        if len(rec.principal_components) != n_pcs:
            raise InvalidInput(
                f"Sample {rec.sample_id!r} has {len(rec.principal_components)} "
                f"principal components, expected {n_pcs}"
            )

    try:
        X = np.array([rec.principal_components for rec in records], dtype=float)
        y = np.array([rec.score_value for rec in records], dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Non-numeric score or principal component: {e}") from e

    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
        raise InvalidInput("Scores and principal components must be finite")

    return X, y


def check_design(X: np.ndarray) -> np.ndarray:
    """
    Make sure an OLS fit with intercept on X is identifiable

    Constant columns carry no ancestry information and are absorbed by the
    intercept, so they are left out of the rank check. Any linear dependence
    among the remaining (centred) columns raises DegenerateDesign.

    Returns:
    --------
    varying : np.ndarray of bool (n_pcs,)
        Columns that enter the regression
    """
    n_samples, n_pcs = X.shape
    if n_samples <= n_pcs + 1:
        raise InsufficientData(
            f"{n_samples} records cannot support a regression on {n_pcs} "
            f"principal components plus intercept"
        )

    varying = np.ptp(X, axis=0) > 0
    if not np.any(varying):
        logger.warning("All principal components are constant; calibration reduces to centring")
        return varying

    centred = X[:, varying] - X[:, varying].mean(axis=0)
    rank = np.linalg.matrix_rank(centred)
    if rank < centred.shape[1]:
        raise DegenerateDesign(
            f"Principal components are collinear (rank {rank} < {centred.shape[1]})"
        )
    return varying


def _fit_predict(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """In-sample OLS predictions; intercept only when X has no columns."""
    if X.shape[1] == 0:
        return np.full(len(y), y.mean())
    model = LinearRegression()
    model.fit(X, y)
    return model.predict(X)


def fit_mean_variance(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fit both calibration stages and return per-sample predictions

    Returns:
    --------
    predicted_mean : np.ndarray (n_samples,)
    predicted_variance : np.ndarray (n_samples,)
    """
    X = X[:, check_design(X)]

    predicted_mean = _fit_predict(X, y)

    residuals = y - predicted_mean
    resid_centered_sq = (residuals - residuals.mean()) ** 2
    predicted_variance = _fit_predict(X, resid_centered_sq)

    return predicted_mean, predicted_variance


def calibrate(records: Sequence[ScoreRecord]) -> List[CalibratedScore]:
    """
    Mean- and variance-calibrate scores against principal components

    Parameters:
    -----------
    records : sequence of ScoreRecord
        All samples to fit on; every record must have the same number of PCs

    Returns:
    --------
    calibrated : list of CalibratedScore
        One entry per input record, in the same order

    Raises:
    -------
    InsufficientData
        n_records <= n_pcs + 1
    DegenerateDesign
        Principal components are collinear
    InvalidInput
        Ragged or non-finite inputs
    """
    X, y = _design_matrix(records)
    predicted_mean, predicted_variance = fit_mean_variance(X, y)

    mean_calibrated = y - predicted_mean

    n_undefined = int(np.sum(predicted_variance <= 0))
    if n_undefined:
        logger.warning(
            f"{n_undefined}/{len(records)} samples have non-positive predicted variance; "
            f"variance-calibrated score left undefined"
        )

    calibrated = []
    for rec, m_cal, mu, var in zip(records, mean_calibrated, predicted_mean, predicted_variance):
        v_cal = float(m_cal / np.sqrt(var)) if var > 0 else None
        calibrated.append(CalibratedScore(
            sample_id=rec.sample_id,
            mean_calibrated=float(m_cal),
            variance_calibrated=v_cal,
            predicted_mean=float(mu),
            predicted_variance=float(var),
        ))

    return calibrated


def calibrate_scores(frame: pd.DataFrame,
                     score_cols: Sequence[str],
                     pc_cols: Sequence[str],
                     sample_id_col: str,
                     ancestry_col: Optional[str] = None) -> pd.DataFrame:
    """
    Calibrate several score columns of a sample table

    Each score gets three new columns: ``<score>_mean_cal``,
    ``<score>_var_cal`` (NaN where undefined) and ``<score>_var_defined``.
    Rows with a missing score or PC are left out of that score's fit and
    receive NaN. A score with too few complete rows to fit is skipped with
    a warning (all NaN); collinear PCs still raise DegenerateDesign.

    Parameters
    ----------
    frame : pd.DataFrame
        Sample table with score and PC columns
    score_cols : sequence of str
        Scores to calibrate
    pc_cols : sequence of str
        Principal component columns, in order
    sample_id_col : str
        Column identifying samples
    ancestry_col : str, optional
        Ancestry label column carried onto the records

    Returns
    -------
    pd.DataFrame
        Copy of ``frame`` with the calibrated columns appended
    """
    from ..utils.data_loader import records_from_frame

    out = frame.copy()
    for score in score_cols:
        records, index = records_from_frame(
            frame, score, sample_id_col, pc_cols, ancestry_col, return_index=True
        )
        out[f"{score}_mean_cal"] = np.nan
        out[f"{score}_var_cal"] = np.nan
        out[f"{score}_var_defined"] = False

        # Too few complete rows for one score must not stop the others
        try:
            calibrated = calibrate(records)
        except InsufficientData as e:
            logger.warning(f"{score}: calibration skipped, {e}")
            continue

        out.loc[index, f"{score}_mean_cal"] = [c.mean_calibrated for c in calibrated]
        out.loc[index, f"{score}_var_cal"] = [
            c.variance_calibrated if c.variance_defined else np.nan for c in calibrated
        ]
        out.loc[index, f"{score}_var_defined"] = [c.variance_defined for c in calibrated]

        logger.info(f"Calibrated {score} on {len(records)} samples")

    return out
