"""
Clumping & Thresholding (C+T) Polygenic Risk Scores

Derives per-sample scores from GWAS summary statistics and a genotype
matrix:
- LD-based SNP clumping
- P-value threshold scan
- Threshold selection by AUC (binary) or R² (continuous)

Methodology:
    PRS = Σ (genotype_i × β_i) for selected SNPs

    Steps:
    1. Keep SNPs with P below the threshold
    2. Walk them in order of increasing P; each unremoved SNP becomes an
       index SNP and removes neighbours within ±kb with r² > clump_r2
    3. Score samples with the surviving SNPs' effect sizes
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import roc_auc_score

from ..exceptions import InvalidInput
from ..utils.data_loader import require_columns

logger = logging.getLogger(__name__)

DEFAULT_P_THRESHOLDS = [
    5e-8,   # Genome-wide significant
    1e-6,
    1e-5,
    1e-4,
    1e-3,
    0.01,
    0.05,
    0.1,
    0.5,
    1.0     # All SNPs
]


@dataclass(frozen=True)
class ThresholdScan:
    """Scores for every p-value threshold"""
    scores: pd.DataFrame            # samples x thresholds
    n_snps: Dict[str, int]          # Variants per score column
    weights: Dict[str, pd.DataFrame]  # SNP weights per score column


def score_column_name(p_threshold: float) -> str:
    return f"CT_P{p_threshold:g}"


def attach_genotype_index(sumstats: pd.DataFrame, snp_ids: Sequence[str]) -> pd.DataFrame:
    """
    Add a SNP_INDEX column pointing into the genotype matrix

    Summary statistic rows without a matching genotype column are dropped.
    """
    require_columns(sumstats, ['SNP'], what="summary statistics")
    lookup = {snp: i for i, snp in enumerate(snp_ids)}
    out = sumstats.copy()
    out['SNP_INDEX'] = out['SNP'].map(lookup)

    missing = int(out['SNP_INDEX'].isna().sum())
    if missing:
        logger.info(f"{missing} summary statistic SNPs not in genotype matrix")

    out = out.dropna(subset=['SNP_INDEX']).reset_index(drop=True)
    out['SNP_INDEX'] = out['SNP_INDEX'].astype(int)
    return out


def _mean_impute(X: np.ndarray) -> np.ndarray:
    X_clean = X.copy()
    for i in range(X.shape[1]):
        missing = np.isnan(X[:, i])
        if np.any(missing):
            X_clean[missing, i] = np.nanmean(X[:, i]) if not np.all(missing) else 0.0
    return X_clean


class ClumpThreshold:
    """
    Clumping & thresholding PRS calculator

    Example:
    --------
    >>> ct = ClumpThreshold(clump_r2=0.1, clump_kb=250)
    >>> sumstats = attach_genotype_index(sumstats, snp_ids)
    >>> scan = ct.score_thresholds(sumstats, genotypes)
    >>> best = ct.select_threshold(scan.scores, phenotype)
    """

    def __init__(self,
                 clump_r2: float = 0.1,
                 clump_kb: int = 250,
                 p_thresholds: Optional[List[float]] = None):
        """
        Parameters:
        -----------
        clump_r2 : float
            R² threshold for LD clumping (default: 0.1)
        clump_kb : int
            Window size for clumping in kb (default: 250)
        p_thresholds : list of float
            P-value thresholds to scan (default: standard set)
        """
        if not (0 < clump_r2 <= 1):
            raise ValueError("clump_r2 must be in (0, 1]")
        if clump_kb <= 0:
            raise ValueError("clump_kb must be positive")

        self.clump_r2 = clump_r2
        self.clump_kb = clump_kb
        self.p_thresholds = sorted(p_thresholds) if p_thresholds else list(DEFAULT_P_THRESHOLDS)

        logger.info(f"Initialized C+T (R²<{clump_r2}, window={clump_kb}kb, "
                    f"{len(self.p_thresholds)} thresholds)")

    def calculate_ld(self, genotypes: np.ndarray, indices: np.ndarray) -> np.ndarray:
        """
        Pairwise LD (r²) between the given genotype columns

        Monomorphic SNPs have no defined correlation and get r² = 0.
        """
        X = _mean_impute(genotypes[:, indices])
        with np.errstate(invalid='ignore', divide='ignore'):
            cor = np.corrcoef(X.T)
        cor = np.atleast_2d(np.nan_to_num(cor, nan=0.0))
        return cor ** 2

    def ld_clump(self,
                 sumstats: pd.DataFrame,
                 genotypes: np.ndarray,
                 p_threshold: float = 0.001) -> pd.DataFrame:
        """
        LD-based clumping to select independent SNPs

        Parameters:
        -----------
        sumstats : pd.DataFrame
            Columns: SNP, CHR, BP, BETA, P, SNP_INDEX
        genotypes : np.ndarray (n_samples x n_snps)
            Genotype matrix used for LD
        p_threshold : float
            Inclusion threshold (P <= p_threshold)

        Returns:
        --------
        clumped : pd.DataFrame
            Index SNPs, sorted by P
        """
        require_columns(sumstats, ['SNP', 'CHR', 'BP', 'BETA', 'P', 'SNP_INDEX'],
                        what="summary statistics")

        sig_snps = sumstats[sumstats['P'] <= p_threshold]
        if len(sig_snps) == 0:
            logger.warning(f"No SNPs below p-threshold {p_threshold:g}")
            return sig_snps.iloc[0:0].copy()

        sig_snps = sig_snps.sort_values('P', kind='mergesort').reset_index(drop=True)
        chrom = sig_snps['CHR'].to_numpy()
        bp = sig_snps['BP'].to_numpy()
        geno_idx = sig_snps['SNP_INDEX'].to_numpy()
        window = self.clump_kb * 1000

        keep = []
        removed = np.zeros(len(sig_snps), dtype=bool)

        for i in range(len(sig_snps)):
            if removed[i]:
                continue
            keep.append(i)

            in_window = np.where(
                (chrom == chrom[i]) & (np.abs(bp - bp[i]) <= window) & ~removed
            )[0]
            in_window = in_window[in_window > i]
            if len(in_window) == 0:
                continue

            ld = self.calculate_ld(genotypes, np.concatenate([[geno_idx[i]], geno_idx[in_window]]))
            removed[in_window[ld[0, 1:] > self.clump_r2]] = True

        clumped = sig_snps.iloc[keep].reset_index(drop=True)
        logger.info(f"  p<={p_threshold:g}: {len(sig_snps)} SNPs -> {len(clumped)} after clumping")
        return clumped

    def calculate_prs(self, genotypes: np.ndarray, weights: pd.DataFrame) -> np.ndarray:
        """
        PRS = Σ (genotype_i × β_i)

        Parameters:
        -----------
        genotypes : np.ndarray (n_samples x n_snps)
        weights : pd.DataFrame
            Columns: SNP_INDEX, BETA

        Returns:
        --------
        prs : np.ndarray (n_samples,)
        """
        if len(weights) == 0:
            logger.warning("No SNPs in weights, returning zeros")
            return np.zeros(genotypes.shape[0])

        X = _mean_impute(genotypes[:, weights['SNP_INDEX'].to_numpy(dtype=int)])
        return X @ weights['BETA'].to_numpy(dtype=float)

    def score_thresholds(self,
                         sumstats: pd.DataFrame,
                         genotypes: np.ndarray,
                         sample_ids: Optional[Sequence[str]] = None) -> ThresholdScan:
        """Build one score column per p-value threshold"""
        if 'SNP_INDEX' not in sumstats.columns:
            raise InvalidInput("summary statistics need SNP_INDEX; call attach_genotype_index first")

        columns = {}
        n_snps = {}
        weights = {}
        for p_thresh in self.p_thresholds:
            name = score_column_name(p_thresh)
            clumped = self.ld_clump(sumstats, genotypes, p_thresh)
            w = clumped[['SNP', 'SNP_INDEX', 'BETA']].reset_index(drop=True)
            columns[name] = self.calculate_prs(genotypes, w)
            n_snps[name] = len(w)
            weights[name] = w

        index = pd.Index(sample_ids if sample_ids is not None else range(genotypes.shape[0]),
                         name='IID')
        return ThresholdScan(scores=pd.DataFrame(columns, index=index),
                             n_snps=n_snps, weights=weights)

    def select_threshold(self,
                         scores: pd.DataFrame,
                         phenotype: np.ndarray,
                         is_binary: bool = True) -> Optional[str]:
        """
        Pick the score column with the best AUC (binary) or R² (continuous)

        Columns that are constant (no SNPs passed) are skipped. Returns None
        when no column can be evaluated.
        """
        phenotype = np.asarray(phenotype)
        best_name, best_score = None, -np.inf

        for name in scores.columns:
            prs = scores[name].to_numpy(dtype=float)
            if np.ptp(prs) == 0:
                continue
            if is_binary:
                if len(np.unique(phenotype)) < 2:
                    continue
                score = roc_auc_score(phenotype, prs)
            else:
                score = np.corrcoef(prs, phenotype)[0, 1] ** 2
            logger.info(f"  {name}: {'AUC' if is_binary else 'R²'} = {score:.4f}")
            if score > best_score:
                best_name, best_score = name, score

        if best_name is None:
            logger.warning("No threshold produced an informative score")
        else:
            logger.info(f"✓ Best threshold column: {best_name}")
        return best_name
