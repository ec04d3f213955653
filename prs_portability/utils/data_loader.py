"""
Tabular data loading for the PRS portability pipeline

Reads the delimited tables the pipeline works from:
- per-sample score tables (scores, PCs, ancestry labels, outcome)
- GWAS summary statistics for clumping & thresholding
- small samples x SNPs genotype matrices

Column presence is checked up front; a missing column raises
InvalidInput before any model is fitted.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import InvalidInput
from ..prs.calibration import ScoreRecord
from ..prs.heterogeneity import standard_error_from_p

logger = logging.getLogger(__name__)

# Summary statistics column harmonisation
SUMSTATS_COLUMN_MAP = {
    # SNP ID
    'rsid': 'SNP', 'rs': 'SNP', 'snp': 'SNP', 'MarkerName': 'SNP',
    'variant_id': 'SNP', 'ID': 'SNP',

    # Chromosome
    'chr': 'CHR', 'chromosome': 'CHR', '#chr': 'CHR', '#CHROM': 'CHR',

    # Position
    'pos': 'BP', 'position': 'BP', 'bp': 'BP', 'base_pair_location': 'BP', 'POS': 'BP',

    # Effect size
    'effect': 'BETA', 'beta': 'BETA', 'b': 'BETA', 'Effect': 'BETA',

    # Standard error
    'se': 'SE', 'stderr': 'SE', 'standard_error': 'SE', 'StdErr': 'SE',

    # P-value
    'p': 'P', 'pval': 'P', 'p_value': 'P', 'pvalue': 'P',
    'P-value': 'P', 'p.value': 'P', 'P_VALUE': 'P',

    # Alleles
    'effect_allele': 'A1', 'Allele1': 'A1', 'EA': 'A1',
    'other_allele': 'A2', 'Allele2': 'A2', 'NEA': 'A2',
    'ref': 'A2', 'reference_allele': 'A2',

    # Frequency
    'eaf': 'EAF', 'freq': 'EAF', 'effect_allele_freq': 'EAF', 'Freq1': 'EAF',

    # Odds ratio
    'odds_ratio': 'OR', 'or': 'OR',

    # Sample size
    'n': 'N', 'N_total': 'N', 'TotalSampleSize': 'N'
}


def require_columns(frame: pd.DataFrame, columns: Sequence[str], what: str = "table") -> None:
    """Raise InvalidInput listing any of ``columns`` absent from ``frame``."""
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise InvalidInput(f"{what} is missing required columns: {missing}")


def pc_columns(prefix: str = "PC", n_pcs: int = 5) -> List[str]:
    """Names of the first ``n_pcs`` principal component columns."""
    if n_pcs < 1:
        raise InvalidInput(f"n_pcs must be >= 1, got {n_pcs}")
    return [f"{prefix}{i}" for i in range(1, n_pcs + 1)]


def load_score_table(file_path: Union[str, Path],
                     sep: str = "\t",
                     required: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Load a per-sample score table

    Parameters
    ----------
    file_path : str or Path
        Delimited text file, one row per sample
    sep : str
        Field separator
    required : sequence of str, optional
        Columns that must be present

    Returns
    -------
    pd.DataFrame
        Score table
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Score table not found: {file_path}")

    frame = pd.read_csv(file_path, sep=sep)
    logger.info(f"Loaded {len(frame):,} samples x {frame.shape[1]} columns from {file_path}")

    if required:
        require_columns(frame, required, what=file_path.name)

    return frame


def records_from_frame(frame: pd.DataFrame,
                       score_col: str,
                       sample_id_col: str,
                       pc_cols: Sequence[str],
                       ancestry_col: Optional[str] = None,
                       return_index: bool = False):
    """
    Turn one score column of a sample table into ScoreRecords

    Rows with a missing score or PC are dropped with a warning.

    Returns
    -------
    list of ScoreRecord
        Or ``(records, index)`` when ``return_index`` is set, where ``index``
        holds the frame labels of the rows that were kept.
    """
    columns = [sample_id_col, score_col] + list(pc_cols)
    if ancestry_col is not None:
        columns.append(ancestry_col)
    require_columns(frame, columns)

    complete = frame[[score_col] + list(pc_cols)].notna().all(axis=1)
    n_dropped = int((~complete).sum())
    if n_dropped:
        logger.warning(f"{score_col}: dropping {n_dropped} samples with missing score or PCs")

    kept = frame.loc[complete]
    pcs = kept[list(pc_cols)].to_numpy(dtype=float)
    scores = kept[score_col].to_numpy(dtype=float)
    ids = kept[sample_id_col].tolist()
    groups = kept[ancestry_col].tolist() if ancestry_col is not None else [None] * len(kept)

    records = [
        ScoreRecord(
            sample_id=sid,
            score_value=float(s),
            principal_components=tuple(float(v) for v in row),
            ancestry_group=g,
        )
        for sid, s, row, g in zip(ids, scores, pcs, groups)
    ]

    if return_index:
        return records, kept.index
    return records


def load_gwas_sumstats(file_path: Union[str, Path],
                       sep: str = "\t",
                       compression: str = "infer") -> pd.DataFrame:
    """
    Load GWAS summary statistics with harmonised column names

    Parameters:
    -----------
    file_path : str or Path
        Summary statistics file (plain or gzipped)
    sep : str
        Field separator
    compression : str
        Passed to pandas.read_csv

    Returns:
    --------
    sumstats : pd.DataFrame
        Standardized columns: SNP, CHR, BP, A1, A2, BETA, SE, P (where present)
    """
    logger.info(f"Loading GWAS summary statistics: {file_path}")

    df = pd.read_csv(file_path, sep=sep, compression=compression, low_memory=False)
    df = df.rename(columns={k: v for k, v in SUMSTATS_COLUMN_MAP.items() if k in df.columns})

    require_columns(df, ['SNP', 'P'], what="summary statistics")

    if 'OR' in df.columns and 'BETA' not in df.columns:
        df['BETA'] = np.log(df['OR'])
        logger.info("Converted OR to BETA")

    if 'SE' not in df.columns and 'BETA' in df.columns:
        df['SE'] = [
            standard_error_from_p(b, p) for b, p in zip(df['BETA'], df['P'])
        ]
        df['SE'] = df['SE'].astype(float)
        logger.info("Derived SE from BETA and P")

    before = len(df)
    df = df.dropna(subset=['SNP', 'P'])
    df = df[(df['P'] > 0) & (df['P'] <= 1)].reset_index(drop=True)
    if len(df) != before:
        logger.info(f"Removed {before - len(df)} SNPs with missing or invalid P-value")

    logger.info(f"Loaded {len(df):,} SNPs from summary statistics")
    return df


def load_genotype_matrix(file_path: Union[str, Path]) -> Tuple[np.ndarray, List[str], List[str]]:
    """
    Load a samples x SNPs dosage matrix from CSV

    The first column holds sample IDs; remaining column headers are SNP IDs.

    Returns
    -------
    genotypes : np.ndarray (n_samples x n_snps)
    sample_ids : list of str
    snp_ids : list of str
    """
    frame = pd.read_csv(file_path, index_col=0)
    genotypes = frame.to_numpy(dtype=float)
    logger.info(f"Loaded genotypes: {genotypes.shape[0]} samples x {genotypes.shape[1]} SNPs")
    return genotypes, [str(s) for s in frame.index], [str(c) for c in frame.columns]
