"""
Derive clumping & thresholding scores from GWAS summary statistics.

This module:
1. Loads summary statistics and a samples x SNPs genotype matrix
2. Clumps SNPs and builds one score per p-value threshold
3. Merges the scores onto the sample table (ancestry, PCs, outcome)
4. Picks the best threshold when an outcome is available
5. Saves the score table used by the evaluation step
"""

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from .config import load_config
from .prs.clumping import ClumpThreshold, attach_genotype_index
from .utils.data_loader import load_genotype_matrix, load_gwas_sumstats, load_score_table

logger = logging.getLogger(__name__)


def derive_all_scores(config_path: str = "config.yaml") -> Dict:
    """
    Build C+T scores as configured in config.yaml.

    Parameters
    ----------
    config_path : str
        Path to config.yaml

    Returns
    -------
    dict
        ``scores`` (merged table), ``n_snps`` per score column,
        ``best_threshold`` (column name or None) and ``saved_file``
    """
    config = load_config(config_path)

    if not config.get('derivation.enabled', False):
        raise ValueError("Score derivation is disabled (derivation.enabled: false)")

    sample_id_col = config.get('data.sample_id_col')
    outcome_col = config.get('data.outcome_col')

    print("=" * 60)
    print("Derive Polygenic Scores: Clumping & Thresholding")
    print("=" * 60)

    sumstats = load_gwas_sumstats(config.get('derivation.sumstats_file'))
    genotypes, sample_ids, snp_ids = load_genotype_matrix(config.get('derivation.genotypes_file'))
    sumstats = attach_genotype_index(sumstats, snp_ids)
    print(f"  {len(sumstats):,} SNPs shared between summary statistics and genotypes")

    ct = ClumpThreshold(
        clump_r2=config.get('derivation.clump_r2', 0.1),
        clump_kb=config.get('derivation.clump_kb', 250),
        p_thresholds=config.get('derivation.p_thresholds'),
    )
    scan = ct.score_thresholds(sumstats, genotypes, sample_ids=sample_ids)
    for name, n in scan.n_snps.items():
        print(f"  {name}: {n} SNPs")

    scores = scan.scores.reset_index().rename(columns={'IID': sample_id_col})

    sample_file = config.get('derivation.sample_file')
    best = None
    if sample_file and Path(sample_file).exists():
        samples = load_score_table(sample_file, sep=config.get('data.sep', '\t'),
                                   required=[sample_id_col])
        samples[sample_id_col] = samples[sample_id_col].astype(str)
        scores = samples.merge(scores, on=sample_id_col, how='inner')
        print(f"  Merged onto {len(scores):,} samples from {sample_file}")

        if outcome_col in scores.columns:
            labelled = scores.dropna(subset=[outcome_col])
            best = ct.select_threshold(labelled[list(scan.scores.columns)],
                                       labelled[outcome_col].to_numpy(), is_binary=True)
    else:
        logger.warning("No sample file; scores saved without ancestry, PCs or outcome")

    out_path = Path(config.get('data.scores_file'))
    out_path.parent.mkdir(parents=True, exist_ok=True)
    scores.to_csv(out_path, sep=config.get('data.sep', '\t'), index=False)
    print(f"\n✓ Saved: {out_path}")

    return {
        'scores': scores,
        'n_snps': scan.n_snps,
        'best_threshold': best,
        'saved_file': out_path,
    }


def main():
    """Main function to derive scores from config."""
    try:
        result = derive_all_scores()

        print("\n" + "=" * 60)
        print("Derivation Summary")
        print("=" * 60)
        print(f"  Samples scored: {len(result['scores'])}")
        print(f"  Score columns: {len(result['n_snps'])}")
        if result['best_threshold']:
            print(f"  Best threshold: {result['best_threshold']}")
        print(f"\nList the score columns to evaluate under data.score_cols in config.yaml")
        return 0

    except Exception as e:
        logger.error("Error deriving scores: %s", e)
        return 1


if __name__ == "__main__":
    import sys

    sys.exit(main())
