"""
Reporting for PRS portability results.

Nothing in the analysis modules writes files or draws plots; everything
that leaves the process goes through the functions here.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .evaluation.metrics import quantile_odds_ratios, roc_points
from .evaluation.portability import OVERALL_GROUP, PortabilityResults

logger = logging.getLogger(__name__)


def _fmt(value, spec: str = ".4f") -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "NA"
    return format(value, spec)


def save_results(results: PortabilityResults,
                 out_dir: Union[str, Path],
                 prefix: str = "") -> Dict[str, Path]:
    """
    Write the result tables as tab-separated files.

    Returns
    -------
    dict
        Table name -> written path
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    saved = {}
    for name, table in (("group_metrics", results.group_metrics),
                        ("heterogeneity", results.heterogeneity)):
        path = out_dir / f"{prefix}{name}.tsv"
        table.to_csv(path, sep="\t", index=False, na_rep="NA")
        saved[name] = path
        logger.info(f"✓ Saved: {path}")

    return saved


def generate_report(results: PortabilityResults,
                    output_file: Union[str, Path],
                    frame: Optional[pd.DataFrame] = None,
                    outcome_col: Optional[str] = None,
                    calibration_summary: Optional[pd.DataFrame] = None) -> Path:
    """
    Write a fixed-width text report of per-group performance and heterogeneity

    Parameters
    ----------
    results : PortabilityResults
        Output of ``evaluate_scores``
    output_file : str or Path
        Report path
    frame : pd.DataFrame, optional
        Sample table; with ``outcome_col`` adds decile odds ratios per score
    outcome_col : str, optional
        0/1 outcome column in ``frame``
    calibration_summary : pd.DataFrame, optional
        Output of ``summarize_calibration_effect``
    """
    output_file = Path(output_file)
    logger.info(f"Generating PRS portability report: {output_file}")

    lines: List[str] = []
    lines.append("=" * 80)
    lines.append("POLYGENIC RISK SCORE - CROSS-ANCESTRY PERFORMANCE REPORT")
    lines.append("=" * 80)
    lines.append("")

    het = results.heterogeneity.set_index('score')
    for score in het.index:
        lines.append(f"Score: {score}")
        lines.append("-" * 80)
        lines.append(f"{'Group':<10} {'N':>7} {'Cases':>7} {'AUC':>8} "
                     f"{'OR/SD':>8} {'Beta':>9} {'P':>11}")
        lines.append("-" * 80)
        for row in results.metrics_for(score).itertuples(index=False):
            lines.append(
                f"{str(row.group):<10} {row.n:>7} {row.n_cases:>7} {_fmt(row.auc):>8} "
                f"{_fmt(row.odds_ratio, '.3f'):>8} {_fmt(row.beta):>9} {_fmt(row.p_value, '.2e'):>11}"
            )
        h = het.loc[score]
        lines.append("")
        lines.append(f"Groups in heterogeneity test: {h['n_groups']}")
        lines.append(f"Cochran's Q: {_fmt(h['q_statistic'], '.3f')} "
                     f"(p = {_fmt(h['q_pvalue'], '.2e')})")
        lines.append(f"I²: {_fmt(h['i_squared'], '.3f')}")

        if frame is not None and outcome_col is not None and score in frame.columns:
            sub = frame[[score, outcome_col]].dropna()
            if sub[score].nunique() >= 10:
                ors = quantile_odds_ratios(sub[score].to_numpy(), sub[outcome_col].to_numpy())
                top = ors[max(ors, key=lambda q: int(q[1:]))]
                lines.append(f"Top vs. bottom decile OR: {_fmt(top['OR'], '.2f')} "
                             f"({_fmt(top['CI_lower'], '.2f')}-{_fmt(top['CI_upper'], '.2f')})")
        lines.append("")

    if calibration_summary is not None and len(calibration_summary):
        lines.append("Effect of ancestry calibration on I²:")
        lines.append("-" * 80)
        lines.append(f"{'Score':<20} {'Raw':>10} {'Calibrated':>12}")
        for row in calibration_summary.itertuples(index=False):
            lines.append(f"{row.score:<20} {_fmt(row.i_squared_raw, '.3f'):>10} "
                         f"{_fmt(row.i_squared_calibrated, '.3f'):>12}")
        lines.append("")

    lines.append("=" * 80)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"✓ Report saved: {output_file}")
    return output_file


def plot_auc_by_group(results: PortabilityResults,
                      output_file: Union[str, Path],
                      scores: Optional[Sequence[str]] = None) -> Path:
    """Grouped bar chart of AUC per ancestry group for each score."""
    metrics = results.group_metrics
    if scores is not None:
        metrics = metrics[metrics['score'].isin(scores)]
    table = metrics.pivot(index='group', columns='score', values='auc')

    fig, ax = plt.subplots(figsize=(10, 6))
    table.plot.bar(ax=ax, rot=0)
    ax.axhline(0.5, color='gray', linestyle='--', linewidth=1)
    ax.set_ylim(0, 1)
    ax.set_xlabel("Ancestry group")
    ax.set_ylabel("AUC")
    ax.set_title("PRS discrimination by ancestry group")
    ax.legend(title="Score", fontsize=8)
    fig.tight_layout()
    fig.savefig(output_file, dpi=150)
    plt.close(fig)
    logger.info(f"✓ Saved: {output_file}")
    return Path(output_file)


def plot_roc_curves(frame: pd.DataFrame,
                    score_col: str,
                    outcome_col: str,
                    ancestry_col: str,
                    output_file: Union[str, Path]) -> Path:
    """ROC curve of one score, one line per ancestry group."""
    fig, ax = plt.subplots(figsize=(7, 7))
    for group, sub in frame.groupby(ancestry_col):
        sub = sub[[score_col, outcome_col]].dropna()
        points = roc_points(sub[outcome_col].to_numpy(), sub[score_col].to_numpy())
        if points is None:
            logger.warning(f"{score_col} / {group}: one outcome class only, no ROC curve")
            continue
        fpr, tpr = points
        ax.plot(fpr, tpr, label=str(group))
    ax.plot([0, 1], [0, 1], linestyle="--", color="gray")
    ax.set_xlabel("False Positive Rate")
    ax.set_ylabel("True Positive Rate")
    ax.set_title(f"ROC by ancestry group: {score_col}")
    ax.legend(title=ancestry_col)
    fig.tight_layout()
    fig.savefig(output_file, dpi=150)
    plt.close(fig)
    logger.info(f"✓ Saved: {output_file}")
    return Path(output_file)


def plot_calibration(frame: pd.DataFrame,
                     score_col: str,
                     pc_col: str,
                     ancestry_col: str,
                     output_file: Union[str, Path],
                     calibrated_col: Optional[str] = None) -> Path:
    """Score against one PC before (and after) calibration, coloured by group."""
    calibrated_col = calibrated_col or f"{score_col}_var_cal"
    panels = [score_col] + ([calibrated_col] if calibrated_col in frame.columns else [])

    fig, axes = plt.subplots(1, len(panels), figsize=(6 * len(panels), 5), squeeze=False)
    for ax, col in zip(axes[0], panels):
        for group, sub in frame.groupby(ancestry_col):
            ax.scatter(sub[pc_col], sub[col], s=6, alpha=0.6, label=str(group))
        ax.set_xlabel(pc_col)
        ax.set_ylabel(col)
        ax.set_title("Raw" if col == score_col else "Mean + variance calibrated")
    axes[0][0].legend(title=ancestry_col, fontsize=8, markerscale=2)
    fig.tight_layout()
    fig.savefig(output_file, dpi=150)
    plt.close(fig)
    logger.info(f"✓ Saved: {output_file}")
    return Path(output_file)
