"""
Evaluate polygenic scores across ancestry groups.

This module:
1. Loads the score table (or simulates one when configured)
2. Calibrates each score against genetic PCs (mean and variance)
3. Evaluates raw and calibrated scores per ancestry group (AUC, OR per SD)
4. Computes Cochran's Q and I² of the per-group effects
5. Saves result tables, a text report and plots
"""

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from .config import Config, load_config
from .evaluation.portability import evaluate_scores, summarize_calibration_effect
from .prs.calibration import calibrate_scores
from .reporting import (generate_report, plot_auc_by_group, plot_calibration,
                        plot_roc_curves, save_results)
from .utils.data_loader import load_score_table, require_columns
from .utils.simulation import simulate_cohort

logger = logging.getLogger(__name__)


def load_scores(config: Config) -> pd.DataFrame:
    """Load the configured score table, simulating one if allowed and absent."""
    scores_file = Path(config.get('data.scores_file'))
    sep = config.get('data.sep', '\t')

    if not scores_file.exists():
        if not config.get('data.simulate', False):
            raise FileNotFoundError(f"Score table not found: {scores_file}")

        logger.info(f"{scores_file} not found; simulating a cohort")
        frame = simulate_cohort(
            n_pcs=int(config.get('data.n_pcs')),
            score_names=config.score_cols or None,
            ancestry_col=config.get('data.ancestry_col'),
            sample_id_col=config.get('data.sample_id_col'),
            outcome_col=config.get('data.outcome_col'),
            pc_prefix=config.get('data.pc_prefix', 'PC'),
        )
        # Only age and sex are simulated as covariates
        require_columns(frame, config.covariates, what="simulated cohort")
        scores_file.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(scores_file, sep=sep, index=False)
        return frame

    required = ([config.get('data.sample_id_col'), config.get('data.ancestry_col'),
                 config.get('data.outcome_col')]
                + config.score_cols + config.pc_cols + config.covariates)
    return load_score_table(scores_file, sep=sep, required=required)


def evaluate_all_scores(config_path: str = "config.yaml") -> Dict:
    """
    Run calibration and cross-ancestry evaluation as configured in config.yaml.

    Parameters
    ----------
    config_path : str
        Path to config.yaml

    Returns
    -------
    dict
        ``results`` (PortabilityResults), ``frame`` (scores plus calibrated
        columns), ``calibration_summary`` and ``saved_files``
    """
    config = load_config(config_path)

    sample_id_col = config.get('data.sample_id_col')
    ancestry_col = config.get('data.ancestry_col')
    outcome_col = config.get('data.outcome_col')
    score_cols = config.score_cols or ['PGS1']
    pc_cols = config.pc_cols

    print("=" * 60)
    print("Evaluate Polygenic Scores Across Ancestry Groups")
    print("=" * 60)

    frame = load_scores(config)
    print(f"\nLoaded {len(frame):,} samples")
    for group, n in frame[ancestry_col].value_counts().sort_index().items():
        print(f"  - {group}: {n}")

    evaluated = list(score_cols)
    calibration_summary = None
    if config.get('calibration.enabled', True):
        print("\nCalibrating scores against "
              f"{len(pc_cols)} principal components...")
        frame = calibrate_scores(frame, score_cols, pc_cols, sample_id_col, ancestry_col)
        evaluated += [f"{s}_var_cal" for s in score_cols]

    results = evaluate_scores(
        frame,
        evaluated,
        outcome_col,
        ancestry_col=ancestry_col,
        covariates=config.covariates,
        min_cases=int(config.get('evaluation.min_cases', 5)),
        standardize_score=config.get('evaluation.standardize', True),
        include_overall=config.get('evaluation.include_overall', True),
        show_progress=config.get('evaluation.show_progress', False),
    )

    if config.get('calibration.enabled', True):
        calibration_summary = summarize_calibration_effect(results, score_cols)

    results_dir = Path(config.get('paths.results_dir'))
    plots_dir = Path(config.get('paths.plots_dir'))

    saved = save_results(results, results_dir)
    if config.get('calibration.enabled', True):
        path = results_dir / "calibrated_scores.tsv"
        frame.to_csv(path, sep="\t", index=False, na_rep="NA")
        saved['calibrated_scores'] = path
    saved['report'] = generate_report(results, results_dir / "prs_portability_report.txt",
                                      frame=frame, outcome_col=outcome_col,
                                      calibration_summary=calibration_summary)
    saved['auc_plot'] = plot_auc_by_group(results, plots_dir / "auc_by_group.png")
    for score in score_cols:
        saved[f'roc_{score}'] = plot_roc_curves(frame, score, outcome_col, ancestry_col,
                                                plots_dir / f"roc_{score}.png")
        saved[f'calibration_{score}'] = plot_calibration(frame, score, pc_cols[0], ancestry_col,
                                                         plots_dir / f"calibration_{score}.png")

    return {
        'results': results,
        'frame': frame,
        'calibration_summary': calibration_summary,
        'saved_files': saved,
    }


def main():
    """Main function to evaluate all configured scores."""
    try:
        output = evaluate_all_scores()
        results = output['results']

        print("\n" + "=" * 60)
        print("Heterogeneity Summary")
        print("=" * 60)
        for row in results.heterogeneity.itertuples(index=False):
            if pd.isna(row.i_squared):
                print(f"  {row.score}: I² undefined ({row.n_groups} usable groups)")
            else:
                print(f"  {row.score}: Q = {row.q_statistic:.2f}, I² = {row.i_squared:.3f}")

        print("\n" + "=" * 60)
        print("Output Files")
        print("=" * 60)
        for name, path in output['saved_files'].items():
            print(f"  - {name}: {path}")

        return 0

    except Exception as e:
        logger.error("Error evaluating scores: %s", e)
        return 1


if __name__ == "__main__":
    import sys

    sys.exit(main())
