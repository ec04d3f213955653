"""
main.py is the entry point for the pipeline.
It derives scores (when enabled), calibrates them against ancestry, and
evaluates them across ancestry groups.

Modules used:
- derive_scores.py: clumping & thresholding scores from summary statistics
- evaluate_scores.py: calibration, per-group performance, heterogeneity

Configuration:
- config.yaml: configuration for the pipeline

Output:
- results/: group metrics, heterogeneity table, calibrated scores, report
- results/plots: AUC by group, ROC curves, calibration plots
"""
import logging

from prs_portability.config import load_config
from prs_portability.derive_scores import derive_all_scores
from prs_portability.evaluate_scores import evaluate_all_scores


if __name__ == "__main__":
    config = load_config()
    logging.basicConfig(
        level=config.get('logging.level', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if config.get('derivation.enabled', False):
        derive_all_scores()
    evaluate_all_scores()
