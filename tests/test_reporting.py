"""Tests for result tables, the text report and plots."""

import pandas as pd
import pytest

from prs_portability.evaluation.portability import evaluate_scores
from prs_portability.reporting import (
    generate_report,
    plot_auc_by_group,
    plot_calibration,
    plot_roc_curves,
    save_results,
)


@pytest.fixture
def results(cohort):
    return evaluate_scores(cohort, ["PGS1", "PGS2"], "PHENO")


class TestSaveResults:

    def test_writes_both_tables(self, results, tmp_path):
        saved = save_results(results, tmp_path / "out")
        assert set(saved) == {"group_metrics", "heterogeneity"}
        het = pd.read_csv(saved["heterogeneity"], sep="\t")
        assert list(het["score"]) == ["PGS1", "PGS2"]
        gm = pd.read_csv(saved["group_metrics"], sep="\t")
        assert len(gm) == len(results.group_metrics)

    def test_prefix(self, results, tmp_path):
        saved = save_results(results, tmp_path, prefix="run1_")
        assert saved["heterogeneity"].name == "run1_heterogeneity.tsv"


class TestReport:

    def test_contains_heterogeneity_and_groups(self, results, tmp_path):
        path = generate_report(results, tmp_path / "report.txt")
        text = path.read_text(encoding="utf-8")
        assert "Cochran's Q" in text
        assert "I²" in text
        for group in ["AFR", "AMR", "EAS", "EUR", "SAS", "ALL"]:
            assert group in text

    def test_decile_odds_ratio_with_frame(self, results, cohort, tmp_path):
        path = generate_report(results, tmp_path / "report.txt", frame=cohort, outcome_col="PHENO")
        assert "Top vs. bottom decile OR" in path.read_text(encoding="utf-8")

    def test_undefined_values_printed_as_na(self, cohort, tmp_path):
        eur_only = evaluate_scores(cohort[cohort["Super_Population"] == "EUR"], ["PGS1"], "PHENO")
        text = generate_report(eur_only, tmp_path / "report.txt").read_text(encoding="utf-8")
        assert "I²: NA" in text

    def test_calibration_section(self, results, tmp_path):
        summary = pd.DataFrame({"score": ["PGS1"], "i_squared_raw": [0.4],
                                "i_squared_calibrated": [0.1]})
        text = generate_report(results, tmp_path / "report.txt",
                               calibration_summary=summary).read_text(encoding="utf-8")
        assert "Effect of ancestry calibration" in text


class TestPlots:

    def test_auc_plot(self, results, tmp_path):
        path = plot_auc_by_group(results, tmp_path / "auc.png")
        assert path.exists()

    def test_roc_plot(self, cohort, tmp_path):
        path = plot_roc_curves(cohort, "PGS1", "PHENO", "Super_Population", tmp_path / "roc.png")
        assert path.exists()

    def test_calibration_plot_without_calibrated_column(self, cohort, tmp_path):
        path = plot_calibration(cohort, "PGS1", "PC1", "Super_Population", tmp_path / "cal.png")
        assert path.exists()
