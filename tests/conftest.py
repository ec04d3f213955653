"""Pytest configuration and fixtures for PRS portability tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402
import yaml  # noqa: E402

from prs_portability.prs.calibration import ScoreRecord  # noqa: E402
from prs_portability.utils.simulation import simulate_cohort  # noqa: E402


@pytest.fixture
def cohort() -> pd.DataFrame:
    """Five ancestry groups, two scores, five PCs."""
    return simulate_cohort(n_per_group=200, n_pcs=5, n_scores=2, seed=7)


@pytest.fixture
def ancestry_records():
    """Records whose score mean tracks PC1 and PC2."""
    rng = np.random.default_rng(3)
    n = 300
    pcs = rng.normal(0, 1, size=(n, 3))
    scores = 2.0 + 3.0 * pcs[:, 0] - 1.5 * pcs[:, 1] + rng.normal(0, 1, n) * np.exp(0.3 * pcs[:, 0])
    return [
        ScoreRecord(sample_id=f"S{i}", score_value=float(scores[i]),
                    principal_components=tuple(pcs[i]), ancestry_group="EUR" if pcs[i, 0] > 0 else "AFR")
        for i in range(n)
    ]


@pytest.fixture
def write_config(tmp_path):
    """Write a config.yaml under tmp_path, with overrides merged per section."""

    def _write(overrides=None):
        config = {
            'project': {'name': 'prs-portability-test', 'version': '0.0.1'},
            'paths': {
                'data_dir': str(tmp_path / 'data'),
                'results_dir': str(tmp_path / 'results'),
                'plots_dir': str(tmp_path / 'results' / 'plots'),
            },
            'data': {
                'scores_file': str(tmp_path / 'data' / 'scores.tsv'),
                'sep': '\t',
                'simulate': True,
                'sample_id_col': 'IID',
                'ancestry_col': 'Super_Population',
                'outcome_col': 'PHENO',
                'score_cols': ['PGS1', 'PGS2'],
                'pc_prefix': 'PC',
                'n_pcs': 5,
                'covariates': ['age', 'sex'],
            },
            'derivation': {'enabled': False},
            'calibration': {'enabled': True},
            'evaluation': {
                'min_cases': 5,
                'standardize': True,
                'include_overall': True,
                'show_progress': False,
            },
            'logging': {'level': 'INFO'},
        }
        for section, values in (overrides or {}).items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        path = tmp_path / 'config.yaml'
        with open(path, 'w') as f:
            yaml.safe_dump(config, f, sort_keys=False)
        return path

    return _write
