"""
Configuration for the PRS portability pipeline.
Step 1: Read config.yaml, check it and create the output directories.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional

from .utils.data_loader import pc_columns


class Config:
    """Validated view of config.yaml with dot-notation lookups."""

    REQUIRED_SECTIONS = ['project', 'paths', 'data', 'evaluation']
    OUTPUT_DIRS = ('data_dir', 'results_dir', 'plots_dir')

    def __init__(self, config_path: str = "config.yaml", create_dirs: bool = True):
        """
        Parameters
        ----------
        config_path : str
            YAML file with the project, paths, data and evaluation sections
        create_dirs : bool
            Create the data, results and plots directories
        """
        self.config_path = Path(config_path)
        self.config = self._read_yaml()
        self._validate_config()
        if create_dirs:
            self._create_directories()

    def _read_yaml(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"No pipeline configuration at {self.config_path}; "
                f"copy config.yaml from the repository root and edit it"
            )

        with open(self.config_path) as f:
            raw = yaml.safe_load(f)

        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file is empty or malformed: {self.config_path}")
        return raw

    def _validate_config(self) -> None:
        """Check required sections and value ranges."""
        missing = [s for s in self.REQUIRED_SECTIONS if s not in self.config]
        if missing:
            raise ValueError(f"Missing required configuration section: {', '.join(missing)}")

        for key in self.OUTPUT_DIRS:
            if key not in self.config['paths']:
                raise ValueError(f"Missing '{key}' in paths configuration")

        # Column layout of the score table
        data = self.config['data']
        for key in ('sample_id_col', 'ancestry_col', 'outcome_col'):
            if not data.get(key):
                raise ValueError(f"Missing '{key}' in data configuration")
        if int(data.get('n_pcs', 0)) < 1:
            raise ValueError("data.n_pcs must be at least 1")
        if not data.get('score_cols') and not data.get('simulate', False):
            raise ValueError("data.score_cols must list at least one score column")

        if int(self.config['evaluation'].get('min_cases', 5)) < 1:
            raise ValueError("evaluation.min_cases must be at least 1")

        derivation = self.config.get('derivation') or {}
        if derivation.get('enabled', False):
            if not (0 < derivation.get('clump_r2', 0.1) <= 1):
                raise ValueError("clump_r2 must be between 0 and 1")
            if derivation.get('clump_kb', 250) <= 0:
                raise ValueError("clump_kb must be positive")
            for p in derivation.get('p_thresholds') or []:
                if not (0 < p <= 1):
                    raise ValueError(f"p-value threshold out of range: {p}")

    def _create_directories(self) -> None:
        for key in self.OUTPUT_DIRS:
            Path(self.config['paths'][key]).mkdir(parents=True, exist_ok=True)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a nested value, e.g. ``config.get('evaluation.min_cases', 5)``.

        Returns ``default`` as soon as one level of the dotted path is absent.
        """
        node: Any = self.config
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def __getitem__(self, key: str) -> Any:
        return self.config[key]

    def __contains__(self, key: str) -> bool:
        return key in self.config

    @property
    def pc_cols(self) -> List[str]:
        """Principal component column names, e.g. ['PC1', ..., 'PC5']."""
        return pc_columns(self.get('data.pc_prefix', 'PC'), int(self.get('data.n_pcs')))

    @property
    def score_cols(self) -> List[str]:
        return list(self.get('data.score_cols') or [])

    @property
    def covariates(self) -> List[str]:
        return list(self.get('data.covariates') or [])

    def save(self, output_path: Optional[str] = None) -> None:
        """Write the (possibly updated) settings back to YAML."""
        target = Path(output_path) if output_path else self.config_path
        with open(target, 'w') as f:
            yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)

    def update(self, key: str, value: Any) -> None:
        """
        Set a nested value by dotted key, creating sections as needed.

        The change is not re-validated; call ``save`` to persist it.
        """
        *parents, leaf = key.split('.')
        node = self.config
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value


def load_config(config_path: str = "config.yaml", create_dirs: bool = True) -> Config:
    """Load and validate config.yaml (see ``Config``)."""
    return Config(config_path, create_dirs=create_dirs)
