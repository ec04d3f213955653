"""
Step 1: Check Configuration
Validates config.yaml, creates the output directories and summarises what
steps 2 and 3 will do.
"""

import sys
from pathlib import Path

from prs_portability.config import load_config

CONFIG_PATH = "config.yaml"


def main():
    """Run Step 1: validate config.yaml."""
    print("=" * 60)
    print("Step 1: Check Configuration")
    print("=" * 60)

    if not Path(CONFIG_PATH).exists():
        print(f"✗ {CONFIG_PATH} not found in {Path.cwd()}")
        print("  Copy the repository's config.yaml here and edit the data section.")
        return 1

    try:
        config = load_config(CONFIG_PATH)
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}")
        return 1

    print(f"✓ {CONFIG_PATH} is valid "
          f"({config.get('project.name')} {config.get('project.version')})")

    print("\nOutput directories (created if missing):")
    for key in config.OUTPUT_DIRS:
        print(f"  {key}: {config.get(f'paths.{key}')}")

    scores_file = Path(config.get('data.scores_file', ''))
    print("\nScore table:")
    print(f"  {scores_file} ({'present' if scores_file.exists() else 'missing'})")
    if not scores_file.exists():
        if config.get('data.simulate', False):
            print("  A synthetic cohort will be simulated in Step 3.")
        elif not config.get('derivation.enabled', False):
            print("✗ No score table and neither simulation nor derivation is enabled")
            return 1
    print(f"  Scores: {', '.join(config.score_cols) or 'PGS1 (simulated)'}")
    print(f"  Ancestry: {config.get('data.ancestry_col')}, "
          f"outcome: {config.get('data.outcome_col')}")
    print(f"  Calibration PCs: {', '.join(config.pc_cols)}")
    print(f"  Covariates: {', '.join(config.covariates) or 'none'}")

    if config.get('derivation.enabled', False):
        print("\nStep 2 will build C+T scores:")
        print(f"  r² < {config.get('derivation.clump_r2', 0.1)} "
              f"within {config.get('derivation.clump_kb', 250)} kb")
        print(f"  p-value thresholds: {config.get('derivation.p_thresholds')}")
    else:
        print("\nStep 2 (score derivation) is disabled.")

    print(f"\nStep 3: calibration {'on' if config.get('calibration.enabled', True) else 'off'}, "
          f"groups need {config.get('evaluation.min_cases', 5)} cases and controls")

    print("\n" + "=" * 60)
    print("Step 1 Complete")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
