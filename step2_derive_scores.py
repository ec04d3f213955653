"""
Step 2: Derive Polygenic Scores (Clumping & Thresholding)
Builds one score per p-value threshold from GWAS summary statistics.
"""

import logging
import sys

from prs_portability.config import load_config
from prs_portability.derive_scores import main as derive_main


def main():
    """Run Step 2: Derive C+T scores."""
    print("=" * 60)
    print("Step 2: Derive Polygenic Scores")
    print("=" * 60)
    print()

    try:
        config = load_config()
        print("✓ Configuration loaded")
    except Exception as e:
        print(f"✗ Error loading configuration: {e}")
        print("  Please run Step 1 first: python step1_configure.py")
        return 1

    logging.basicConfig(
        level=config.get('logging.level', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not config.get('derivation.enabled', False):
        print("Score derivation is disabled in config.yaml (derivation.enabled: false)")
        print("  Pre-computed scores in data.scores_file will be used by Step 3.")
        return 0

    return derive_main()


if __name__ == "__main__":
    sys.exit(main())
