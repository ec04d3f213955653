"""
Step 3: Evaluate Polygenic Scores Across Ancestry Groups
Calibrates scores against genetic PCs and measures per-group performance
and cross-ancestry heterogeneity (Cochran's Q, I²).
"""

import logging
import sys

from prs_portability.config import load_config
from prs_portability.evaluate_scores import main as evaluate_main


def main():
    """Run Step 3: Evaluate scores."""
    print("=" * 60)
    print("Step 3: Evaluate Polygenic Scores")
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

    return evaluate_main()


if __name__ == "__main__":
    sys.exit(main())
