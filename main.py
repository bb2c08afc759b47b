"""
Question Bank Build: Main Entry Point
======================================
Runs the extraction once against the fixed assets directory and writes
data/questions.json.

Usage:
    python main.py
"""

import logging
import sys

from exambank.engine import BankEngine, PipelineConfig

# Routed through the package handler the engine installs
logger = logging.getLogger("exambank.main")


def main():
    try:
        report = BankEngine(PipelineConfig()).run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info(
        f"Total valid unique questions: {report.total_questions}, "
        f"saved to {report.output_file}"
    )


if __name__ == "__main__":
    main()
