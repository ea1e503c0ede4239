"""
Reporting and export utilities.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pandas as pd

from .runner import RunReport


logger = logging.getLogger(__name__)


def print_summary(report: RunReport, perl_version: str) -> None:
    logger.info("=" * 60)
    logger.info("BUILD RESULTS")
    logger.info("=" * 60)
    logger.info("Target perl: %s", perl_version)
    logger.info("Requested: %s", len(report.requested))
    logger.info("Built: %s", len(report.built))
    logger.info("Already in repository: %s", len(report.skipped))
    logger.info("Build attempts: %s", report.attempts)
    logger.info("Elapsed: %.1f s", report.elapsed_seconds)
    logger.info("-" * 60)
    if report.failed:
        logger.error("Failed (%d): %s", len(report.failed), ", ".join(report.failed))
    else:
        logger.info("No failures")
    logger.info("=" * 60)


def save_results_json(report: RunReport, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / "build_results.json"
    with open(results_file, 'w') as f:
        json.dump(report.to_dict(), f, indent=2, default=str)
    return results_file


def export_status_csv(report: RunReport, output_dir: Path) -> Path:
    """One row per distribution the run touched, in first-seen order."""
    output_dir.mkdir(parents=True, exist_ok=True)
    status_file = output_dir / "build_status.csv"
    names = list(dict.fromkeys(report.requested + report.built + report.skipped + report.failed))
    df = pd.DataFrame(
        [
            {
                "distribution": name,
                "requested": name in report.requested,
                "status": report.status_of(name),
            }
            for name in names
        ],
        columns=["distribution", "requested", "status"],
    )
    df.to_csv(status_file, index=False)
    return status_file
