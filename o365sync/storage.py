import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List

from .models import RunReport

logger = logging.getLogger(__name__)


def save_run_report(data_dir: Path, report: RunReport) -> Path:
    """
    Persist a run report to JSON for later review.

    File naming convention: run_report_<kind>_<timestamp>.json
    """
    data_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d__%H_%M_%S_%f")
    file_path = data_dir / f"run_report_{report.kind.value}_{timestamp}.json"
    logger.info("Saving run report to %s", file_path)

    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, sort_keys=True)

    return file_path


def load_run_reports(data_dir: Path) -> List[dict]:
    """
    Load all stored run reports, sorted by file name (kind, then time).

    Files that cannot be parsed are logged and skipped.
    """
    reports: List[dict] = []
    if not data_dir.exists():
        logger.warning("Data directory %s does not exist when loading run reports.", data_dir)
        return reports

    for file_path in sorted(data_dir.glob("run_report_*.json")):
        with open(file_path, "r", encoding="utf-8") as fh:
            try:
                reports.append(json.load(fh))
            except json.JSONDecodeError as exc:
                logger.error("Failed to parse %s: %s", file_path, exc)

    return reports
