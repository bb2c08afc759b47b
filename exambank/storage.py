"""
Filesystem Storage
==================
Default locations of source assets and the generated question bank.
All paths are relative to the project root for portability.

Directory Layout:
    assets/              # Source exam documents and spreadsheets
    data/
    └── questions.json   # Generated question bank
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# Project root: one level up from /exambank/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

ASSETS_DIR = _PROJECT_ROOT / "assets"
DATA_DIR = _PROJECT_ROOT / "data"
OUTPUT_FILE = DATA_DIR / "questions.json"
BANK_DOWNLOAD_FILE = ASSETS_DIR / "question_bank.xlsx"


def list_source_files(assets_dir: Union[str, Path]) -> list[Path]:
    """
    Regular files of the assets directory in stable (sorted) order.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    assets_dir = Path(assets_dir)
    if not assets_dir.is_dir():
        raise FileNotFoundError(f"Assets directory not found: {assets_dir}")
    return sorted(
        (p for p in assets_dir.iterdir() if p.is_file()),
        key=lambda p: p.name,
    )


def clean_assets(assets_dir: Union[str, Path] = ASSETS_DIR) -> tuple[int, int]:
    """
    Delete every file in the assets directory.
    Returns (deleted, failed). A missing directory deletes nothing.
    """
    assets_dir = Path(assets_dir)
    if not assets_dir.exists():
        logger.info(f"Assets directory does not exist: {assets_dir}")
        return 0, 0

    deleted = failed = 0
    for path in sorted(assets_dir.iterdir()):
        if not path.is_file():
            continue
        try:
            path.unlink()
            deleted += 1
            logger.info(f"Deleted {path.name}")
        except OSError as e:
            failed += 1
            logger.error(f"Failed to delete {path.name}: {e}")

    logger.info(f"Assets cleared: {deleted} deleted, {failed} failed")
    return deleted, failed
