"""
Remote Bank Download
====================
Fetches the shared question-bank spreadsheet export into the assets
directory so the next build picks it up.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import requests

from .storage import BANK_DOWNLOAD_FILE

logger = logging.getLogger(__name__)

BANK_EXPORT_URL = (
    "https://docs.google.com/spreadsheets/d/"
    "14I2_kYlYoBqEWf04kgGp68iCj6Cj1F4GYzzLunNRSlk/export?format=xlsx"
)


def download_bank(
    url: str = BANK_EXPORT_URL,
    dest: Union[str, Path] = BANK_DOWNLOAD_FILE,
    timeout: int = 60,
) -> Path:
    """
    Download a spreadsheet export to `dest`.

    Raises:
        RuntimeError: On connection failure or a non-2xx response.
    """
    dest = Path(dest)
    logger.info(f"Downloading from {url}...")

    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise RuntimeError(
            f"Failed to download: {resp.status_code} {resp.reason}"
        ) from e
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Failed to download: {e}") from e

    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(resp.content)
    logger.info(f"Saved {len(resp.content)} bytes to {dest}")
    return dest
