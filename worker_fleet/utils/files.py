"""
Flat-file list readers for wallets and proxies.
"""

from pathlib import Path
from typing import List, Union

import structlog


logger = structlog.get_logger(__name__)


def read_lines(path: Union[str, Path]) -> List[str]:
    """
    Read a newline-delimited list, dropping blank lines.

    A missing or unreadable file yields an empty list.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Error reading file: {e}", path=str(path))
        return []

    return [line.strip() for line in text.splitlines() if line.strip()]
