# clipcapture/utils/files.py
from __future__ import annotations

import os
from pathlib import Path

from clipcapture.utils.logger import CaptureLogger


class HelperScriptNotFoundError(FileNotFoundError):
    """A file the capture depends on is missing; raised before anything is spawned."""


def ensure_file_exists_or_raise(path: os.PathLike | str, logger: CaptureLogger) -> Path:
    """
    Return `path` as a Path if it names an existing regular file.
    Otherwise log the problem through `logger` and raise HelperScriptNotFoundError.
    """
    p = Path(path)
    if p.is_file():
        return p
    logger.log(f"file not found: {p}")
    raise HelperScriptNotFoundError(2, "No such file", str(p))
