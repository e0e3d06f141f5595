# clipcapture/capture/report.py
from __future__ import annotations

"""Capture report
----------------
Serializable summary of one capture for the CLI: the result fields plus the
requested path, image dimensions and timing.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from clipcapture.capture.result import CaptureResult


class CaptureReport(BaseModel):
    success: bool
    requested_path: str
    image_path: Optional[str] = None
    no_image_in_clipboard: bool = False
    script_output: List[str] = Field(default_factory=list)
    width: int = 0
    height: int = 0
    elapsed_ms: int = Field(default=0, ge=0)
    ts: str


def image_size(path: Path) -> Tuple[int, int]:
    """(width, height) of the image at `path`, or (0, 0) if it can't be read."""
    try:
        with Image.open(path) as im:
            return im.width, im.height
    except (OSError, UnidentifiedImageError):
        return (0, 0)


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def build_report(requested_path: str, result: CaptureResult, elapsed_ms: int = 0) -> CaptureReport:
    w, h = (0, 0)
    if result.success and result.image_path:
        w, h = image_size(Path(result.image_path))
    return CaptureReport(
        success=result.success,
        requested_path=requested_path,
        image_path=result.image_path,
        no_image_in_clipboard=result.no_image_in_clipboard,
        script_output=list(result.script_output),
        width=w,
        height=h,
        elapsed_ms=elapsed_ms,
        ts=_ts(),
    )
