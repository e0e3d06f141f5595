# clipcapture/capture/result.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from clipcapture.utils.logger import CaptureLogger


@dataclass(frozen=True)
class CaptureRequest:
    image_path: str          # where the helper should write the image
    logger: CaptureLogger


@dataclass(frozen=True)
class CaptureResult:
    """
    Outcome of one clipboard capture.
    `image_path` is set only on success and may differ from the requested
    path when the helper picked another extension.
    """
    success: bool
    image_path: Optional[str] = None
    no_image_in_clipboard: bool = False
    script_output: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, *lines: str, no_image_in_clipboard: bool = False) -> "CaptureResult":
        return cls(success=False, no_image_in_clipboard=no_image_in_clipboard, script_output=list(lines))
