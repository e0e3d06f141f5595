"""
Capture package for clipboard image capture.
Runs the helper script, parses its output and builds reports.
"""

from .result import CaptureRequest, CaptureResult
from .linux import capture, linux_create_image_with_clipboard

__all__ = [
    "CaptureRequest",
    "CaptureResult",
    "capture",
    "linux_create_image_with_clipboard",
]
