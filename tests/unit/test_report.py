from pathlib import Path

from PIL import Image

from clipcapture.capture.report import build_report, image_size
from clipcapture.capture.result import CaptureResult


def test_report_reads_image_size(tmp_path: Path):
    img = tmp_path / "x.png"
    Image.new("RGB", (5, 4)).save(img)
    result = CaptureResult(success=True, image_path=str(img), script_output=[f"image writen to: {img}"])

    report = build_report(str(tmp_path / "requested.png"), result, elapsed_ms=12)

    assert (report.width, report.height) == (5, 4)
    assert report.image_path == str(img)
    assert report.requested_path == str(tmp_path / "requested.png")
    assert report.elapsed_ms == 12
    assert report.ts.endswith("Z")


def test_report_for_failure_has_no_size():
    result = CaptureResult.failure("warning: no image in clipboard", no_image_in_clipboard=True)
    report = build_report("/tmp/requested.png", result)

    assert report.success is False
    assert report.no_image_in_clipboard is True
    assert (report.width, report.height) == (0, 0)
    assert report.image_path is None


def test_image_size_of_non_image(tmp_path: Path):
    bogus = tmp_path / "not-an-image.png"
    bogus.write_text("hello", encoding="utf-8")
    assert image_size(bogus) == (0, 0)
    assert image_size(tmp_path / "missing.png") == (0, 0)
