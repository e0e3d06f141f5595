import textwrap
from pathlib import Path

import pytest

from clipcapture.capture import linux
from clipcapture.utils.config import get_settings


SETTINGS_ENV = (
    "CAPTURE_TIMEOUT_S",
    "OUTPUT_DIR",
    "IMAGE_BASENAME",
    "LOG_LEVEL",
    "LOG_TO_FILE",
    "LOG_FILE",
    "COLORIZED_OUTPUT",
)


class RecordingLogger:
    """CaptureLogger that keeps everything it is given."""

    def __init__(self):
        self.lines = []
        self.messages = []

    def log(self, text):
        self.lines.append(text)

    async def show_information_message(self, text):
        self.messages.append(text)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch):
    # Relative defaults and .env lookup resolve against the test's tmp dir
    monkeypatch.chdir(tmp_path)
    for key in SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def recorder() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def helper_script(tmp_path: Path, monkeypatch):
    """Write a helper script body to tmp_path and make the capture use it."""

    def _write(body: str) -> Path:
        p = tmp_path / "helper.sh"
        p.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip("\n"), encoding="utf-8")
        monkeypatch.setattr(linux, "HELPER_SCRIPT", p)
        return p

    return _write
