import asyncio
import os
import time
from pathlib import Path

import pytest

from clipcapture.capture import CaptureRequest, CaptureResult, capture, linux
from clipcapture.capture.linux import WL_PASTE_MISSING_MESSAGE, linux_create_image_with_clipboard
from clipcapture.utils import lifecycle
from clipcapture.utils.files import HelperScriptNotFoundError


def run_capture(image_path, logger, **kwargs) -> CaptureResult:
    return asyncio.run(linux_create_image_with_clipboard(image_path, logger, **kwargs))


def test_success_uses_path_from_marker_line(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo "reading clipboard"
        echo "image writen to:   /tmp/x.png  "
        """
    )
    result = run_capture(str(tmp_path / "requested.png"), recorder)

    assert result.success is True
    assert result.image_path == "/tmp/x.png"
    assert result.no_image_in_clipboard is False
    assert result.script_output == ["reading clipboard", "image writen to:   /tmp/x.png"]


def test_success_without_marker_falls_back_to_requested_path(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo "args=$#"
        echo "target=$1"
        """
    )
    requested = str(tmp_path / "requested.png")
    result = run_capture(requested, recorder)

    assert result.success is True
    assert result.image_path == requested
    assert result.script_output == ["args=1", f"target={requested}"]


def test_correctly_spelled_marker_is_not_recognized(helper_script, recorder, tmp_path: Path):
    helper_script('echo "image written to: /tmp/other.png"\n')
    requested = str(tmp_path / "requested.png")

    assert run_capture(requested, recorder).image_path == requested


def test_no_image_in_clipboard(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo "warning: no image in clipboard"
        echo "details" >&2
        exit 1
        """
    )
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.success is False
    assert result.image_path is None
    assert result.no_image_in_clipboard is True
    assert result.script_output == ["warning: no image in clipboard", "details"]
    assert recorder.messages == []
    assert any(line.startswith("Helper script stderr: details") for line in recorder.lines)


def test_missing_wl_paste_notifies_user_once(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo "error: no wl-paste found"
        exit 1
        """
    )
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.success is False
    assert result.no_image_in_clipboard is False
    assert recorder.messages == [WL_PASTE_MISSING_MESSAGE]


def test_marker_on_stderr_is_detected(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo "warning: no image in clipboard" >&2
        exit 4
        """
    )
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.no_image_in_clipboard is True


def test_failure_output_lists_stdout_before_stderr(helper_script, recorder, tmp_path: Path):
    helper_script(
        """
        echo e1 >&2
        echo o1
        echo e2 >&2
        echo o2
        exit 2
        """
    )
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.success is False
    assert result.script_output == ["o1", "o2", "e1", "e2"]


def test_blank_lines_are_dropped(helper_script, recorder, tmp_path: Path):
    helper_script("printf 'a\\n\\n   \\n\\tb\\n\\n'\n")
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.script_output == ["a", "b"]
    assert all(line.strip() for line in result.script_output)


def test_exit_code_is_logged(helper_script, recorder, tmp_path: Path):
    script = helper_script("exit 5\n")
    run_capture(str(tmp_path / "x.png"), recorder)

    assert f'scriptPath: "{script}" exit code: 5 signal: None' in recorder.lines


def test_helper_killed_by_signal_is_a_failure(helper_script, recorder, tmp_path: Path):
    helper_script("kill -TERM $$\n")
    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.success is False
    assert any("signal: SIGTERM" in line for line in recorder.lines)


def test_timeout_kills_helper(helper_script, recorder, tmp_path: Path):
    pid_file = tmp_path / "helper.pid"
    helper_script(
        """
        echo $$ > "$1"
        exec sleep 30
        """
    )
    result = run_capture(str(pid_file), recorder, timeout=0.5)

    assert result == CaptureResult(
        success=False,
        no_image_in_clipboard=False,
        script_output=["error: script timeout"],
    )
    assert "Helper script timeout, killing process" in recorder.lines
    pid = int(pid_file.read_text().strip())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.filterwarnings("error::pytest.PytestUnraisableExceptionWarning")
def test_background_child_holding_stdout_does_not_delay_exit(helper_script, recorder, tmp_path: Path):
    script = helper_script(
        """
        sleep 3 &
        echo "image writen to: $1"
        exit 0
        """
    )
    requested = str(tmp_path / "x.png")

    started = time.monotonic()
    result = run_capture(requested, recorder, timeout=2.5)
    elapsed = time.monotonic() - started

    assert result.success is True
    assert result.image_path == requested
    assert elapsed < 2.0
    assert f'scriptPath: "{script}" exit code: 0 signal: None' in recorder.lines
    assert "Helper script timeout, killing process" not in recorder.lines


def test_spawn_error_is_reported_in_result(helper_script, recorder, tmp_path: Path, monkeypatch):
    helper_script("exit 0\n")
    monkeypatch.setattr(linux, "SHELL", str(tmp_path / "no-such-shell"))

    result = run_capture(str(tmp_path / "x.png"), recorder)

    assert result.success is False
    assert result.no_image_in_clipboard is False
    assert len(result.script_output) == 1
    assert result.script_output[0].startswith("error: ")
    assert any(line.startswith("Helper script error: ") for line in recorder.lines)


def test_missing_helper_raises_before_spawning(recorder, tmp_path: Path, monkeypatch):
    monkeypatch.setattr(linux, "HELPER_SCRIPT", tmp_path / "missing.sh")

    class NoSession:
        def __init__(self, *args, **kwargs):
            raise AssertionError("a session was started")

    monkeypatch.setattr(linux, "ScriptSession", NoSession)

    with pytest.raises(HelperScriptNotFoundError):
        run_capture(str(tmp_path / "x.png"), recorder)
    assert recorder.lines == [f"file not found: {tmp_path / 'missing.sh'}"]


def test_host_exit_hooks_are_released(helper_script, recorder, tmp_path: Path):
    helper_script('echo "image writen to: /tmp/x.png"\n')
    run_capture(str(tmp_path / "x.png"), recorder)
    run_capture(str(tmp_path / "y.png"), recorder)

    assert lifecycle.active_count() == 0


def test_overlapping_captures_are_independent(helper_script, recorder, tmp_path: Path):
    helper_script('sleep 0.2; echo "image writen to: $1"\n')

    async def both():
        return await asyncio.gather(
            linux_create_image_with_clipboard(str(tmp_path / "a.png"), recorder),
            linux_create_image_with_clipboard(str(tmp_path / "b.png"), recorder),
        )

    first, second = asyncio.run(both())
    assert first.image_path == str(tmp_path / "a.png")
    assert second.image_path == str(tmp_path / "b.png")
    assert lifecycle.active_count() == 0


def test_capture_request_wrapper(helper_script, recorder, tmp_path: Path):
    helper_script('echo "image writen to: $1.jpg"\n')
    request = CaptureRequest(image_path=str(tmp_path / "x"), logger=recorder)

    result = asyncio.run(capture(request))
    assert result.image_path == str(tmp_path / "x") + ".jpg"
