# clipcapture/capture/linux.py
from __future__ import annotations

"""Linux clipboard capture
-------------------------
Runs the bundled helper script to save the clipboard image to a file and
turns its exit status and output markers into a CaptureResult. Exit, spawn
error and timeout race to settle a session; only the first one counts.
"""

import asyncio
import codecs
import contextlib
import os
import signal
from pathlib import Path
from typing import Callable, List, Optional

from clipcapture.capture.result import CaptureRequest, CaptureResult
from clipcapture.utils import lifecycle
from clipcapture.utils.files import ensure_file_exists_or_raise
from clipcapture.utils.logger import CaptureLogger
from clipcapture.utils.timing import measure


PACKAGE_DIR = Path(__file__).resolve().parent.parent
HELPER_SCRIPT = PACKAGE_DIR / "res" / "linux.sh"
SHELL = "sh"
SCRIPT_TIMEOUT_S = 10.0
REAP_TIMEOUT_S = 1.0
DRAIN_TIMEOUT_S = 0.5
READ_CHUNK = 4096
STREAM_LIMIT = 2 ** 16

# Helper output markers; spelling must match the script exactly
IMAGE_WRITTEN_MARKER = "image writen to:"
NO_WL_PASTE_MARKER = "error: no wl-paste found"
NO_IMAGE_MARKER = "warning: no image in clipboard"

TIMEOUT_LINE = "error: script timeout"
WL_PASTE_MISSING_MESSAGE = 'You need to install "wl-paste" (part of wl-clipboard package) first.'


# ---------- Output parsing ----------

def output_lines(text: str) -> List[str]:
    """Non-empty, stripped lines of `text`, in order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_written_path(lines: List[str], fallback: str) -> str:
    """Path announced by the first marker line, else `fallback`."""
    for line in lines:
        if line.startswith(IMAGE_WRITTEN_MARKER):
            return line[len(IMAGE_WRITTEN_MARKER):].strip() or fallback
    return fallback


def _signal_name(returncode: Optional[int]) -> Optional[str]:
    if returncode is None or returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return str(-returncode)


class _HelperProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that also reports process exit, before the pipes close."""

    def __init__(self, limit: int, loop: asyncio.AbstractEventLoop):
        super().__init__(limit=limit, loop=loop)
        self.exited: asyncio.Future[None] = loop.create_future()

    def process_exited(self) -> None:
        super().process_exited()
        if not self.exited.done():
            self.exited.set_result(None)


# ---------- Session ----------

class ScriptSession:
    """
    State of one in-flight helper run.

    Events arrive through `feed_stdout`, `feed_stderr`, `on_error`,
    `on_exit` and `on_timeout`; `run()` wires them to a real process.
    The first of on_error/on_exit/on_timeout resolves the session, later
    ones are ignored.
    """

    def __init__(
        self,
        script_path: Path,
        image_path: str,
        logger: CaptureLogger,
        timeout: float = SCRIPT_TIMEOUT_S,
    ):
        self.script_path = script_path
        self.image_path = image_path
        self.logger = logger
        self.timeout = timeout
        self.process: Optional[asyncio.subprocess.Process] = None
        self._transport: Optional[asyncio.SubprocessTransport] = None
        self._exited: Optional[asyncio.Future[None]] = None

        self._stdout_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stdout_parts: List[str] = []
        self._stderr_parts: List[str] = []

        self._resolved = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._done: asyncio.Future[CaptureResult] = asyncio.get_running_loop().create_future()

    # ----------- State -----------

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def stdout_text(self) -> str:
        return "".join(self._stdout_parts)

    @property
    def stderr_text(self) -> str:
        return "".join(self._stderr_parts)

    def result(self) -> CaptureResult:
        """The settled result; raises InvalidStateError while still pending."""
        return self._done.result()

    def add_done_callback(self, fn: Callable[[CaptureResult], None]) -> None:
        """Call `fn` with the result once the session settles."""
        self._done.add_done_callback(lambda fut: fn(fut.result()))

    # ----------- Events -----------

    def feed_stdout(self, chunk: bytes) -> None:
        self._stdout_parts.append(self._stdout_decoder.decode(chunk))

    def feed_stderr(self, chunk: bytes) -> None:
        text = self._stderr_decoder.decode(chunk)
        self._stderr_parts.append(text)
        if text:
            self.logger.log(f"Helper script stderr: {text}")

    def on_error(self, exc: BaseException) -> None:
        self.logger.log(f"Helper script error: {exc}")
        if not self._claim():
            return
        self.cleanup()
        self._settle(CaptureResult.failure(f"error: {exc}"))

    def on_timeout(self) -> None:
        if not self._claim():
            return
        self.logger.log("Helper script timeout, killing process")
        self.cleanup()
        self._settle(CaptureResult.failure(TIMEOUT_LINE))

    async def on_exit(self, returncode: Optional[int]) -> None:
        code = returncode if returncode is None or returncode >= 0 else None
        self.logger.log(
            f'scriptPath: "{self.script_path}" exit code: {code} signal: {_signal_name(returncode)}'
        )
        if not self._claim():
            return
        self._cancel_timer()
        self._flush_decoders()
        try:
            result = await self._exit_result(code)
        except Exception as e:
            self.logger.log(f"Failed to interpret helper output: {e!r}")
            result = CaptureResult.failure(f"error: {e}")
        self._settle(result)

    # ----------- Cleanup (idempotent) -----------

    def kill(self) -> None:
        """Send SIGTERM to the helper if it is still running."""
        proc = self.process
        if proc is None or proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()

    def cleanup(self) -> None:
        self._cancel_timer()
        self.kill()

    # ----------- Driver -----------

    async def run(self) -> CaptureResult:
        """Spawn the helper, wire its events into this session and wait for the result."""
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _HelperProtocol(STREAM_LIMIT, loop),
                SHELL,
                str(self.script_path),
                self.image_path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            self._transport = transport
            self._exited = protocol.exited
            self.process = asyncio.subprocess.Process(transport, protocol, loop)
        except OSError as e:
            self.on_error(e)
            return await self._done

        with lifecycle.on_host_exit(self.cleanup):
            self._timer = loop.call_later(self.timeout, self.on_timeout)
            readers = [
                asyncio.create_task(self._pump(self.process.stdout, self.feed_stdout)),
                asyncio.create_task(self._pump(self.process.stderr, self.feed_stderr)),
            ]
            watcher = asyncio.create_task(self._watch_exit(readers))
            try:
                return await self._done
            finally:
                self.cleanup()
                for task in (*readers, watcher):
                    task.cancel()
                await asyncio.gather(*readers, watcher, return_exceptions=True)
                await self._reap()
                # Pipes may still be held open by something the helper left running
                self._transport.close()

    # ----------- Internals -----------

    def _claim(self) -> bool:
        if self._resolved:
            return False
        self._resolved = True
        return True

    def _settle(self, result: CaptureResult) -> None:
        if not self._done.done():
            self._done.set_result(result)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _flush_decoders(self) -> None:
        self._stdout_parts.append(self._stdout_decoder.decode(b"", final=True))
        self._stderr_parts.append(self._stderr_decoder.decode(b"", final=True))

    async def _exit_result(self, code: Optional[int]) -> CaptureResult:
        stdout, stderr = self.stdout_text, self.stderr_text

        if code == 0:
            lines = output_lines(stdout)
            return CaptureResult(
                success=True,
                image_path=parse_written_path(lines, self.image_path),
                no_image_in_clipboard=False,
                script_output=lines,
            )

        combined = stdout + stderr
        if NO_WL_PASTE_MARKER in combined:
            try:
                await self.logger.show_information_message(WL_PASTE_MISSING_MESSAGE)
            except Exception as e:
                self.logger.log(f"Could not show information message: {e!r}")

        return CaptureResult(
            success=False,
            no_image_in_clipboard=NO_IMAGE_MARKER in combined,
            script_output=output_lines(stdout) + output_lines(stderr),
        )

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, sink: Callable[[bytes], None]) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK)
            if not chunk:
                return
            sink(chunk)

    async def _watch_exit(self, readers: List[asyncio.Task]) -> None:
        # Exit, not pipe close, settles the session; pipes get a short drain
        try:
            await self._exited
            returncode = self.process.returncode
            await asyncio.wait(readers, timeout=DRAIN_TIMEOUT_S)
        except Exception as e:
            self.on_error(e)
            return
        await self.on_exit(returncode)

    async def _reap(self) -> None:
        if self._exited is None or self._exited.done():
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(asyncio.shield(self._exited), REAP_TIMEOUT_S)


# ---------- Public API ----------

@measure("clipboard_capture", level="DEBUG")
async def linux_create_image_with_clipboard(
    image_path: os.PathLike | str,
    logger: CaptureLogger,
    *,
    timeout: float = SCRIPT_TIMEOUT_S,
) -> CaptureResult:
    """
    Save the clipboard image to `image_path` using the bundled helper.

    Raises HelperScriptNotFoundError, before anything is spawned, if the
    helper is missing. Every other failure is reported in the result.
    """
    script_path = ensure_file_exists_or_raise(HELPER_SCRIPT, logger)
    target = os.fspath(image_path)

    try:
        session = ScriptSession(script_path, target, logger, timeout=timeout)
        return await session.run()
    except Exception as e:
        logger.log(f"Clipboard capture failed: {e!r}")
        return CaptureResult.failure(f"error: {e}")


async def capture(request: CaptureRequest, *, timeout: float = SCRIPT_TIMEOUT_S) -> CaptureResult:
    """Run `linux_create_image_with_clipboard` for a CaptureRequest."""
    return await linux_create_image_with_clipboard(request.image_path, request.logger, timeout=timeout)
