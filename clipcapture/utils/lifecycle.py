# clipcapture/utils/lifecycle.py
from __future__ import annotations

"""Host-exit hooks
-----------------
Runs cleanup callbacks (e.g. killing a helper process) if the host process
exits or is interrupted while work is in flight. Callbacks are registered for
a scope only: the atexit hook and the chained SIGINT/SIGTERM handlers exist
while at least one scope is open and are removed when the last one closes.
"""

import atexit
import itertools
import os
import signal
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator

from clipcapture.utils.logger import get_logger

_HOST_SIGNALS = (signal.SIGINT, signal.SIGTERM)

_lock = threading.RLock()
_ids = itertools.count(1)
_callbacks: Dict[int, Callable[[], None]] = {}
_previous_handlers: Dict[int, Any] = {}


def _run_callbacks() -> None:
    with _lock:
        pending = list(_callbacks.values())
    log = get_logger(__name__)
    for cb in pending:
        try:
            cb()
        except Exception as e:
            log.debug(f"Host-exit callback failed: {e!r}")


def _handle_signal(signum: int, frame) -> None:
    _run_callbacks()
    previous = _previous_handlers.get(signum, signal.SIG_DFL)
    if callable(previous):
        previous(signum, frame)
    elif previous is None or previous == signal.SIG_DFL:
        # Re-deliver with the default disposition so the host still terminates
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)


def _install() -> None:
    atexit.register(_run_callbacks)
    # signal.signal only works from the main thread
    if threading.current_thread() is not threading.main_thread():
        return
    for sig in _HOST_SIGNALS:
        current = signal.getsignal(sig)
        # Still ours when the last scope closed off the main thread; keep the saved handler
        if current is _handle_signal:
            continue
        _previous_handlers[sig] = current
        signal.signal(sig, _handle_signal)


def _uninstall() -> None:
    atexit.unregister(_run_callbacks)
    if threading.current_thread() is not threading.main_thread():
        return
    for sig, previous in list(_previous_handlers.items()):
        # Leave handlers alone if someone replaced ours in the meantime
        if signal.getsignal(sig) is _handle_signal:
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        _previous_handlers.pop(sig, None)


def register(callback: Callable[[], None]) -> int:
    """Register `callback` to run on host exit. Returns a token for `unregister`."""
    with _lock:
        token = next(_ids)
        if not _callbacks:
            _install()
        _callbacks[token] = callback
        return token


def unregister(token: int) -> None:
    """Remove a callback registered with `register` (idempotent)."""
    with _lock:
        if _callbacks.pop(token, None) is None:
            return
        if not _callbacks:
            _uninstall()


def active_count() -> int:
    """Number of callbacks currently registered."""
    with _lock:
        return len(_callbacks)


@contextmanager
def on_host_exit(callback: Callable[[], None]) -> Iterator[int]:
    """Keep `callback` registered for the duration of the with-block."""
    token = register(callback)
    try:
        yield token
    finally:
        unregister(token)
