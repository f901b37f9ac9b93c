# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/cancellation.py
from __future__ import annotations

import logging
import signal
import sys
import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

CancelAction = Callable[[], None]


class Phase(str, Enum):
    STARTUP = "startup"      # no temp resources yet
    OVERLAY = "overlay"      # overlay exists, deletion registered at exit
    SESSION = "session"      # libguestfs appliance running
    CONVERT = "convert"      # appliance gone, qemu-img may be running


class CancellationController:
    """
    Owns the one SIGINT cleanup action of a run.

    Every phase's reaction ends in exit(1); atexit then removes the
    overlay. Only the SESSION phase adds a step before exiting: asking
    libguestfs to cancel its current call so the appliance is not torn
    down mid-operation.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        exit_fn: Callable[[int], Any] = sys.exit,
    ):
        self.logger = logger or logging.getLogger("vmsparsify")
        self._exit = exit_fn
        # (phase, action) is swapped as a single tuple
        self._current: Tuple[Phase, Optional[CancelAction]] = (Phase.STARTUP, None)
        self._previous_handler: Any = None
        self._installed = False

    @property
    def phase(self) -> Phase:
        return self._current[0]

    @property
    def action(self) -> Optional[CancelAction]:
        return self._current[1]

    def enter(self, phase: Phase, cancel: Optional[CancelAction] = None) -> None:
        if phase is Phase.SESSION and cancel is None:
            raise ValueError("the session phase needs a cancel action")
        if phase is not Phase.SESSION:
            cancel = None
        self._current = (phase, cancel)
        self.logger.debug("Interrupt handling: phase=%s", phase.value)

    def install(self, signum: int = signal.SIGINT) -> None:
        if self._installed:
            return
        self._previous_handler = signal.signal(signum, self.handle)
        self._signum = signum
        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        signal.signal(self._signum, self._previous_handler)
        self._installed = False

    def handle(self, signum: int = signal.SIGINT, frame: Any = None) -> None:
        phase, action = self._current
        self.logger.warning("Interrupted during %s phase, exiting.", phase.value)
        if action is not None:
            try:
                action()
            finally:
                self._exit(1)
            return
        self._exit(1)


def run_interruptible(fn: Callable[[], Any], *, poll_s: float = 0.1, name: str = "vmsparsify-session") -> Any:
    """
    Run `fn` on a daemon worker thread while the main thread waits in
    short joins.

    libguestfs calls block inside C code and Python only runs signal
    handlers on the main thread between bytecodes. With the engine on the
    worker, SIGINT is handled right away and user_cancel() (thread-safe
    in libguestfs) reaches the call that is still running.

    Exceptions raised by `fn` are re-raised here.
    """
    box: Dict[str, Any] = {}

    def _runner() -> None:
        try:
            box["result"] = fn()
        except BaseException as e:  # re-raised on the calling thread
            box["error"] = e

    t = threading.Thread(target=_runner, name=name, daemon=True)
    t.start()
    while t.is_alive():
        t.join(poll_s)

    if "error" in box:
        raise box["error"]
    return box.get("result")
