# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/progress.py
from __future__ import annotations

import sys
from typing import Any, Optional, Sequence, TextIO

from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


class EngineProgress:
    """
    Renders libguestfs progress events (zero_device, zero_free_space, ...).

    Interactive: a rich progress bar per long-running call.
    Machine-readable: one "position/total" line per event on stdout.
    """

    def __init__(
        self,
        *,
        machine_readable: bool = False,
        stream: Optional[TextIO] = None,
        description: str = "Working",
    ):
        self.machine_readable = bool(machine_readable)
        self._stream = stream
        self._description = description
        self._progress: Optional[Progress] = None
        self._task: Any = None

    def __call__(self, event: int, event_handle: int, buf: Any, array: Sequence[int]) -> None:
        # array = [proc_nr, serial, position, total]
        if len(array) < 4:
            return
        self.update(int(array[2]), int(array[3]))

    def update(self, position: int, total: int) -> None:
        if total <= 0:
            return
        if self.machine_readable:
            out = self._stream if self._stream is not None else sys.stdout
            print(f"{position}/{total}", file=out, flush=True)
            return

        if self._progress is None:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                TimeRemainingColumn(),
            )
            self._progress.start()
            self._task = self._progress.add_task(self._description, total=total)

        self._progress.update(self._task, completed=position, total=total)
        if position >= total:
            self.close()

    def close(self) -> None:
        if self._progress is not None:
            progress, self._progress = self._progress, None
            progress.stop()
