# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/tmpspace.py
from __future__ import annotations

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TextIO

from ..core.exceptions import TmpSpaceError
from ..core.utils import U


class TmpdirPolicy(str, Enum):
    IGNORE = "ignore"
    CONTINUE = "continue"
    WARN = "warn"
    FAIL = "fail"


_WARNING = """
WARNING: There may not be enough free space on {tmpdir}.
You may need to set TMPDIR to point to a directory with more free space.

Max needed: {needed}.  Free: {free}.  May need another {extra}.

Note this is an overestimate.  If the guest disk is full of data
then not as much free space would be required.

You can ignore this warning or change it to a hard failure using the
--check-tmpdir=(ignore|continue|warn|fail) option.
"""


def _read_line() -> str:
    return sys.stdin.readline()


class TempSpaceGuard:
    """
    Compares the source's virtual size with the free space of the scratch
    directory. The overlay only grows by what the sweep actually writes,
    so a shortfall here is a warning about the worst case, not a certainty.
    """

    def __init__(
        self,
        logger: logging.Logger,
        tmpdir: Path,
        policy: TmpdirPolicy = TmpdirPolicy.CONTINUE,
        *,
        free_space: Callable[[Path], int] = U.free_space,
        confirm: Callable[[], str] = _read_line,
        stream: Optional[TextIO] = None,
    ):
        self.logger = logger
        self.tmpdir = Path(tmpdir)
        self.policy = TmpdirPolicy(policy)
        self._free_space = free_space
        self._confirm = confirm
        self._stream = stream

    def _err(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def shortfall(self, virtual_size: int) -> int:
        """Bytes the scratch directory may be missing (<= 0 means enough)."""
        return int(virtual_size) - int(self._free_space(self.tmpdir))

    def _print_warning(self, virtual_size: int) -> bool:
        free = int(self._free_space(self.tmpdir))
        extra = int(virtual_size) - free
        if extra <= 0:
            self.logger.debug("Scratch space OK: %s free on %s", U.human_bytes(free), self.tmpdir)
            return False
        print(
            _WARNING.format(
                tmpdir=self.tmpdir,
                needed=U.human_bytes(virtual_size),
                free=U.human_bytes(free),
                extra=U.human_bytes(extra),
            ),
            file=self._err(),
            flush=True,
        )
        return True

    def check(self, virtual_size: int) -> bool:
        """
        Apply the policy. Returns True if the warning was shown.
        Raises TmpSpaceError (exit status 2) under the fail policy.
        """
        if self.policy is TmpdirPolicy.IGNORE:
            return False

        warned = self._print_warning(virtual_size)
        if not warned:
            return False

        if self.policy is TmpdirPolicy.WARN:
            print("Press RETURN to continue or ^C to quit.", file=self._err(), flush=True)
            self._confirm()
        elif self.policy is TmpdirPolicy.FAIL:
            print("Exiting because --check-tmpdir=fail was set.", file=self._err(), flush=True)
            raise TmpSpaceError(
                msg=f"not enough free space on {self.tmpdir} (--check-tmpdir=fail)",
                context={"tmpdir": str(self.tmpdir), "virtual_size": int(virtual_size)},
            )
        return True
