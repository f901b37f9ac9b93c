# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/sweeper.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable

from ..core.exceptions import IntegrityError
from ..core.logger import Log
from .models import (
    SWAP_HEADER_SIZE,
    SWAP_SIGNATURE,
    SWAP_SIGNATURE_OFFSET,
    FilesystemEntry,
    Mounted,
)
from .session import DiskSession

SCRATCH_MOUNTPOINT = "/"


class SweepAction(str, Enum):
    IGNORED = "ignored"
    ZEROED_DEVICE = "zeroed-device"
    ZEROED_FREE_SPACE = "zeroed-free-space"
    CLEARED_SWAP = "cleared-swap"
    UNTOUCHED = "untouched"


class FilesystemSweeper:
    """
    Writes zeroes over the unused parts of every filesystem the engine
    reports, in device order:

      ignored          -> nothing at all
      in the zero list -> zero the whole device, no mount
      mountable        -> zero free space through the mount
      Linux x86 swap   -> zero the device, put the 4 KiB header back
      anything else    -> left alone

    umount_all runs after every non-ignored entry.
    """

    def __init__(self, logger: logging.Logger, session: DiskSession):
        self.logger = logger
        self.session = session

    def sweep(self, entries: Iterable[FilesystemEntry]) -> Dict[str, SweepAction]:
        report: Dict[str, SweepAction] = {}
        for fs in sorted(entries, key=lambda e: e.device):
            report[fs.device] = self.process(fs)
        return report

    def process(self, fs: FilesystemEntry) -> SweepAction:
        if fs.ignored:
            Log.trace(self.logger, "Skipping ignored filesystem %s", fs.device)
            return SweepAction.IGNORED

        action = self._process_one(fs)
        self.session.unmount_all()
        return action

    def _process_one(self, fs: FilesystemEntry) -> SweepAction:
        if fs.zero:
            Log.step(self.logger, f"Zeroing {fs.device} ...")
            self.session.zero_device(fs.device)
            return SweepAction.ZEROED_DEVICE

        mounted = self.session.mount(fs, SCRATCH_MOUNTPOINT)
        if isinstance(mounted, Mounted):
            Log.step(self.logger, f"Fill free space in {fs.device} with zero ...")
            self.session.zero_free_space(mounted.mountpoint)
            return SweepAction.ZEROED_FREE_SPACE

        if self.is_linux_x86_swap(fs.device):
            Log.step(self.logger, f"Clearing Linux swap on {fs.device} ...")
            self.clear_swap(fs.device)
            return SweepAction.CLEARED_SWAP

        self.logger.debug("Leaving %s (%s) untouched", fs.device, fs.fstype or "unknown")
        return SweepAction.UNTOUCHED

    def is_linux_x86_swap(self, device: str) -> bool:
        # Hibernated swap moves the signature, so it is not matched here either.
        sig = self.session.try_read_device(device, SWAP_SIGNATURE_OFFSET, len(SWAP_SIGNATURE))
        return sig == SWAP_SIGNATURE

    def clear_swap(self, device: str) -> None:
        """
        Zero a swap device but keep its header (label, UUID, version)
        instead of running mkswap, which could write a different layout
        from the guest's own.
        """
        header = self.session.read_device(device, 0, SWAP_HEADER_SIZE)
        self.session.zero_device(device)
        written = self.session.write_device(device, 0, header)
        if written != SWAP_HEADER_SIZE:
            raise IntegrityError(
                msg="pwrite: short write restoring swap partition header",
                context={"device": device, "written": written, "expected": SWAP_HEADER_SIZE},
            )
