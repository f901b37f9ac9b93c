# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/sparsify/__init__.py
"""
Sparsification phases.

Each module owns one phase of a run; the orchestrator composes them:

    TempSpaceGuard -> OverlayManager -> DiskSession.launch
        -> FilesystemSweeper -> VolumeGroupReclaimer
        -> DiskSession.shutdown/close -> (qemu-img convert)

All writes go to the overlay; the source disk is only ever read.
"""
from __future__ import annotations

from .cancellation import CancellationController, Phase
from .models import DiskImage, FilesystemEntry, Mounted, NotMountable, VolumeGroup
from .overlay import OverlayManager
from .session import DiskSession
from .sweeper import FilesystemSweeper, SweepAction
from .tmpspace import TempSpaceGuard, TmpdirPolicy
from .volume_groups import VolumeGroupReclaimer

__all__ = [
    "CancellationController",
    "DiskImage",
    "DiskSession",
    "FilesystemEntry",
    "FilesystemSweeper",
    "Mounted",
    "NotMountable",
    "OverlayManager",
    "Phase",
    "SweepAction",
    "TempSpaceGuard",
    "TmpdirPolicy",
    "VolumeGroup",
    "VolumeGroupReclaimer",
]
