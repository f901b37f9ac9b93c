# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/volume_groups.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..core.logger import Log
from ..core.utils import NameGenerator, U
from .models import VolumeGroup
from .session import DiskSession


class VolumeGroupReclaimer:
    """
    Zeroes the free extents of each volume group by carving them into a
    throwaway LV, zeroing it, syncing, and removing it again. The extents
    return to the free pool holding zeroes.
    """

    def __init__(
        self,
        logger: logging.Logger,
        session: DiskSession,
        *,
        name_gen: NameGenerator = U.random8,
        max_name_attempts: int = 10,
    ):
        self.logger = logger
        self.session = session
        self._name_gen = name_gen
        self._max_name_attempts = max(1, int(max_name_attempts))

    def reclaim(self, groups: Iterable[VolumeGroup]) -> List[str]:
        """Returns the names of the groups whose free space was zeroed."""
        done: List[str] = []
        for vg in sorted(groups, key=lambda v: v.name):
            if self.process(vg):
                done.append(vg.name)
        return done

    def pick_lv_name(self, vg: VolumeGroup) -> Optional[str]:
        existing = set(self.session.list_logical_volumes())
        for _ in range(self._max_name_attempts):
            name = self._name_gen()
            if vg.lv_device(name) not in existing:
                return name
            Log.trace(self.logger, "LV name %s already used in %s, retrying", name, vg.name)
        return None

    def process(self, vg: VolumeGroup) -> bool:
        if vg.ignored:
            Log.trace(self.logger, "Skipping ignored volume group %s", vg.name)
            return False

        lvname = self.pick_lv_name(vg)
        if lvname is None:
            Log.warn(self.logger, f"Could not pick an unused LV name in {vg.name}; skipping it")
            return False

        # Usually fails because the group has no free extents.
        if not self.session.create_lv_from_free(lvname, vg.name, 100):
            self.logger.debug("No free space reclaimed in volume group %s", vg.name)
            return False

        lvdev = vg.lv_device(lvname)
        Log.step(self.logger, f"Fill free space in volgroup {vg.name} with zero ...")
        self.session.zero_device(lvdev)
        self.session.sync()
        self.session.remove_lv(lvdev)
        return True
