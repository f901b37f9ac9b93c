# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/models.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

# The overlay is always qcow2, whatever the source/destination formats are.
OVERLAY_FORMAT = "qcow2"

# Linux swap on a 4 KiB page machine: "SWAPSPACE2" sits in the last 10
# bytes of the first page. Larger page sizes move it, so such swap is
# simply not detected.
SWAP_SIGNATURE = b"SWAPSPACE2"
SWAP_HEADER_SIZE = 4096
SWAP_SIGNATURE_OFFSET = SWAP_HEADER_SIZE - len(SWAP_SIGNATURE)


@dataclass(frozen=True)
class DiskImage:
    """
    A disk image on the host. `format` is what the user declared or what
    libguestfs detected; None means "not known yet".
    """
    path: Path
    format: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class FilesystemEntry:
    device: str
    canonical: str
    fstype: str = ""
    ignored: bool = False
    zero: bool = False


@dataclass(frozen=True)
class VolumeGroup:
    name: str
    ignored: bool = False

    def lv_device(self, lvname: str) -> str:
        return f"/dev/{self.name}/{lvname}"


@dataclass(frozen=True)
class Mounted:
    device: str
    mountpoint: str


@dataclass(frozen=True)
class NotMountable:
    device: str
    reason: str = ""


MountResult = Union[Mounted, NotMountable]
