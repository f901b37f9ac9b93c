# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/session.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from ..core.exceptions import wrap_engine
from ..core.logger import Log
from ..core.utils import U
from .models import (
    OVERLAY_FORMAT,
    FilesystemEntry,
    Mounted,
    MountResult,
    NotMountable,
    VolumeGroup,
)

try:
    import guestfs  # type: ignore
    GUESTFS_AVAILABLE = True
except ImportError:  # pragma: no cover
    guestfs = None  # type: ignore
    GUESTFS_AVAILABLE = False

# GUESTFS_EVENT_PROGRESS from guestfs.h
EVENT_PROGRESS = getattr(guestfs, "EVENT_PROGRESS", 0x0008)

HandleFactory = Callable[[], Any]


def new_handle() -> "guestfs.GuestFS":
    """Create an unlaunched libguestfs handle."""
    if not GUESTFS_AVAILABLE:
        raise wrap_engine(
            "libguestfs Python bindings are not installed (python3-libguestfs / pip install guestfs)"
        )
    return guestfs.GuestFS(python_return_dict=True)


class DiskSession:
    """
    libguestfs handle bound to the overlay.

    The overlay is attached read-write with cachemode=unsafe; it is
    discarded after the run.

    Lifecycle: launch() -> ... -> shutdown() -> close(). shutdown() must
    happen before qemu-img reads the overlay, so the appliance has flushed
    and released it.

    Expected negative results (mount failure, LV creation failure, probing
    a device that is too small) come back as values. Every other engine
    failure is raised as EngineError.
    """

    def __init__(
        self,
        logger: logging.Logger,
        overlay: Path,
        *,
        handle_factory: HandleFactory = new_handle,
        trace: bool = False,
        verbose: bool = False,
        progress: Optional[Callable[..., None]] = None,
    ):
        self.logger = logger
        self.overlay = Path(overlay)
        self._factory = handle_factory
        self._trace = bool(trace)
        self._verbose = bool(verbose)
        self._progress = progress
        self._g: Any = None
        self._launched = False

    # -----------------------
    # lifecycle
    # -----------------------

    @property
    def active(self) -> bool:
        return self._g is not None and self._launched

    def _call(self, op: str, *args: Any, **kwargs: Any) -> Any:
        if self._g is None:
            raise wrap_engine(f"{op}: libguestfs handle is not open", op=op)
        Log.trace(self.logger, "guestfs %s%r", op, args)
        try:
            return getattr(self._g, op)(*args, **kwargs)
        except RuntimeError as e:
            raise wrap_engine(f"libguestfs error: {op}: {e}", e, op=op) from e

    def launch(self) -> None:
        g = self._factory()
        self._g = g
        if self._trace:
            g.set_trace(1)
        if self._verbose:
            g.set_verbose(1)

        self._call(
            "add_drive_opts",
            str(self.overlay),
            format=OVERLAY_FORMAT,
            readonly=False,
            cachemode="unsafe",
        )
        if self._progress is not None:
            g.set_event_callback(self._progress, EVENT_PROGRESS)

        self._call("launch")
        self._launched = True
        self.logger.debug("libguestfs appliance launched on %s", self.overlay)

    def cancel(self) -> None:
        """Ask libguestfs to abort the current long-running call."""
        if self._g is not None:
            self._g.user_cancel()

    def shutdown(self) -> None:
        if self._g is not None and self._launched:
            self._call("shutdown")
            self._launched = False

    def close(self) -> None:
        if self._g is not None:
            g, self._g = self._g, None
            self._launched = False
            g.close()

    def __enter__(self) -> "DiskSession":
        self.launch()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.shutdown()
        finally:
            self.close()

    # -----------------------
    # discovery
    # -----------------------

    def canonical(self, device: str) -> str:
        return U.to_text(self._call("canonical_device_name", device))

    def list_filesystems(
        self,
        ignores: Iterable[str] = (),
        zeroes: Iterable[str] = (),
    ) -> List[FilesystemEntry]:
        """
        Filesystems in lexicographic device order. Ignore matching uses the
        canonical name (one device can have several aliases); the zero list
        is matched on the name as given.
        """
        fsmap = self._call("list_filesystems") or {}
        ignored = {self.canonical(x) for x in ignores}
        zero_set = set(zeroes)

        out: List[FilesystemEntry] = []
        for dev in sorted(U.to_text(d) for d in fsmap.keys()):
            canon = self.canonical(dev)
            out.append(
                FilesystemEntry(
                    device=dev,
                    canonical=canon,
                    fstype=U.to_text(fsmap.get(dev, "")),
                    ignored=canon in ignored,
                    zero=dev in zero_set,
                )
            )
        return out

    def list_volume_groups(self, ignores: Iterable[str] = ()) -> List[VolumeGroup]:
        names = sorted(U.to_text(v) for v in (self._call("vgs") or []))
        ignored = set(ignores)
        return [VolumeGroup(name=n, ignored=n in ignored) for n in names]

    def list_logical_volumes(self) -> List[str]:
        return [U.to_text(x) for x in (self._call("lvs") or [])]

    # -----------------------
    # mount
    # -----------------------

    def mount(self, fs: FilesystemEntry, mountpoint: str = "/") -> MountResult:
        if self._g is None:
            raise wrap_engine("mount: libguestfs handle is not open", op="mount")
        try:
            self._g.mount(fs.device, mountpoint)
        except RuntimeError as e:
            self.logger.debug("%s is not mountable: %s", fs.device, e)
            return NotMountable(fs.device, str(e))
        return Mounted(fs.device, mountpoint)

    def unmount_all(self) -> None:
        self._call("umount_all")

    # -----------------------
    # zeroing / device I/O
    # -----------------------

    def zero_free_space(self, mountpoint: str) -> None:
        self._call("zero_free_space", mountpoint)

    def zero_device(self, device: str) -> None:
        self._call("zero_device", device)

    def read_device(self, device: str, offset: int, length: int) -> bytes:
        return bytes(self._call("pread_device", device, length, offset))

    def try_read_device(self, device: str, offset: int, length: int) -> Optional[bytes]:
        """Like read_device, but a failed read is an answer (None), not an error."""
        if self._g is None:
            return None
        try:
            return bytes(self._g.pread_device(device, length, offset))
        except RuntimeError as e:
            self.logger.debug("pread_device %s @%d failed: %s", device, offset, e)
            return None

    def write_device(self, device: str, offset: int, data: bytes) -> int:
        return int(self._call("pwrite_device", device, data, offset))

    def sync(self) -> None:
        self._call("sync")

    # -----------------------
    # LVM
    # -----------------------

    def create_lv_from_free(self, lvname: str, vg: str, percent: int = 100) -> bool:
        if self._g is None:
            raise wrap_engine("lvcreate_free: libguestfs handle is not open", op="lvcreate_free")
        try:
            self._g.lvcreate_free(lvname, vg, percent)
        except RuntimeError as e:
            self.logger.debug("lvcreate_free %s in %s failed: %s", lvname, vg, e)
            return False
        return True

    def remove_lv(self, device: str) -> None:
        self._call("lvremove", device)
