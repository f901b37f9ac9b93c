# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/sparsify/overlay.py
from __future__ import annotations

import atexit
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from ..core.exceptions import wrap_engine, wrap_fatal
from ..core.utils import NameGenerator, U
from .models import OVERLAY_FORMAT, DiskImage
from .session import HandleFactory, new_handle

OVERLAY_PREFIX = "sparsify"
OVERLAY_SUFFIX = "." + OVERLAY_FORMAT

ExitRegistrar = Callable[..., Any]


def _with_handle(factory: HandleFactory, op: str, *args: Any, **kwargs: Any) -> Any:
    """Run one call on a short-lived, never-launched handle."""
    g = factory()
    try:
        return getattr(g, op)(*args, **kwargs)
    except RuntimeError as e:
        raise wrap_engine(f"libguestfs error: {op}: {e}", e, op=op) from e
    finally:
        g.close()


def detect_format(path: Path, *, handle_factory: HandleFactory = new_handle) -> str:
    """Format name as qemu sees it, or "unknown"."""
    return U.to_text(_with_handle(handle_factory, "disk_format", str(path)))


def virtual_size(path: Path, *, handle_factory: HandleFactory = new_handle) -> int:
    return int(_with_handle(handle_factory, "disk_virtual_size", str(path)))


class OverlayManager:
    """
    Creates the qcow2 overlay that shields the source disk.

    The temp file is registered for deletion at process exit as soon as it
    exists and before any qcow2 metadata is written, so an interrupt in the
    middle of creation still cleans up. It is never removed earlier: the
    converter reads it after the engine session is gone.
    """

    def __init__(
        self,
        logger: logging.Logger,
        tmpdir: Path,
        *,
        handle_factory: HandleFactory = new_handle,
        name_gen: Optional[NameGenerator] = None,
        on_exit: ExitRegistrar = atexit.register,
        max_attempts: int = 100,
    ):
        self.logger = logger
        self.tmpdir = Path(tmpdir)
        self._factory = handle_factory
        self._name_gen = name_gen
        self._on_exit = on_exit
        self._max_attempts = max(1, int(max_attempts))
        self.path: Optional[Path] = None

    def _reserve(self) -> Path:
        if self._name_gen is None:
            fd, name = tempfile.mkstemp(prefix=OVERLAY_PREFIX, suffix=OVERLAY_SUFFIX, dir=str(self.tmpdir))
            os.close(fd)
            return Path(name)

        for _ in range(self._max_attempts):
            candidate = self.tmpdir / f"{OVERLAY_PREFIX}{self._name_gen()}{OVERLAY_SUFFIX}"
            try:
                fd = os.open(str(candidate), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                continue
            os.close(fd)
            return candidate
        raise FileExistsError(f"no free overlay name in {self.tmpdir} after {self._max_attempts} attempts")

    def create(self, source: DiskImage) -> Path:
        try:
            path = self._reserve()
        except OSError as e:
            raise wrap_fatal(f"cannot create overlay file in {self.tmpdir}: {e}", e, tmpdir=str(self.tmpdir)) from e

        self._on_exit(U.safe_unlink, path)
        self.path = path

        kwargs = {"backingfile": str(source.path), "compat": "1.1"}
        if source.format and source.format != "unknown":
            kwargs["backingformat"] = source.format

        self.logger.debug("Creating overlay %s (backing=%s, fmt=%s)", path, source.path, source.format or "auto")
        _with_handle(self._factory, "disk_create", str(path), OVERLAY_FORMAT, -1, **kwargs)
        return path
