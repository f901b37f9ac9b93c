# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/orchestrator/orchestrator.py
from __future__ import annotations

import argparse
import atexit
import gc
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..converters.qemu_converter import FinalizeConverter, resolve_output_format
from ..core.exceptions import PreflightError
from ..core.logger import Log
from ..core.utils import NameGenerator, U
from ..sparsify.cancellation import CancellationController, Phase, run_interruptible
from ..sparsify.models import DiskImage
from ..sparsify.overlay import ExitRegistrar, OverlayManager, detect_format, virtual_size
from ..sparsify.progress import EngineProgress
from ..sparsify.session import DiskSession, HandleFactory, new_handle
from ..sparsify.sweeper import FilesystemSweeper, SweepAction
from ..sparsify.tmpspace import TempSpaceGuard, TmpdirPolicy
from ..sparsify.volume_groups import VolumeGroupReclaimer

COMPLETION_NOTICE = (
    "Sparsify operation completed with no errors.  Before deleting the old disk, "
    "carefully check that the target disk boots and works correctly."
)


def _scratch_dir(explicit: Optional[str]) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    return Path(os.environ.get("TMPDIR") or tempfile.gettempdir())


@dataclass
class SparsifyOptions:
    indisk: str
    outdisk: str
    format: Optional[str] = None
    convert: Optional[str] = None
    compress: bool = False
    option: Optional[str] = None
    ignore: List[str] = field(default_factory=list)
    zero: List[str] = field(default_factory=list)
    check_tmpdir: str = TmpdirPolicy.CONTINUE.value
    tmp: Optional[str] = None
    quiet: bool = False
    verbose: int = 0
    trace: bool = False
    machine_readable: bool = False
    debug_gc: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "SparsifyOptions":
        return cls(
            indisk=args.indisk,
            outdisk=args.outdisk,
            format=getattr(args, "format", None),
            convert=getattr(args, "convert", None),
            compress=bool(getattr(args, "compress", False)),
            option=getattr(args, "option", None),
            ignore=list(getattr(args, "ignore", None) or []),
            zero=list(getattr(args, "zero", None) or []),
            check_tmpdir=getattr(args, "check_tmpdir", None) or TmpdirPolicy.CONTINUE.value,
            tmp=getattr(args, "tmp", None),
            quiet=bool(getattr(args, "quiet", 0)),
            verbose=int(getattr(args, "verbose", 0) or 0),
            trace=bool(getattr(args, "trace", False)),
            machine_readable=bool(getattr(args, "machine_readable", False)),
            debug_gc=bool(getattr(args, "debug_gc", False)),
        )


@dataclass
class SparsifyResult:
    output: Path
    output_format: str
    filesystems: Dict[str, SweepAction] = field(default_factory=dict)
    volume_groups: List[str] = field(default_factory=list)


class Sparsifier:
    """
    One sparsify run, phase by phase:

      pre-flight -> scratch space check -> overlay -> engine session
        -> filesystem sweep -> volume group reclaim -> engine shutdown
        -> qemu-img convert

    Phases only move forward. Every write lands on the overlay; the
    source is read by libguestfs/qemu only through the overlay's backing
    reference and by the format/size lookups.
    """

    def __init__(
        self,
        logger: logging.Logger,
        opts: SparsifyOptions,
        *,
        handle_factory: HandleFactory = new_handle,
        overlay_name_gen: Optional[NameGenerator] = None,
        lv_name_gen: NameGenerator = U.random8,
        cancellation: Optional[CancellationController] = None,
        free_space: Callable[[Path], int] = U.free_space,
        confirm: Optional[Callable[[], str]] = None,
        on_exit: ExitRegistrar = atexit.register,
    ):
        self.logger = logger
        self.opts = opts
        self._factory = handle_factory
        self._overlay_name_gen = overlay_name_gen
        self._lv_name_gen = lv_name_gen
        self.cancellation = cancellation or CancellationController(logger)
        self._free_space = free_space
        self._confirm = confirm
        self._on_exit = on_exit
        self._detected: Optional[str] = None

    # ---------------------------------------------------------------------
    # Pre-flight
    # ---------------------------------------------------------------------

    def _preflight_paths(self) -> DiskImage:
        # Absolute: qemu resolves a relative backing name against the overlay's directory.
        src = Path(self.opts.indisk).expanduser().resolve()
        dst = Path(self.opts.outdisk).expanduser()
        if not src.exists():
            raise PreflightError(msg=f"input disk not found: {src}")
        if U.same_file(src, dst):
            raise PreflightError(msg=f"input and output disk are the same file: {src}")
        return DiskImage(src, self.opts.format)

    def _detect(self, source: DiskImage) -> str:
        if self._detected is None:
            self._detected = detect_format(source.path, handle_factory=self._factory)
        return self._detected

    def _resolve_output_format(self, source: DiskImage) -> str:
        return resolve_output_format(self.opts.convert, self.opts.format, lambda: self._detect(source))

    def _backing_format(self, source: DiskImage) -> DiskImage:
        if source.format:
            return source
        detected = self._detect(source)
        return DiskImage(source.path, None if detected == "unknown" else detected)

    # ---------------------------------------------------------------------
    # Phases
    # ---------------------------------------------------------------------

    def _session_phase(self, overlay: Path) -> SparsifyResult:
        progress = None
        if not self.opts.quiet:
            progress = EngineProgress(machine_readable=self.opts.machine_readable)

        session = DiskSession(
            self.logger,
            overlay,
            handle_factory=self._factory,
            trace=self.opts.trace,
            verbose=self.opts.verbose >= 2,
            progress=progress,
        )
        result = SparsifyResult(output=Path(self.opts.outdisk), output_format="")
        try:
            Log.step(self.logger, "Examine source disk ...")
            session.launch()
            self.cancellation.enter(Phase.SESSION, session.cancel)

            entries = session.list_filesystems(self.opts.ignore, self.opts.zero)
            result.filesystems = FilesystemSweeper(self.logger, session).sweep(entries)

            groups = session.list_volume_groups(self.opts.ignore)
            result.volume_groups = VolumeGroupReclaimer(
                self.logger, session, name_gen=self._lv_name_gen
            ).reclaim(groups)

            session.shutdown()
        finally:
            session.close()
            if progress is not None:
                progress.close()
        return result

    def run(self) -> SparsifyResult:
        Log.banner(self.logger, f"vmsparsify {self.opts.indisk} -> {self.opts.outdisk}")
        self.cancellation.install()
        self.cancellation.enter(Phase.STARTUP)
        try:
            return self._run()
        finally:
            self.cancellation.uninstall()

    def _run(self) -> SparsifyResult:
        opts = self.opts
        source = self._preflight_paths()
        output_format = self._resolve_output_format(source)
        FinalizeConverter.preflight(output_format, opts.compress)
        FinalizeConverter.check_tool(self.logger)

        vsize = virtual_size(source.path, handle_factory=self._factory)
        self.logger.info(f"Input disk virtual size = {vsize} bytes ({U.human_bytes(vsize)})")

        tmpdir = _scratch_dir(opts.tmp)
        if not tmpdir.is_dir():
            raise PreflightError(msg=f"scratch directory not found: {tmpdir} (use --tmp or set TMPDIR)")
        guard_kwargs: Dict[str, Any] = {"free_space": self._free_space}
        if self._confirm is not None:
            guard_kwargs["confirm"] = self._confirm
        TempSpaceGuard(self.logger, tmpdir, TmpdirPolicy(opts.check_tmpdir), **guard_kwargs).check(vsize)

        Log.step(self.logger, f"Create overlay file in {tmpdir} to protect source disk ...")
        overlay = OverlayManager(
            self.logger,
            tmpdir,
            handle_factory=self._factory,
            name_gen=self._overlay_name_gen,
            on_exit=self._on_exit,
        ).create(self._backing_format(source))
        self.cancellation.enter(Phase.OVERLAY)

        result = run_interruptible(lambda: self._session_phase(overlay))
        self.cancellation.enter(Phase.CONVERT)

        FinalizeConverter(
            self.logger,
            output_format=output_format,
            compress=opts.compress,
            option=opts.option,
            progress=not (opts.quiet or opts.machine_readable),
            echo=opts.verbose >= 1,
        ).run(overlay, Path(opts.outdisk))
        result.output_format = output_format

        Log.ok(self.logger, COMPLETION_NOTICE)

        if opts.debug_gc:
            gc.collect()
        return result
