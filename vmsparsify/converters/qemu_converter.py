# SPDX-License-Identifier: LGPL-3.0-or-later
# vmsparsify/converters/qemu_converter.py
from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from ..core.exceptions import ConvertError, PreflightError
from ..core.logger import Log
from ..core.utils import U
from ..sparsify.models import OVERLAY_FORMAT

QEMU_IMG = "qemu-img"


def resolve_output_format(
    convert: Optional[str],
    fmt: Optional[str],
    detect: Callable[[], str],
) -> str:
    """
    --convert wins, then --format, then whatever the source looks like.
    `detect` is only called when both are unset.
    """
    if convert:
        return convert
    if fmt:
        return fmt
    detected = U.to_text(detect()).strip()
    if not detected or detected == "unknown":
        raise PreflightError(msg="cannot detect input disk format; use the --format parameter")
    return detected


class FinalizeConverter:
    """
    qemu-img convert from the overlay to the destination. qemu-img skips
    zeroed clusters, so the sweep's zeroes become holes in the output.

    The -o string is passed through untouched.
    """

    # qemu-img -p prints "    (12.34/100%)" and rewrites it with \r
    _RE_PAREN = re.compile(r"\((\d+(?:\.\d+)?)/100%\)")

    def __init__(
        self,
        logger: logging.Logger,
        *,
        output_format: str,
        compress: bool = False,
        option: Optional[str] = None,
        progress: bool = True,
        echo: bool = False,
    ):
        self.logger = logger
        self.output_format = output_format
        self.compress = bool(compress)
        self.option = option
        self.progress = bool(progress)
        self.echo = bool(echo)

    # ---------------------------------------------------------------------
    # Pre-flight
    # ---------------------------------------------------------------------

    @staticmethod
    def preflight(output_format: str, compress: bool) -> None:
        # raw cannot carry compression (RHBZ#852194)
        if output_format == "raw" and compress:
            raise PreflightError(
                msg="--compress cannot be used for raw output.  Remove this option or use --convert qcow2."
            )

    @staticmethod
    def check_tool(logger: logging.Logger) -> None:
        if U.which(QEMU_IMG) is None:
            logger.error(f"{QEMU_IMG} not found in PATH")
            raise PreflightError(msg=f"{QEMU_IMG} not found in PATH; install qemu-img (qemu-utils)")

    # ---------------------------------------------------------------------
    # Command
    # ---------------------------------------------------------------------

    def build_cmd(self, src: Path, dst: Path) -> List[str]:
        cmd: List[str] = [QEMU_IMG, "convert", "-f", OVERLAY_FORMAT, "-O", self.output_format]
        if self.compress:
            cmd.append("-c")
        if self.option:
            cmd += ["-o", self.option]
        if self.progress:
            cmd.append("-p")
        cmd += [str(src), str(dst)]
        return cmd

    def run(self, src: Path, dst: Path) -> None:
        self.preflight(self.output_format, self.compress)
        cmd = self.build_cmd(Path(src), Path(dst))
        pretty = U.pretty_cmd(cmd)

        Log.step(self.logger, "Copy to destination and make sparse ...")
        if self.echo:
            self.logger.info(pretty)
        else:
            self.logger.debug("Running: %s", pretty)

        try:
            rc = self._run_with_progress(cmd) if self.progress else self._run_plain(cmd)
        except OSError as e:
            raise ConvertError(msg=f"external command failed: {pretty}: {e}", cause=e) from e

        if rc != 0:
            raise ConvertError(msg=f"external command failed: {pretty}", context={"rc": rc})

    # ---------------------------------------------------------------------
    # Runners
    # ---------------------------------------------------------------------

    @staticmethod
    def _run_plain(cmd: List[str]) -> int:
        return subprocess.run(cmd, check=False).returncode

    def _run_with_progress(self, cmd: List[str]) -> int:
        """
        Run qemu-img -p and drive a progress bar from its percentage
        output. stderr is left on the terminal so errors stay visible.
        """
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=None, bufsize=0)
        assert proc.stdout is not None

        buf = b""
        try:
            with Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                TimeRemainingColumn(),
            ) as progress:
                task = progress.add_task("Converting", total=100.0)
                while True:
                    chunk = proc.stdout.read(4096)
                    if not chunk:
                        break
                    buf += chunk
                    *parts, buf = re.split(rb"[\r\n]", buf)
                    for part in parts:
                        pct = self.parse_progress(part.decode("utf-8", errors="replace"))
                        if pct is not None:
                            progress.update(task, completed=pct)
                rc = proc.wait()
                if rc == 0:
                    progress.update(task, completed=100.0)
                return rc
        except (KeyboardInterrupt, SystemExit):
            self.logger.warning("Interrupted; stopping qemu-img.")
            proc.terminate()
            try:
                proc.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                proc.kill()
            raise
        finally:
            proc.stdout.close()

    @classmethod
    def parse_progress(cls, line: str) -> Optional[float]:
        m = cls._RE_PAREN.search(line or "")
        if not m:
            return None
        v = float(m.group(1))
        return v if 0.0 <= v <= 100.0 else None
