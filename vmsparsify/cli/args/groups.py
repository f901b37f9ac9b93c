# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse

from ...sparsify.tmpspace import TmpdirPolicy


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged normalized config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbosity: -v, -vv, -vvv")
    p.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors; no progress bars.")
    p.add_argument(
        "-x",
        dest="trace",
        action="store_true",
        help="Trace libguestfs API calls (very noisy).",
    )
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument(
        "--machine-readable",
        dest="machine_readable",
        action="store_true",
        help="Progress as 'position/total' lines on stdout, logs as JSON on stderr.",
    )
    p.add_argument(
        "--debug-gc",
        dest="debug_gc",
        action="store_true",
        help="Force a garbage collection before exit.",
    )


def _add_format_options(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Input/output formats
    # ------------------------------------------------------------------
    p.add_argument(
        "--format",
        dest="format",
        default=None,
        help="Format of the input disk (e.g. raw, qcow2). Default: auto-detect.",
    )
    p.add_argument(
        "--convert",
        dest="convert",
        default=None,
        help="Output format (e.g. raw, qcow2, vdi). Default: same as the input.",
    )
    p.add_argument(
        "--compress",
        action="store_true",
        help="Compress the output (qcow2 and other formats that support it; not raw).",
    )
    p.add_argument(
        "-o",
        "--option",
        dest="option",
        default=None,
        help="Output format options passed to 'qemu-img convert -o' unchanged.",
    )


def _add_sparsify_options(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # What to sweep
    # ------------------------------------------------------------------
    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="FS|VG",
        help="Leave this filesystem or volume group alone (repeatable).",
    )
    p.add_argument(
        "--zero",
        action="append",
        default=[],
        metavar="FS",
        help="Zero this filesystem completely, contents included (repeatable).",
    )


def _add_tmpdir_options(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Scratch space
    # ------------------------------------------------------------------
    p.add_argument(
        "--tmp",
        dest="tmp",
        default=None,
        help="Directory for the temporary overlay (default: $TMPDIR or the system temp dir).",
    )
    p.add_argument(
        "--check-tmpdir",
        dest="check_tmpdir",
        default=TmpdirPolicy.CONTINUE.value,
        choices=[x.value for x in TmpdirPolicy],
        help="What to do if the scratch directory may be too small for the overlay.",
    )


def _add_input_paths(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Positional disks (may also come from YAML `indisk:` / `outdisk:`)
    # ------------------------------------------------------------------
    p.add_argument("indisk", nargs="?", default=None, help="Source disk image (never modified).")
    p.add_argument("outdisk", nargs="?", default=None, help="Destination disk image.")
