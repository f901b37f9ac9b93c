# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import os
from typing import Any, Dict, Optional, Sequence, Tuple

from ...config.config_loader import Config
from ...core.logger import c
from ...core.utils import U
from .builder import HelpFormatter, _build_epilog
from .groups import (
    _add_format_options,
    _add_global_config_logging,
    _add_input_paths,
    _add_sparsify_options,
    _add_tmpdir_options,
)
from .validators import validate_args

DEBUG_ENV = "VMSPARSIFY_DEBUG"
_LOGGING_KEYS = ("verbose", "quiet", "trace", "log_file", "machine_readable")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vmsparsify",
        description=c("vmsparsify: make a virtual machine disk image sparse", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=_build_epilog(),
    )

    _add_global_config_logging(p)
    _add_format_options(p)
    _add_sparsify_options(p)
    _add_tmpdir_options(p)
    _add_input_paths(p)
    return p


def _build_preparser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("-q", "--quiet", action="store_true")
    pre.add_argument("-x", dest="trace", action="store_true")
    pre.add_argument("--log-file", dest="log_file", default=None)
    pre.add_argument("--machine-readable", dest="machine_readable", action="store_true")
    pre.add_argument("--dump-config", action="store_true")
    pre.add_argument("--dump-args", action="store_true")
    return pre


def _env_debug() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() in ("1", "true", "yes", "on")


def _load_merged_config(logger: Any, cfgs: Sequence[str]) -> Dict[str, Any]:
    if not cfgs:
        return {}
    expanded = Config.expand_configs(logger, list(cfgs))
    return Config.load_many(logger, expanded)


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Flow:
      Phase 0: parse ONLY global flags needed to locate config/logging
      Phase 1: load+merge config files
      Phase 2: apply config as defaults onto the parser
      Phase 3: full parse to get final args
      Phase 4: validate using merged config + args
    """
    import sys

    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    parser = build_parser()

    pre = _build_preparser()
    args0, _rest = pre.parse_known_args(argv)

    verbose = int(getattr(args0, "verbose", 0) or 0)
    if _env_debug():
        verbose = max(verbose, 2)

    own_logger = logger is None
    if own_logger:
        from ...core.logger import Log  # local import to avoid cycles

        logger = Log.setup(
            verbose,
            getattr(args0, "log_file", None),
            quiet=int(bool(getattr(args0, "quiet", False))),
            trace=bool(getattr(args0, "trace", False)),
            json_logs=bool(getattr(args0, "machine_readable", False)),
        )

    conf = _load_merged_config(logger, getattr(args0, "config", None) or [])

    if getattr(args0, "dump_config", False):
        print(U.json_dump(conf))
        raise SystemExit(0)

    # Apply config as defaults so CLI can override.
    Config.apply_as_defaults(logger, parser, conf)

    args = parser.parse_args(argv)
    if args.verbose < verbose:
        args.verbose = verbose

    # Logging keys that only came from config need a second setup.
    if own_logger and any(k in conf for k in _LOGGING_KEYS):
        from ...core.logger import Log

        logger = Log.setup(
            args.verbose,
            args.log_file,
            quiet=int(bool(args.quiet)),
            trace=bool(args.trace),
            json_logs=bool(args.machine_readable),
        )

    if getattr(args0, "dump_args", False):
        print(U.json_dump(vars(args)))
        raise SystemExit(0)

    validate_args(args, conf)
    return args, conf, logger
