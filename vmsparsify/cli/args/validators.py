# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
from typing import Any, Dict, Iterable, List

from ...sparsify.tmpspace import TmpdirPolicy


def _require(v: Any) -> bool:
    return v is not None and str(v).strip() != ""


def _as_name_list(v: Any, flag: str) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, Iterable):
        raise SystemExit(f"{flag}: expected a name or a list of names")
    out: List[str] = []
    for item in v:
        if not _require(item):
            raise SystemExit(f"{flag}: empty name")
        out.append(str(item).strip())
    return out


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """
    Post-parse checks that argparse cannot express, mostly for values
    that arrived through a config file. Normalizes list options in place.
    """
    if not _require(getattr(args, "indisk", None)) or not _require(getattr(args, "outdisk", None)):
        raise SystemExit("usage: vmsparsify [options] INDISK OUTDISK (both disks are required)")

    policy = getattr(args, "check_tmpdir", None) or TmpdirPolicy.CONTINUE.value
    try:
        args.check_tmpdir = TmpdirPolicy(str(policy)).value
    except ValueError:
        valid = ", ".join(p.value for p in TmpdirPolicy)
        raise SystemExit(f"--check-tmpdir: invalid value {policy!r} (choose from {valid})")

    for name in ("format", "convert", "option"):
        v = getattr(args, name, None)
        if v is not None and not _require(v):
            raise SystemExit(f"--{name}: empty value")

    args.ignore = _as_name_list(getattr(args, "ignore", None), "--ignore")
    args.zero = _as_name_list(getattr(args, "zero", None), "--zero")
