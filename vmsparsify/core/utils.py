# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/core/utils.py
from __future__ import annotations

import json
import logging
import os
import random
import shlex
import string
from pathlib import Path
from typing import Any, Callable, List, Optional

from .exceptions import Fatal

# Produces the random part of temporary names (overlay files, scratch LVs).
NameGenerator = Callable[[], str]

_RANDOM_CHARS = string.ascii_lowercase + string.digits


class U:
    @staticmethod
    def die(logger: logging.Logger, msg: str, code: int = 1) -> None:
        logger.error(msg)
        raise Fatal(code, msg)

    @staticmethod
    def which(prog: str) -> Optional[str]:
        from shutil import which as _which
        return _which(prog)

    @staticmethod
    def json_dump(obj: Any) -> str:
        try:
            return json.dumps(obj, indent=2, sort_keys=True, default=str)
        except (TypeError, ValueError):
            return repr(obj)

    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        x = float(n)
        for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]:
            if abs(x) < 1024 or unit == "PiB":
                return f"{x:.2f} {unit}" if unit != "B" else f"{int(x)} {unit}"
            x /= 1024
        return f"{n} B"

    @staticmethod
    def pretty_cmd(cmd: List[str]) -> str:
        return " ".join(shlex.quote(x) for x in cmd)

    @staticmethod
    def free_space(path: Path) -> int:
        """Bytes available to unprivileged users on the filesystem holding `path`."""
        st = os.statvfs(str(path))
        return int(st.f_bavail) * int(st.f_frsize)

    @staticmethod
    def random8() -> str:
        return "".join(random.choice(_RANDOM_CHARS) for _ in range(8))

    @staticmethod
    def safe_unlink(p: Path, *, missing_ok: bool = True) -> None:
        try:
            Path(p).unlink()
        except FileNotFoundError:
            if not missing_ok:
                raise

    @staticmethod
    def to_text(x: Any) -> str:
        if x is None:
            return ""
        if isinstance(x, bytes):
            return x.decode("utf-8", "replace")
        return str(x)

    @staticmethod
    def same_file(a: Path, b: Path) -> bool:
        """True if both paths name the same file (b may not exist yet)."""
        try:
            return os.path.samefile(a, b)
        except OSError:
            return Path(a).expanduser().resolve() == Path(b).expanduser().resolve()
