# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/config/config_loader.py
from __future__ import annotations

import argparse
import glob
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import yaml

from ..core.exceptions import Fatal


def deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Dict values merge recursively; lists and scalars are replaced
    (override wins).
    """
    out: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = deep_merge_dict(out[k], v)
        else:
            out[k] = v
    return out


class Config:
    """
    YAML/JSON run configuration.

    Keys are option dest names (dashes are accepted and normalized), e.g.

        convert: qcow2
        compress: true
        ignore: [/dev/sda1, vg_data]
        check-tmpdir: fail
    """

    @staticmethod
    def expand_configs(logger: logging.Logger, paths: Sequence[str]) -> List[Path]:
        out: List[Path] = []
        for raw in paths:
            pattern = str(Path(raw).expanduser())
            matches = sorted(glob.glob(pattern)) if glob.has_magic(pattern) else [pattern]
            if not matches:
                logger.warning(f"Config glob matched nothing: {raw}")
            for m in matches:
                p = Path(m)
                if not p.is_file():
                    raise Fatal(msg=f"config file not found: {p}")
                out.append(p)
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        text = Path(path).read_text(encoding="utf-8")
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise Fatal(msg=f"cannot parse config {path}: {e}", cause=e) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise Fatal(msg=f"config {path}: top level must be a mapping")
        logger.debug("Loaded config %s (%d keys)", path, len(data))
        return Config.normalize(data)

    @staticmethod
    def normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        return {str(k).replace("-", "_"): v for k, v in data.items()}

    @staticmethod
    def load_many(logger: logging.Logger, paths: Sequence[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged = deep_merge_dict(merged, Config.load_one(logger, p))
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """
        Push config values into the parser as defaults so the command line
        still overrides them. Unknown keys are reported, not applied.
        """
        dests = {a.dest for a in parser._actions}
        known: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in dests:
                known[k] = v
            else:
                logger.warning(f"Ignoring unknown config key: {k}")
        for k in ("ignore", "zero"):
            if k in known and isinstance(known[k], str):
                known[k] = [known[k]]
        if known:
            parser.set_defaults(**known)
