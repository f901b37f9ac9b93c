# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/cli/args/__init__.py
"""
Argument parser for the vmsparsify CLI, split into builder, option
groups, validation and the config-aware two-phase parse.
"""
from __future__ import annotations

from .builder import HelpFormatter, _build_epilog
from .groups import (
    _add_format_options,
    _add_global_config_logging,
    _add_input_paths,
    _add_sparsify_options,
    _add_tmpdir_options,
)
from .parser import build_parser, parse_args_with_config
from .validators import validate_args

__all__ = [
    "HelpFormatter",
    "build_parser",
    "parse_args_with_config",
    "validate_args",
]
