# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/orchestrator/__init__.py
from __future__ import annotations

from .orchestrator import Sparsifier, SparsifyOptions, SparsifyResult

__all__ = ["Sparsifier", "SparsifyOptions", "SparsifyResult"]
