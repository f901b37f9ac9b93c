# SPDX-License-Identifier: LGPL-3.0-or-later
from .config_loader import Config, deep_merge_dict

__all__ = ["Config", "deep_merge_dict"]
