# SPDX-License-Identifier: LGPL-3.0-or-later
from .exceptions import Fatal, SparsifyError

__all__ = ["Fatal", "SparsifyError"]
