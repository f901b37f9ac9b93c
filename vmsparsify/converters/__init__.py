# SPDX-License-Identifier: LGPL-3.0-or-later
from .qemu_converter import FinalizeConverter, resolve_output_format

__all__ = ["FinalizeConverter", "resolve_output_format"]
