# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/__init__.py
"""
vmsparsify - make a virtual machine disk image sparse

Unused space inside the guest (free filesystem blocks, swap bodies, free
LVM extents) is zeroed on a disposable copy-on-write overlay, then
qemu-img copies the overlay to the destination, dropping the zeroes.
The source disk is never opened for writing.

Usage as a library:

    from vmsparsify import Sparsifier, SparsifyOptions

    opts = SparsifyOptions(indisk="guest.img", outdisk="guest-sparse.qcow2", convert="qcow2")
    Sparsifier(logger, opts).run()
"""

__version__ = "0.1.0"

from .orchestrator import Sparsifier, SparsifyOptions

__all__ = [
    "__version__",
    "Sparsifier",
    "SparsifyOptions",
]
