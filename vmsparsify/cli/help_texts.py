# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmsparsify/cli/help_texts.py
from __future__ import annotations

# NOTE:
# Pure help text used by the argparse epilog. Keep it copy/paste runnable
# and free of imports.

EXAMPLES = r"""# Make a sparse copy, keeping the input format:
vmsparsify indisk.img outdisk.img

# Convert to compressed qcow2 at the same time:
vmsparsify --convert qcow2 --compress indisk.img outdisk.qcow2

# Leave one filesystem alone, wipe another completely:
vmsparsify --ignore /dev/sda1 --zero /dev/sda3 indisk.img outdisk.img

# Scratch space on a bigger disk, and refuse to run if it looks too small:
vmsparsify --tmp /var/tmp --check-tmpdir=fail indisk.img outdisk.img
"""

YAML_EXAMPLE = r"""# vmsparsify configuration (YAML)
#
# vmsparsify --config sparsify.yaml indisk.img outdisk.qcow2
# Later --config files override earlier ones; the command line overrides both.
#
convert: qcow2          # output format
compress: true          # not allowed with raw output
option: cluster_size=64k,compat=1.1   # passed to qemu-img -o as-is
ignore:                 # filesystems or volume groups to leave alone
  - /dev/sda1
  - vg_data
zero:                   # filesystems to wipe completely
  - /dev/sda3
check_tmpdir: warn      # ignore | continue | warn | fail
tmp: /var/tmp           # where the overlay lives (else $TMPDIR)
log_file: ./vmsparsify.log
"""

NOTES = r"""The input disk is never modified. All writes go to a temporary qcow2
overlay in the scratch directory, removed when the program exits.

Before deleting the old disk, check that the new one boots and works.

Exit status: 0 success, 1 error, 2 scratch space check failed (--check-tmpdir=fail).
"""
