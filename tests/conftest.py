# SPDX-License-Identifier: GPL-2.0-or-later
import os
import sys
from pathlib import Path

import pytest

_THIS_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _THIS_DIR.parent

if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

os.environ.setdefault("PYTHONPATH", str(_REPO_ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no external tools")
    config.addinivalue_line("markers", "integration: needs libguestfs and qemu-img")
    config.addinivalue_line("markers", "requires_images: needs a real guest disk image")


@pytest.fixture
def scratch_image(tmp_path):
    """A small file standing in for a source disk image."""
    p = tmp_path / "in.img"
    p.write_bytes(b"\0" * 4096)
    return p
