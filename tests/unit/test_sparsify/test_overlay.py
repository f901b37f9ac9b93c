# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from pathlib import Path

import pytest
from vmsparsify.core.exceptions import EngineError, Fatal
from vmsparsify.core.utils import U
from vmsparsify.sparsify.models import DiskImage
from vmsparsify.sparsify.overlay import OverlayManager, detect_format, virtual_size

from fakes.fake_guestfs import FakeGuestFS
from fakes.fake_logger import FakeLogger


@pytest.fixture
def g():
    return FakeGuestFS()


def _manager(g, tmpdir, **kw):
    registered = []
    kw.setdefault("on_exit", lambda fn, *a: registered.append((fn, a)))
    m = OverlayManager(FakeLogger(), tmpdir, handle_factory=lambda: g, **kw)
    return m, registered


@pytest.mark.unit
class TestImageQueries:

    def test_detect_format(self, g):
        g.formats["/img/a.vmdk"] = "vmdk"
        assert detect_format(Path("/img/a.vmdk"), handle_factory=lambda: g) == "vmdk"
        assert g.closed == 1

    def test_virtual_size(self, g):
        g.vsizes["/img/a.raw"] = 8 << 30
        assert virtual_size(Path("/img/a.raw"), handle_factory=lambda: g) == 8 << 30

    def test_detection_error_closes_handle(self, g):
        g.fail_on["disk_format"] = "qemu-img info failed"
        with pytest.raises(EngineError):
            detect_format(Path("/img/broken"), handle_factory=lambda: g)
        assert g.closed == 1


@pytest.mark.unit
class TestOverlayManager:

    def test_create_registers_cleanup_before_init(self, g, tmp_path):
        order = []
        g_create = g.disk_create

        def disk_create(*a, **kw):
            order.append("disk_create")
            return g_create(*a, **kw)

        g.disk_create = disk_create
        m, _ = _manager(g, tmp_path, on_exit=lambda fn, *a: order.append("registered"))
        path = m.create(DiskImage(tmp_path / "in.img", "raw"))

        assert order == ["registered", "disk_create"]
        assert path.parent == tmp_path
        assert path.name.startswith("sparsify") and path.name.endswith(".qcow2")
        assert path.exists()

    def test_disk_create_arguments(self, g, tmp_path):
        m, registered = _manager(g, tmp_path)
        path = m.create(DiskImage(tmp_path / "in.img", "raw"))

        created = g.created[-1]
        assert created["filename"] == str(path)
        assert created["format"] == "qcow2"
        assert created["size"] == -1
        assert created["backingfile"] == str(tmp_path / "in.img")
        assert created["backingformat"] == "raw"
        assert created["compat"] == "1.1"
        assert registered == [(U.safe_unlink, (path,))]

    @pytest.mark.parametrize("fmt", [None, "unknown"])
    def test_backing_format_omitted_when_unknown(self, g, tmp_path, fmt):
        m, _ = _manager(g, tmp_path)
        m.create(DiskImage(tmp_path / "in.img", fmt))
        assert "backingformat" not in g.created[-1]

    def test_name_generator_retries_on_collision(self, g, tmp_path):
        (tmp_path / "sparsifyaaaaaaaa.qcow2").write_bytes(b"")
        names = iter(["aaaaaaaa", "bbbbbbbb"])
        m, _ = _manager(g, tmp_path, name_gen=lambda: next(names))
        assert m.create(DiskImage(tmp_path / "in.img")).name == "sparsifybbbbbbbb.qcow2"

    def test_name_generator_exhausted_is_fatal(self, g, tmp_path):
        (tmp_path / "sparsifyaaaaaaaa.qcow2").write_bytes(b"")
        m, registered = _manager(g, tmp_path, name_gen=lambda: "aaaaaaaa", max_attempts=3)
        with pytest.raises(Fatal):
            m.create(DiskImage(tmp_path / "in.img"))
        assert registered == []
        assert g.created == []

    def test_missing_tmpdir_is_fatal(self, g, tmp_path):
        m, _ = _manager(g, tmp_path / "does-not-exist")
        with pytest.raises(Fatal) as ei:
            m.create(DiskImage(tmp_path / "in.img"))
        assert "cannot create overlay file" in str(ei.value)

    def test_init_failure_still_registered(self, g, tmp_path):
        g.fail_on["disk_create"] = "Could not open backing file"
        m, registered = _manager(g, tmp_path)
        with pytest.raises(EngineError):
            m.create(DiskImage(tmp_path / "in.img", "raw"))
        assert len(registered) == 1
        assert m.path is not None
