# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from pathlib import Path

import pytest
from vmsparsify.core.exceptions import EngineError
from vmsparsify.sparsify.models import Mounted, NotMountable, VolumeGroup
from vmsparsify.sparsify.session import EVENT_PROGRESS, DiskSession

from fakes.fake_guestfs import FakeGuestFS
from fakes.fake_logger import FakeLogger


@pytest.fixture
def g():
    g = FakeGuestFS()
    g.add_fs("/dev/sda2", "ext4").add_fs("/dev/sda1", "xfs").add_fs("/dev/sda3", "swap")
    return g


@pytest.fixture
def session(g):
    s = DiskSession(FakeLogger(), Path("/tmp/sparsify1234.qcow2"), handle_factory=lambda: g)
    s.launch()
    yield s
    s.close()


@pytest.mark.unit
class TestLifecycle:

    def test_launch_attaches_overlay_writable(self, g):
        s = DiskSession(FakeLogger(), Path("/tmp/o.qcow2"), handle_factory=lambda: g)
        assert not s.active
        s.launch()
        assert s.active
        path, kw = g.drives[0]
        assert path == "/tmp/o.qcow2"
        assert kw == {"format": "qcow2", "readonly": False, "cachemode": "unsafe"}
        assert g.names()[:2] == ["add_drive_opts", "launch"]

    def test_progress_callback_registered(self, g):
        cb = lambda *a: None  # noqa: E731
        s = DiskSession(FakeLogger(), Path("/tmp/o.qcow2"), handle_factory=lambda: g, progress=cb)
        s.launch()
        assert g.event_callbacks == [(cb, EVENT_PROGRESS)]

    def test_launch_failure_is_engine_error(self, g):
        g.fail_on["launch"] = "cannot find any suitable libguestfs supermin"
        s = DiskSession(FakeLogger(), Path("/tmp/o.qcow2"), handle_factory=lambda: g)
        with pytest.raises(EngineError) as ei:
            s.launch()
        assert "supermin" in str(ei.value)
        assert not s.active

    def test_shutdown_then_close(self, session, g):
        session.shutdown()
        assert not session.active
        session.close()
        session.close()
        assert g.closed == 1
        assert g.names()[-1] == "shutdown"

    def test_cancel(self, session, g):
        session.cancel()
        assert g.cancelled == 1

    def test_context_manager(self, g):
        with DiskSession(FakeLogger(), Path("/tmp/o.qcow2"), handle_factory=lambda: g) as s:
            assert s.active
        assert "shutdown" in g.names()
        assert g.closed == 1

    def test_calls_before_launch_fail(self, g):
        s = DiskSession(FakeLogger(), Path("/tmp/o.qcow2"), handle_factory=lambda: g)
        with pytest.raises(EngineError):
            s.zero_device("/dev/sda1")


@pytest.mark.unit
class TestDiscovery:

    def test_filesystems_sorted(self, session):
        devs = [e.device for e in session.list_filesystems()]
        assert devs == ["/dev/sda1", "/dev/sda2", "/dev/sda3"]

    def test_ignore_matches_canonical_name(self, session, g):
        g.aliases["/dev/vda2"] = "/dev/sda2"
        entries = {e.device: e for e in session.list_filesystems(ignores=["/dev/vda2"])}
        assert entries["/dev/sda2"].ignored
        assert not entries["/dev/sda1"].ignored

    def test_zero_matches_name_as_given(self, session, g):
        g.aliases["/dev/vda1"] = "/dev/sda1"
        entries = {e.device: e for e in session.list_filesystems(zeroes=["/dev/vda1", "/dev/sda3"])}
        assert not entries["/dev/sda1"].zero
        assert entries["/dev/sda3"].zero

    def test_volume_groups(self, session, g):
        g.vg_free = {"vg_b": True, "vg_a": False}
        assert session.list_volume_groups(ignores=["vg_b"]) == [
            VolumeGroup("vg_a", ignored=False),
            VolumeGroup("vg_b", ignored=True),
        ]


@pytest.mark.unit
class TestMountAndIO:

    def test_mount_result(self, session):
        entries = {e.device: e for e in session.list_filesystems()}
        assert session.mount(entries["/dev/sda2"]) == Mounted("/dev/sda2", "/")
        res = session.mount(entries["/dev/sda3"])
        assert isinstance(res, NotMountable)
        assert "wrong fs type" in res.reason

    def test_read_write_device(self, session, g):
        assert session.read_device("/dev/sda1", 0, 4) == b"\xaa" * 4
        assert session.write_device("/dev/sda1", 2, b"\x01\x02") == 2
        assert bytes(g.devices["/dev/sda1"][:4]) == b"\xaa\xaa\x01\x02"

    def test_read_past_end_is_engine_error(self, session):
        with pytest.raises(EngineError):
            session.read_device("/dev/sda1", 65530, 100)

    def test_try_read_device_returns_none(self, session):
        assert session.try_read_device("/dev/sda1", 65530, 100) is None
        assert session.try_read_device("/dev/nope", 0, 1) is None

    def test_create_lv_from_free(self, session, g):
        g.vg_free = {"vg0": True, "vg_full": False}
        assert session.create_lv_from_free("abcd1234", "vg0") is True
        assert "/dev/vg0/abcd1234" in session.list_logical_volumes()
        assert session.create_lv_from_free("abcd1234", "vg_full") is False
        session.remove_lv("/dev/vg0/abcd1234")
        assert session.list_logical_volumes() == []
