# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import io
from pathlib import Path

import pytest
from vmsparsify.core.exceptions import TmpSpaceError
from vmsparsify.sparsify.tmpspace import TempSpaceGuard, TmpdirPolicy

from fakes.fake_logger import FakeLogger

GiB = 1024 ** 3


def _guard(policy, free, confirm=None):
    stream = io.StringIO()
    calls = []

    def _confirm():
        calls.append(1)
        return "\n"

    g = TempSpaceGuard(
        FakeLogger(),
        Path("/scratch"),
        policy,
        free_space=lambda _p: free,
        confirm=confirm or _confirm,
        stream=stream,
    )
    return g, stream, calls


@pytest.mark.unit
class TestTempSpaceGuard:

    def test_shortfall(self):
        g, _s, _c = _guard(TmpdirPolicy.CONTINUE, 4 * GiB)
        assert g.shortfall(10 * GiB) == 6 * GiB
        assert g.shortfall(GiB) < 0

    def test_enough_space_is_silent_for_every_policy(self):
        for policy in TmpdirPolicy:
            g, stream, calls = _guard(policy, 20 * GiB)
            assert g.check(10 * GiB) is False
            assert stream.getvalue() == ""
            assert calls == []

    def test_ignore_never_checks(self):
        def boom(_p):
            raise AssertionError("free space must not be queried")

        g = TempSpaceGuard(FakeLogger(), Path("/scratch"), TmpdirPolicy.IGNORE, free_space=boom)
        assert g.check(10 * GiB) is False

    def test_continue_prints_warning_and_proceeds(self):
        g, stream, calls = _guard(TmpdirPolicy.CONTINUE, 4 * GiB)
        assert g.check(10 * GiB) is True
        out = stream.getvalue()
        assert "WARNING: There may not be enough free space on /scratch." in out
        assert "Max needed: 10.00 GiB.  Free: 4.00 GiB.  May need another 6.00 GiB." in out
        assert "--check-tmpdir=(ignore|continue|warn|fail)" in out
        assert calls == []

    def test_warn_blocks_for_confirmation(self):
        g, stream, calls = _guard(TmpdirPolicy.WARN, 4 * GiB)
        assert g.check(10 * GiB) is True
        assert "Press RETURN to continue or ^C to quit." in stream.getvalue()
        assert calls == [1]

    def test_warn_interrupt_propagates(self):
        def interrupted():
            raise KeyboardInterrupt

        g, _s, _c = _guard(TmpdirPolicy.WARN, 0, confirm=interrupted)
        with pytest.raises(KeyboardInterrupt):
            g.check(GiB)

    def test_fail_exits_with_code_two(self):
        g, stream, _c = _guard(TmpdirPolicy.FAIL, 4 * GiB)
        with pytest.raises(TmpSpaceError) as ei:
            g.check(10 * GiB)
        assert ei.value.code == 2
        assert "Exiting because --check-tmpdir=fail was set." in stream.getvalue()

    def test_policy_accepts_strings(self):
        g = TempSpaceGuard(FakeLogger(), Path("/scratch"), "warn", free_space=lambda _p: 0)
        assert g.policy is TmpdirPolicy.WARN

    def test_bad_policy(self):
        with pytest.raises(ValueError):
            TempSpaceGuard(FakeLogger(), Path("/scratch"), "sometimes")
