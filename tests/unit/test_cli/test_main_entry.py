# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import argparse
from unittest import mock

import pytest
from vmsparsify import __main__ as entry
from vmsparsify.core.exceptions import ConvertError, TmpSpaceError

from fakes.fake_logger import FakeLogger


def _run_main(side_effect):
    log = FakeLogger()
    with mock.patch.object(entry, "parse_args_with_config") as parse, \
            mock.patch.object(entry, "Sparsifier") as sparsifier:
        parse.return_value = (argparse.Namespace(verbose=0), {}, log)
        sparsifier.return_value.run.side_effect = side_effect
        with mock.patch.object(entry.SparsifyOptions, "from_args"):
            with pytest.raises(SystemExit) as ei:
                entry.main([])
    return ei.value.code, log


@pytest.mark.unit
class TestMain:

    def test_success(self):
        code, _ = _run_main(None)
        assert code == 0

    def test_tmpspace_exit_two(self):
        code, log = _run_main(TmpSpaceError(msg="not enough free space"))
        assert code == 2
        assert "not enough free space" in log.messages("error")

    def test_fatal_exit_one(self):
        code, _ = _run_main(ConvertError(msg="external command failed: qemu-img"))
        assert code == 1

    def test_interrupt_exit_one(self):
        code, log = _run_main(KeyboardInterrupt())
        assert code == 1
        assert log.messages("warning") == ["Interrupted by user (Ctrl+C)."]

    def test_unhandled_exit_one(self):
        code, log = _run_main(ValueError("weird"))
        assert code == 1
        assert "💥 UNHANDLED ValueError: weird" in log.messages("error")
