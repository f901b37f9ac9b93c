# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the error hierarchy and CLI formatting."""
from __future__ import annotations

import pytest
from vmsparsify.core.exceptions import (
    EXIT_TMPDIR_FAIL,
    ConvertError,
    EngineError,
    Fatal,
    IntegrityError,
    PreflightError,
    SparsifyError,
    TmpSpaceError,
    format_exception_for_cli,
    wrap_engine,
    wrap_fatal,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test exception class hierarchy and basic functionality."""

    def test_base_exception_creation(self):
        err = SparsifyError(code=1, msg="Test error")

        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert err.context == {}

    def test_fatal_subclasses(self):
        for cls in (PreflightError, TmpSpaceError, IntegrityError, EngineError, ConvertError):
            assert issubclass(cls, Fatal)
            assert issubclass(cls, SparsifyError)

    def test_tmpspace_error_has_distinct_exit_code(self):
        assert TmpSpaceError(msg="no room").code == EXIT_TMPDIR_FAIL == 2

    def test_tmpspace_error_explicit_code_kept(self):
        assert TmpSpaceError(code=7, msg="no room").code == 7

    def test_other_fatals_exit_one(self):
        assert PreflightError(msg="x").code == 1
        assert ConvertError(msg="x").code == 1

    def test_exit_code_clamped(self):
        assert Fatal(code=-5, msg="x").code == 1
        assert Fatal(code=999, msg="x").code == 255
        assert Fatal(code="nope", msg="x").code == 1

    def test_message_is_one_line(self):
        err = Fatal(msg="first\nsecond\r\nthird")
        assert str(err) == "first second third"

    def test_empty_message_falls_back_to_class_name(self):
        assert IntegrityError(msg="").msg == "IntegrityError"

    def test_with_context(self):
        err = SparsifyError(msg="Error").with_context(device="/dev/sda1", written=12)
        assert err.context == {"device": "/dev/sda1", "written": 12}

    def test_raise_and_catch_as_fatal(self):
        with pytest.raises(Fatal) as ei:
            raise IntegrityError(msg="pwrite: short write restoring swap partition header")
        assert "short write" in str(ei.value)


@pytest.mark.unit
class TestFormatting:

    def test_user_message_with_context_and_cause(self):
        cause = RuntimeError("boom")
        err = EngineError(msg="libguestfs error: launch", cause=cause, context={"op": "launch"})
        s = err.user_message(include_context=True, include_cause=True)
        assert "libguestfs error: launch" in s
        assert "op='launch'" in s
        assert "RuntimeError: boom" in s

    def test_to_dict(self):
        err = ConvertError(msg="external command failed", context={"rc": 1})
        d = err.to_dict()
        assert d == {
            "type": "ConvertError",
            "code": 1,
            "message": "external command failed",
            "context": {"rc": 1},
        }

    def test_to_dict_with_cause(self):
        err = Fatal(msg="x", cause=ValueError("bad"))
        assert err.to_dict(include_cause=True)["cause"] == {"type": "ValueError", "message": "bad"}

    def test_format_for_cli_levels(self):
        err = Fatal(msg="top", cause=OSError("disk"), context={"k": "v"})
        assert format_exception_for_cli(err) == "top"
        assert "k='v'" in format_exception_for_cli(err, verbose=1)
        assert "OSError: disk" in format_exception_for_cli(err, verbose=2)

    def test_format_for_cli_plain_exception(self):
        assert format_exception_for_cli(ValueError("bad value")) == "bad value"
        assert format_exception_for_cli(ValueError("bad"), verbose=2) == "ValueError: bad"
        assert format_exception_for_cli(ValueError()) == "ValueError"


@pytest.mark.unit
class TestWrappers:

    def test_wrap_engine(self):
        e = RuntimeError("appliance died")
        err = wrap_engine("libguestfs error: launch", e, op="launch")
        assert isinstance(err, EngineError)
        assert err.cause is e
        assert err.context == {"op": "launch"}

    def test_wrap_fatal_without_context(self):
        err = wrap_fatal("oops", code=3)
        assert err.code == 3
        assert err.context == {}
