"""Exit code mapping regression tests."""

import pytest

from sheetgrid.engine.dispatcher import EXIT_CODES, error_envelope, exit_code_for, success_envelope


def test_exit_code_success():
    assert exit_code_for(success_envelope("x", {})) == 0


@pytest.mark.parametrize("code", [
    "ERR_REF_INVALID",
    "ERR_INVALID_ARGUMENT",
    "ERR_VALIDATION",
    "ERR_USAGE",
    "ERR_SCRIPT_INVALID",
    "ERR_SCRIPT_STEP_FAILED",
    "ERR_MISSING_PARAM",
    "ERR_CONFIG_INVALID",
])
def test_exit_code_validation_class(code: str):
    assert exit_code_for(error_envelope("x", code, "bad")) == 10


def test_exit_code_conflict_class():
    env = error_envelope("x", "ERR_LOCK_HELD", "locked")
    assert exit_code_for(env) == 40


@pytest.mark.parametrize("code", [
    "ERR_SESSION_NOT_FOUND",
    "ERR_DATA_NOT_FOUND",
    "ERR_SESSION_CORRUPT",
    "ERR_DATA_CORRUPT",
    "ERR_SESSION_EXISTS",
    "ERR_IO_WRITE",
])
def test_exit_code_io_class(code: str):
    assert exit_code_for(error_envelope("x", code, "io")) == 50


def test_exit_code_internal_fallback():
    env = error_envelope("x", "ERR_INTERNAL", "boom")
    assert exit_code_for(env) == 90


def test_failed_envelope_without_errors_is_internal():
    env = success_envelope("x", None)
    env.ok = False
    assert exit_code_for(env) == EXIT_CODES["internal"]
