"""Unit tests for healthcheck state."""

import pytest

from dp_api_clients.health import (
    STATUS_CRITICAL,
    STATUS_OK,
    STATUS_WARNING,
    CheckState,
    status_message,
)


def test_update_ok_stamps_success():
    state = CheckState(name="cantabular")
    state.update(STATUS_OK, status_message("cantabular", STATUS_OK), 200)

    assert state.healthy
    assert state.message == "cantabular is ok"
    assert state.last_success == state.last_checked
    assert state.last_failure < state.last_checked


def test_update_failure_stamps_failure():
    state = CheckState(name="cantabular")
    state.update(STATUS_WARNING, status_message("cantabular", STATUS_WARNING), 429)

    assert not state.healthy
    assert state.status_code == 429
    assert state.last_failure == state.last_checked
    assert state.last_success < state.last_checked


def test_update_rejects_unknown_status():
    with pytest.raises(ValueError, match="Unknown health status"):
        CheckState().update("BROKEN", "", 0)


def test_status_message_critical():
    assert status_message("cantabularAPIExt", STATUS_CRITICAL) == (
        "cantabularAPIExt functionality is unavailable or non-functioning"
    )
