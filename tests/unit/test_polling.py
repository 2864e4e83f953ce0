"""Unit tests for the encoding status poller."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from cenc_encoder.encoding.polling import (
    EncodingStatusPoller,
    collect_error_messages,
    status_of,
)
from cenc_encoder.shared.exceptions import EncodingFailedError, EncodingTimeoutError, RemoteCallError
from cenc_encoder.shared.models import EncodingStatus, PollState


def _task(status, messages=None):
    return SimpleNamespace(status=status, progress=0, messages=messages or [])


def _message(message_type, text):
    return SimpleNamespace(type=message_type, text=text)


def _status_source(*statuses):
    """Status callable that returns the given statuses in order."""
    return MagicMock(side_effect=[_task(s) if isinstance(s, str) else s for s in statuses])


class TestStatusHelpers:
    def test_status_of_plain_string(self):
        assert status_of(_task("RUNNING")) == EncodingStatus.RUNNING

    def test_status_of_enum_value(self):
        """Test SDK enums are normalized through their value."""
        assert status_of(_task(SimpleNamespace(value="FINISHED"))) == EncodingStatus.FINISHED

    def test_collect_error_messages_keeps_errors_only(self):
        task = _task(
            "ERROR",
            [
                _message("INFO", "Downloading input"),
                _message("ERROR", "Input file not found"),
                _message(SimpleNamespace(value="ERROR"), "Transfer aborted"),
            ],
        )

        assert collect_error_messages(task) == ["Input file not found", "Transfer aborted"]

    def test_collect_error_messages_without_messages(self):
        assert collect_error_messages(SimpleNamespace(status="ERROR", messages=None)) == []


class TestEncodingStatusPoller:
    """Tests for the polling state machine."""

    def test_finishes_on_first_finished(self, fake_clock):
        get_status = _status_source("QUEUED", "RUNNING", "RUNNING", "FINISHED")
        poller = EncodingStatusPoller(
            get_status, interval=5.0, sleep=fake_clock.sleep, clock=fake_clock
        )

        poller.wait("E1")

        assert poller.state == PollState.FINISHED
        assert get_status.call_count == 4
        assert poller.observations[-1] == EncodingStatus.FINISHED

    def test_sleeps_before_every_query(self, fake_clock):
        """Test the interval elapses before each status query."""
        get_status = _status_source("RUNNING", "FINISHED")
        poller = EncodingStatusPoller(
            get_status, interval=5.0, sleep=fake_clock.sleep, clock=fake_clock
        )

        poller.wait("E1")

        assert fake_clock.sleeps == [5.0, 5.0]
        get_status.assert_called_with("E1")

    def test_error_stops_polling(self, fake_clock):
        """Test a failure status raises after exactly one failed observation."""
        get_status = _status_source(
            "RUNNING",
            _task("ERROR", [_message("ERROR", "Input file not found")]),
            "RUNNING",
        )
        poller = EncodingStatusPoller(get_status, sleep=fake_clock.sleep, clock=fake_clock)

        with pytest.raises(EncodingFailedError) as exc_info:
            poller.wait("E1")

        assert poller.state == PollState.FAILED
        assert get_status.call_count == 2
        assert poller.observations.count(EncodingStatus.ERROR) == 1
        assert exc_info.value.encoding_id == "E1"
        assert exc_info.value.messages == ["Input file not found"]
        assert exc_info.value.details["status"] == "ERROR"
        assert str(exc_info.value) == "Encoding failed"

    @pytest.mark.parametrize("status", ["CANCELED", "TRANSFER_ERROR"])
    def test_other_failure_statuses(self, fake_clock, status):
        get_status = _status_source(status)
        poller = EncodingStatusPoller(get_status, sleep=fake_clock.sleep, clock=fake_clock)

        with pytest.raises(EncodingFailedError):
            poller.wait("E1")

        assert poller.state == PollState.FAILED

    def test_deadline_exceeded(self, fake_clock):
        get_status = MagicMock(return_value=_task("RUNNING"))
        poller = EncodingStatusPoller(
            get_status, interval=5.0, max_wait=20.0, sleep=fake_clock.sleep, clock=fake_clock
        )

        with pytest.raises(EncodingTimeoutError) as exc_info:
            poller.wait("E1")

        assert poller.state == PollState.FAILED
        assert get_status.call_count == 4
        assert exc_info.value.details["last_status"] == "RUNNING"
        assert exc_info.value.details["max_wait_seconds"] == 20.0

    def test_unbounded_polls_until_terminal(self, fake_clock):
        """Test no deadline applies when max_wait is None."""
        statuses = ["RUNNING"] * 50 + ["FINISHED"]
        get_status = _status_source(*statuses)
        poller = EncodingStatusPoller(
            get_status, interval=60.0, max_wait=None, sleep=fake_clock.sleep, clock=fake_clock
        )

        poller.wait("E1")

        assert poller.state == PollState.FINISHED
        assert get_status.call_count == 51

    def test_on_status_receives_every_observation(self, fake_clock):
        seen = []
        poller = EncodingStatusPoller(
            _status_source("QUEUED", "RUNNING", "FINISHED"),
            sleep=fake_clock.sleep,
            clock=fake_clock,
            on_status=seen.append,
        )

        poller.wait("E1")

        assert seen == [EncodingStatus.QUEUED, EncodingStatus.RUNNING, EncodingStatus.FINISHED]

    def test_step_after_terminal_state(self, fake_clock):
        poller = EncodingStatusPoller(
            _status_source("FINISHED"), sleep=fake_clock.sleep, clock=fake_clock
        )
        poller.wait("E1")

        with pytest.raises(RuntimeError, match="terminal"):
            poller.step("E1")

    def test_unknown_status_rejected(self, fake_clock):
        """Test an unrecognized status fails the poll as a remote call error."""
        poller = EncodingStatusPoller(
            _status_source("EXPLODED"), sleep=fake_clock.sleep, clock=fake_clock
        )

        with pytest.raises(RemoteCallError) as exc_info:
            poller.wait("E1")

        assert exc_info.value.operation == "get_status"
        assert exc_info.value.details["status"] == "EXPLODED"
        assert poller.state == PollState.FAILED

    def test_status_of_unknown_value(self):
        with pytest.raises(RemoteCallError, match="EXPLODED"):
            status_of(_task(SimpleNamespace(value="EXPLODED")))
