import logging

import pytest

from wakeshell.logging import StreamFormatter, StreamRoutingFilter
from wakeshell.utils import log_and_print_error


def make_record(level: int, msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("wakeshell", level, __file__, 1, msg, None, None)


class TestStreamRoutingFilter:
    def test_stdout_takes_info_and_debug(self) -> None:
        stdout = StreamRoutingFilter("stdout")

        assert stdout.filter(make_record(logging.INFO))
        assert stdout.filter(make_record(logging.DEBUG))
        assert not stdout.filter(make_record(logging.WARNING))

    def test_stderr_takes_warnings_and_above(self) -> None:
        stderr = StreamRoutingFilter("stderr")

        assert stderr.filter(make_record(logging.WARNING))
        assert stderr.filter(make_record(logging.CRITICAL))
        assert not stderr.filter(make_record(logging.INFO))

    def test_rejects_unknown_stream(self) -> None:
        with pytest.raises(ValueError, match="stdout"):
            StreamRoutingFilter("file")


class TestStreamFormatter:
    def test_info_is_bare(self) -> None:
        formatter = StreamFormatter("%(message)s")

        assert formatter.format(make_record(logging.INFO)) == "hello"

    def test_warning_is_prefixed(self) -> None:
        formatter = StreamFormatter("%(message)s")

        assert formatter.format(make_record(logging.WARNING)) == "[warning] hello"
        assert formatter.format(make_record(logging.CRITICAL)) == "[critical] hello"


def test_log_and_print_error(capsys, caplog) -> None:
    with caplog.at_level(logging.ERROR):
        log_and_print_error("Failed to stop %s: %s", "i-123", "denied")

    assert capsys.readouterr().err == "Error: Failed to stop i-123: denied\n"
    assert "Failed to stop i-123: denied" in caplog.text
