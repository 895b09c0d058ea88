"""Logging filters that split records between stdout and stderr."""

import logging


class StreamRoutingFilter(logging.Filter):
    """Pass records destined for one console stream.

    Parameters
    ----------
    stream : str
        "stdout" accepts records below WARNING, "stderr" accepts WARNING and above

    Raises
    ------
    ValueError
        If stream is not "stdout" or "stderr"
    """

    def __init__(self, stream: str) -> None:
        if stream not in ("stdout", "stderr"):
            raise ValueError(f"stream must be 'stdout' or 'stderr', got '{stream}'")
        super().__init__()
        self.stream = stream

    def filter(self, record: logging.LogRecord) -> bool:
        is_error = record.levelno >= logging.WARNING
        return is_error if self.stream == "stderr" else not is_error
