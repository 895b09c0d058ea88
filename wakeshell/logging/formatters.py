"""Logging formatters for stream routing."""

import logging


class StreamFormatter(logging.Formatter):
    """Logging formatter that prefixes warnings and errors with their level.

    Informational lines stay bare so progress output reads like plain CLI text.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a level prefix for WARNING and above.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message
        """
        msg = super().format(record)

        if record.levelno >= logging.WARNING:
            return f"[{record.levelname.lower()}] {msg}"

        return msg
