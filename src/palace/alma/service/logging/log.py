from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from palace.alma.service.logging.configuration import LogLevel
from palace.alma.util.datetime_helpers import from_timestamp
from palace.alma.util.json import json_serializer

# Attributes added to a LogRecord with this prefix, usually through the
# `extra` argument of a logging call, end up in the JSON output.
EXTRA_PREFIX = "palace_"


def _decode(value: Any) -> Any:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class JSONFormatter(logging.Formatter):
    """Format each log record as a single line of JSON."""

    def __init__(self) -> None:
        super().__init__()
        self.hostname = socket.getfqdn()
        self.main_thread_id = threading.main_thread().ident

    @staticmethod
    def _is_json_serializable(value: Any) -> bool:
        try:
            json_serializer(value)
        except (TypeError, ValueError):
            return False
        return True

    @staticmethod
    def _message(record: logging.LogRecord) -> str:
        # Messages and arguments may be UTF-8 bytes as well as str.
        message = _decode(record.msg)
        args: tuple[Any, ...] | dict[Any, Any] | None = None
        if isinstance(record.args, Mapping):
            args = {_decode(k): _decode(v) for k, v in record.args.items()}
        elif isinstance(record.args, Sequence):
            args = tuple(_decode(arg) for arg in record.args)
        if not args:
            return str(message)

        try:
            return str(message % args)
        except Exception as e:
            return (
                f"Log message could not be formatted. Exception: {e!r}. "
                f"Original message: message={message!r} args={args!r}"
            )

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "host": self.hostname,
            "name": record.name,
            "level": record.levelname,
            "filename": record.filename,
            "message": self._message(record),
            "timestamp": from_timestamp(record.created).isoformat(),
        }
        if record.exc_info:
            data["traceback"] = self.formatException(record.exc_info)
        if record.process:
            data["process"] = record.process
        if record.thread and record.thread != self.main_thread_id:
            data["thread"] = record.thread
        if record.stack_info:
            data["stack"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if not key.startswith(EXTRA_PREFIX) or value is None:
                continue
            name = key.removeprefix(EXTRA_PREFIX)
            # The standard fields always win.
            if name not in data and self._is_json_serializable(value):
                data[name] = value

        return json_serializer(data)


def create_stream_handler(formatter: logging.Formatter) -> logging.Handler:
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    return stream_handler


def setup_logging(
    level: LogLevel,
    verbose_level: LogLevel,
    stream: logging.Handler,
) -> None:
    """
    Send all logging to `stream` at `level`.

    httpx and httpcore log every connection, so they are held to
    `verbose_level` instead.
    """
    logging.basicConfig(force=True, level=level.value, handlers=[stream])
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(verbose_level.value)
