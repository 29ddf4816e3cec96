import argparse
import logging
import os
import sys
from typing import IO, Any

from palace.alma.service.logging.configuration import LoggingConfiguration
from palace.alma.service.logging.log import (
    JSONFormatter,
    create_stream_handler,
    setup_logging,
)


class Script:
    @property
    def script_name(self) -> str:
        """Find or guess the name of the script.

        This is either the .name of the Script object or the name of
        the class.
        """
        return getattr(self, "name", self.__class__.__name__)

    @property
    def log(self) -> logging.Logger:
        if not hasattr(self, "_log"):
            self._log = logging.getLogger(self.script_name)
        return self._log

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        raise NotImplementedError()

    @classmethod
    def parse_command_line(
        cls, cmd_args: list[str] | None = None, stdin: IO[str] = sys.stdin
    ) -> argparse.Namespace:
        return cls.arg_parser().parse_args(cmd_args)

    @classmethod
    def read_stdin_lines(cls, stdin: IO[str]) -> list[str]:
        """Read lines from a (possibly mocked, possibly empty) standard input."""
        if stdin is not sys.stdin or not os.isatty(0):
            # A file has been redirected into standard input. Grab its
            # lines.
            lines = [x.strip() for x in stdin.readlines()]
        else:
            lines = []
        return [x for x in lines if x]

    def __init__(self, logging_config: LoggingConfiguration | None = None) -> None:
        config = logging_config or LoggingConfiguration()
        setup_logging(
            config.level,
            config.verbose_level,
            create_stream_handler(JSONFormatter()),
        )

    def run(self, *args: Any, **kwargs: Any) -> None:
        try:
            self.do_run(*args, **kwargs)
        except Exception as e:
            logging.error("Fatal exception while running script: %s", e, exc_info=e)
            raise

    def do_run(self, *args: Any, **kwargs: Any) -> None:
        raise NotImplementedError()
