from __future__ import annotations

import argparse
import asyncio
import sys
from typing import IO

from palace.alma.api.data import StatusSummary
from palace.alma.api.driver import AlmaAPI
from palace.alma.api.settings import AlmaSettings
from palace.alma.scripts.base import Script
from palace.alma.service.logging.configuration import LoggingConfiguration
from palace.alma.util.json import json_serializer


class RecordStatusScript(Script):
    """Print the items and availability of one or more Alma bib records.

    Record ids are taken from the command line, and from standard input
    if a file is redirected into it.
    """

    name = "palace-alma-status"

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description=cls.__doc__)
        parser.add_argument(
            "record_ids",
            help="An Alma MMS id to look up.",
            metavar="RECORD_ID",
            nargs="*",
        )
        parser.add_argument(
            "--json",
            help="Print the result as a JSON document.",
            action="store_true",
        )
        return parser

    @classmethod
    def parse_command_line(
        cls, cmd_args: list[str] | None = None, stdin: IO[str] = sys.stdin
    ) -> argparse.Namespace:
        parsed = cls.arg_parser().parse_args(cmd_args)
        parsed.record_ids = parsed.record_ids + cls.read_stdin_lines(stdin)
        return parsed

    def __init__(
        self,
        settings: AlmaSettings | None = None,
        output: IO[str] | None = None,
        logging_config: LoggingConfiguration | None = None,
    ) -> None:
        super().__init__(logging_config)
        # Settings are loaded here so that a bad configuration stops us
        # before any request is made.
        self.settings = settings or AlmaSettings()
        self.output = output or sys.stdout

    def do_run(
        self, cmd_args: list[str] | None = None, stdin: IO[str] = sys.stdin
    ) -> None:
        args = self.parse_command_line(cmd_args, stdin)
        if not args.record_ids:
            raise ValueError("You must specify at least one record id.")
        summaries = asyncio.run(self.look_up(args.record_ids))
        if args.json:
            self.output.write(json_serializer(summaries, indent=2) + "\n")
        else:
            for summary in summaries:
                self.write_summary(summary)

    async def look_up(self, record_ids: list[str]) -> list[StatusSummary]:
        async with AlmaAPI(self.settings) as api:
            return await api.get_statuses(record_ids)

    def write_summary(self, summary: StatusSummary) -> None:
        if summary.error:
            self.output.write(f"{summary.record_id}: error: {summary.error}\n")
            return
        self.output.write(f"{summary.record_id}: {summary.status}\n")
        for item in summary.items:
            line = f"  {item.number}. {item.barcode} [{item.status}] {item.location}"
            if item.call_number:
                line += f" ({item.call_number})"
            if item.due_date:
                line += f", due {item.due_date}"
            self.output.write(line + "\n")


def main() -> None:
    RecordStatusScript().run()
