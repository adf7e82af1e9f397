"""CUPS/lpr print facility for Linux and macOS."""

import re
from pathlib import Path

from eventprint.models.printer import PrinterConfig
from eventprint.printers.base import BasePlatform

_PRINTER_LINE = re.compile(r"printer\s+(\S+)", re.IGNORECASE)


class LprPlatform(BasePlatform):
    """Prints through the ``lpr`` spooler and enumerates with ``lpstat``."""

    name = "lpr"

    def __init__(self, lpr_path: str = "lpr", lpstat_path: str = "lpstat") -> None:
        self._lpr_path = lpr_path
        self._lpstat_path = lpstat_path

    def print_attempts(self, file_path: Path, config: PrinterConfig) -> list[list[str]]:
        return [
            [
                self._lpr_path,
                "-P",
                config.name or "default",
                "-#",
                str(config.copies),
                str(file_path),
            ]
        ]

    def list_printers_command(self) -> list[str]:
        return [self._lpstat_path, "-p"]

    def parse_printers(self, output: str) -> list[str]:
        if "No printers" in output:
            return []
        names = []
        for line in output.splitlines():
            match = _PRINTER_LINE.search(line)
            if match:
                names.append(match.group(1))
        return names
