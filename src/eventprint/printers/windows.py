"""Windows print facility."""

from pathlib import Path

from eventprint.models.printer import PrinterConfig
from eventprint.printers.base import BasePlatform

MSPAINT_PATH = r"C:\Windows\System32\mspaint.exe"


class WindowsPlatform(BasePlatform):
    """Prints with Paint's silent print switch, falling back to the shell print verb.

    The shell verb hands the file to whatever application is registered for
    printing images, so it works on machines where Paint was removed.
    """

    name = "windows"

    def __init__(self, mspaint_path: str = MSPAINT_PATH) -> None:
        self._mspaint_path = mspaint_path

    def print_attempts(self, file_path: Path, config: PrinterConfig) -> list[list[str]]:
        ps_path = str(file_path).replace("\\", "/")
        return [
            [self._mspaint_path, "/p", str(file_path)],
            [
                "powershell",
                "-NoProfile",
                "-Command",
                f'Start-Process -FilePath "{ps_path}" -Verb Print',
            ],
        ]

    def list_printers_command(self) -> list[str]:
        return ["wmic", "printer", "get", "name"]

    def parse_printers(self, output: str) -> list[str]:
        lines = [line.strip() for line in output.splitlines()]
        # First non-empty line is the "Name" column header
        lines = [line for line in lines if line]
        return lines[1:]
