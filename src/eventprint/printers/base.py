"""Abstract base class for platform print facilities."""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from eventprint.models.printer import PrinterConfig

logger = logging.getLogger(__name__)


class PrinterError(Exception):
    """Exception raised for printer-related errors."""

    pass


class UnsupportedFormatError(PrinterError):
    """Raised when a photo's image payload is neither a data URL nor an http(s) URL."""

    pass


class UnsupportedPlatformError(PrinterError):
    """Raised when the host operating system has no known print facility."""

    pass


class PrintCommandError(PrinterError):
    """Raised when the OS print command fails to start or exits non-zero."""

    pass


class BasePlatform(ABC):
    """A host operating system's printing facility.

    Each platform describes its print command as an ordered sequence of
    attempts. The next attempt is only tried when the previous one could
    not be started at all; a command that runs and exits non-zero is a
    print failure.
    """

    name: str = "base"

    @abstractmethod
    def print_attempts(self, file_path: Path, config: PrinterConfig) -> list[list[str]]:
        """Build the command lines to try, in order, for printing a file."""
        pass

    @abstractmethod
    def list_printers_command(self) -> list[str]:
        """Command line that reports the installed printers."""
        pass

    @abstractmethod
    def parse_printers(self, output: str) -> list[str]:
        """Extract printer names from the enumeration command's output."""
        pass

    async def print_file(self, file_path: Path, config: PrinterConfig) -> None:
        """Send a file to the printer.

        Raises:
            PrintCommandError: If no attempt could be started or the command failed.
        """
        attempts = self.print_attempts(file_path, config)
        for index, args in enumerate(attempts):
            logger.debug(f"Printing with command: {' '.join(args)}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as e:
                if index + 1 < len(attempts):
                    logger.warning(f"{args[0]} failed to start ({e}); trying next print method")
                    continue
                raise PrintCommandError(f"Print command failed to start: {e}") from e

            returncode = await process.wait()
            if returncode != 0:
                raise PrintCommandError(f"Print command failed with code {returncode}")
            return

        raise PrintCommandError(f"No print command available on {self.name}")

    async def list_printers(self) -> list[str]:
        """List printer names reported by the platform."""
        process = await asyncio.create_subprocess_exec(
            *self.list_printers_command(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await process.communicate()
        if process.returncode != 0:
            # lpstat exits non-zero when no printers are configured
            return []
        return self.parse_printers(stdout.decode(errors="replace"))
