"""Platform print facilities for eventprint."""

import sys

from eventprint.printers.base import (
    BasePlatform,
    PrintCommandError,
    PrinterError,
    UnsupportedFormatError,
    UnsupportedPlatformError,
)
from eventprint.printers.unix import LprPlatform
from eventprint.printers.windows import WindowsPlatform

__all__ = [
    "BasePlatform",
    "LprPlatform",
    "PrintCommandError",
    "PrinterError",
    "UnsupportedFormatError",
    "UnsupportedPlatformError",
    "WindowsPlatform",
    "create_platform",
]


def create_platform(platform: str | None = None) -> BasePlatform:
    """Factory function to create the print facility for a host platform.

    Args:
        platform: A ``sys.platform`` value. Defaults to the running host.

    Raises:
        UnsupportedPlatformError: If the platform has no print facility.
    """
    platform = platform or sys.platform
    platform_classes: dict[str, type[BasePlatform]] = {
        "linux": LprPlatform,
        "darwin": LprPlatform,
        "win32": WindowsPlatform,
    }
    platform_class = platform_classes.get(platform)
    if not platform_class:
        raise UnsupportedPlatformError(f"Unsupported platform: {platform}")
    return platform_class()
