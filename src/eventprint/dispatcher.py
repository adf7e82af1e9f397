"""Serialized dispatch of photos to the host's print facility."""

import asyncio
import base64
import binascii
import logging
import os
import re
import tempfile
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import aiohttp
from pydantic import BaseModel

from eventprint.models.photo import PhotoRecord
from eventprint.models.printer import PrinterConfig
from eventprint.printers import (
    BasePlatform,
    PrinterError,
    UnsupportedFormatError,
    create_platform,
)

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:image/([a-zA-Z0-9.+-]+);base64,")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")

IMAGE_SUFFIXES = {
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "png": ".png",
    "gif": ".gif",
    "webp": ".webp",
    "bmp": ".bmp",
}

# 20x20 PNG printed by the self-test when no sample image is available
PLACEHOLDER_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAABQAAAAUCAYAAACNiR0NAAAABmJLR0QA/wD/AP+gvaeTAAAACXBIWXMAAAsTAAALEwEAmpwYAAAAB3RJTUUH4AkE"
    "EjIVl5Jf9QAAAB1pVFh0Q29tbWVudAAAAAAAQ3JlYXRlZCB3aXRoIEdJTVBkLmUHAAAAGUlEQVQ4y2NgGAWjYBSMglEwCkbBKBgM4D8AE0wCvZJX"
    "7cQAAAAASUVORK5CYII="
)


class DispatcherStatus(BaseModel):
    """Snapshot of the physical print queue."""

    is_printing: bool
    queue_length: int
    current_job: str | None
    printer_name: str
    printer_status: str


class SelfTestResult(BaseModel):
    """Outcome of a printer self-test."""

    success: bool
    message: str
    error: str | None = None


@dataclass
class _PrintEntry:
    """A materialized temp file waiting for the printer."""

    path: Path
    photo_id: str
    result: asyncio.Future = field(repr=False)


def _settle(future: asyncio.Future, error: BaseException | None = None) -> None:
    # The waiting caller may have been cancelled
    if future.done():
        return
    if error is None:
        future.set_result(None)
    else:
        future.set_exception(error)


class PrintDispatcher:
    """Materializes photos as temp files and prints them one at a time.

    Print requests land in an internal FIFO of temp files. A single drain
    task owns the printer: while it runs, new requests only append to the
    FIFO and wait for their own entry to be printed.
    """

    def __init__(
        self,
        config: PrinterConfig,
        temp_dir: Path,
        *,
        platform: BasePlatform | None = None,
        simulate: bool = False,
        sample_image: Path | None = None,
        download_timeout: float = 30.0,
    ) -> None:
        self.config = config
        self.temp_dir = Path(temp_dir)
        self.simulate = simulate
        self.sample_image = sample_image
        self.download_timeout = download_timeout
        self._platform = platform
        self._queue: deque[_PrintEntry] = deque()
        self._printing = False
        self._current: Path | None = None
        self._drain_task: asyncio.Task | None = None

    @property
    def is_printing(self) -> bool:
        """Whether an OS print command is currently running."""
        return self._printing

    def _resolve_platform(self) -> BasePlatform:
        if self._platform is None:
            self._platform = create_platform()
        return self._platform

    async def print_photo(self, photo: PhotoRecord) -> bool:
        """Print a photo.

        Returns:
            True if the print this call enqueued completed, False on any failure.
        """
        try:
            await self.dispatch(photo)
        except Exception as e:
            logger.error(f"Failed to print photo {photo.id}: {e}")
            return False
        return True

    async def dispatch(self, photo: PhotoRecord) -> None:
        """Print a photo, raising on failure.

        The temp file created for the photo is removed whatever the outcome.

        Raises:
            UnsupportedFormatError: If the image payload can't be decoded.
            UnsupportedPlatformError: If the host has no print facility.
            PrintCommandError: If the print command fails.
            PrinterError: If the image can't be downloaded or written.
        """
        data, suffix = await self._load_image(photo)
        path = await asyncio.to_thread(self._write_temp_file, photo.id, data, suffix)
        logger.debug(f"Created temp file for printing: {path}")

        entry = _PrintEntry(path=path, photo_id=photo.id, result=asyncio.get_running_loop().create_future())
        self._queue.append(entry)
        self._process_print_queue()
        await entry.result

    async def _load_image(self, photo: PhotoRecord) -> tuple[bytes, str]:
        """Decode or download a photo's image payload."""
        image_data = photo.image_data
        match = _DATA_URL.match(image_data)
        if match:
            try:
                data = base64.b64decode(image_data[match.end() :], validate=True)
            except binascii.Error as e:
                raise UnsupportedFormatError(f"Invalid base64 image data for photo {photo.id}: {e}") from e
            if not data:
                raise UnsupportedFormatError(f"Empty image data for photo {photo.id}")
            return data, IMAGE_SUFFIXES.get(match.group(1).lower(), ".jpg")

        if image_data.startswith(("http://", "https://")):
            suffix = Path(urlparse(image_data).path).suffix.lower().lstrip(".")
            return await self._download(image_data), IMAGE_SUFFIXES.get(suffix, ".jpg")

        raise UnsupportedFormatError("Unsupported image data format. Expected base64 data URL or http(s) URL.")

    async def _download(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.download_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        raise PrinterError(f"Image download failed: {resp.status} from {url}")
                    return await resp.read()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise PrinterError(f"Image download failed: {e}") from e

    def _write_temp_file(self, photo_id: str, data: bytes, suffix: str) -> Path:
        """Write image bytes to a uniquely named file in the temp directory."""
        safe_id = _UNSAFE_NAME_CHARS.sub("_", photo_id)
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"{int(time.time() * 1000)}_{safe_id}_",
                suffix=suffix,
                dir=self.temp_dir,
            )
        except OSError as e:
            raise PrinterError(f"Failed to create temp file: {e}") from e

        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            self._cleanup(path)
            raise PrinterError(f"Failed to write temp file {path.name}: {e}") from e
        return path

    def _process_print_queue(self) -> None:
        """Start the drain task unless one is already running."""
        if self._printing or not self._queue:
            return
        self._printing = True
        self._drain_task = asyncio.create_task(self._drain(), name="print-dispatch")

    async def _drain(self) -> None:
        try:
            while self._queue:
                entry = self._queue.popleft()
                self._current = entry.path
                error: Exception | None = None
                try:
                    if self.simulate:
                        logger.info(f"Simulated print of {entry.path.name}")
                    else:
                        await self._resolve_platform().print_file(entry.path, self.config)
                except Exception as e:
                    error = e
                finally:
                    self._current = None
                    self._cleanup(entry.path)

                if error is None:
                    logger.info(f"Successfully printed: {entry.path.name}")
                else:
                    logger.error(f"Failed to print {entry.path.name} for photo {entry.photo_id}: {error}")
                _settle(entry.result, error)
        except asyncio.CancelledError:
            while self._queue:
                entry = self._queue.popleft()
                self._cleanup(entry.path)
                _settle(entry.result, PrinterError("Print dispatch cancelled"))
            raise
        finally:
            self._printing = False

    def _cleanup(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
            logger.debug(f"Cleaned up temp file: {path}")
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {path}: {e}")

    async def list_printers(self) -> list[str]:
        """List printers known to the host, or an empty list if none can be found."""
        try:
            return await self._resolve_platform().list_printers()
        except (PrinterError, OSError) as e:
            logger.error(f"Failed to get available printers: {e}")
            return []

    async def self_test(self) -> SelfTestResult:
        """Print a test page, or pretend to in simulate mode."""
        if self.simulate:
            logger.info("Simulate mode enabled, simulating test print")
            return SelfTestResult(success=True, message="Test print simulated successfully")

        if self.sample_image and self.sample_image.is_file():
            encoded = base64.b64encode(await asyncio.to_thread(self.sample_image.read_bytes)).decode()
            image_type = self.sample_image.suffix.lstrip(".").lower() or "jpeg"
            image_data = f"data:image/{image_type};base64,{encoded}"
        else:
            logger.warning("Test print image not found, using placeholder image")
            image_data = f"data:image/png;base64,{PLACEHOLDER_PNG}"

        photo = PhotoRecord(id="test-print", event_id="test", image_data=image_data)
        try:
            await self.dispatch(photo)
        except Exception as e:
            logger.error(f"Test print failed: {e}")
            return SelfTestResult(success=False, message="Failed to print test page", error=str(e))
        return SelfTestResult(success=True, message="Test print completed successfully")

    def get_status(self) -> DispatcherStatus:
        """Get the current print queue status."""
        return DispatcherStatus(
            is_printing=self._printing,
            queue_length=len(self._queue),
            current_job=self._current.name if self._current else None,
            printer_name=self.config.name or "default",
            printer_status="printing" if self._printing else "idle",
        )
