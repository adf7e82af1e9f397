"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path

import pytest

from eventprint.gateway import NotFoundError
from eventprint.models.photo import PendingPhotos, PhotoRecord, PhotoStatus, StatusAck
from eventprint.models.printer import PrinterConfig
from eventprint.printers.base import BasePlatform, PrintCommandError

PNG_DATA_URL = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


def make_photo(photo_id: str, event_id: str = "E1", image_data: str = PNG_DATA_URL) -> PhotoRecord:
    return PhotoRecord(id=photo_id, event_id=event_id, image_data=image_data)


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeGateway:
    """In-memory stand-in for the admin panel gateway."""

    def __init__(self, photos: list[PhotoRecord] | None = None) -> None:
        self.photos = photos or []
        self.fetch_pending_calls: list[tuple[str, int]] = []
        self.fetch_pending_error: Exception | None = None
        self.fetch_delay = 0.0
        self.report_error: Exception | None = None
        self.reported: list[tuple[str, PhotoStatus]] = []
        # Photos whose status report went through are no longer pending
        self.done: set[str] = set()
        self._in_flight = 0
        self.max_in_flight = 0

    async def fetch_pending(self, event_id, status=PhotoStatus.PENDING, limit=10):
        self.fetch_pending_calls.append((event_id, limit))
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.fetch_delay:
                await asyncio.sleep(self.fetch_delay)
            if self.fetch_pending_error:
                raise self.fetch_pending_error
        finally:
            self._in_flight -= 1
        photos = [p for p in self.photos if p.event_id == event_id and p.id not in self.done][:limit]
        return PendingPhotos(photos=photos, count=len(photos))

    async def fetch_photo(self, photo_id):
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        raise NotFoundError(f"Photo {photo_id} not found", status=404)

    async def report_status(self, photo_id, status):
        self.reported.append((photo_id, status))
        if self.report_error:
            raise self.report_error
        self.done.add(photo_id)
        return StatusAck(success=True, message=f"Print status updated to {status}")


class FakeDispatcher:
    """Records dispatched photos and fails the ones it is told to."""

    def __init__(self, failing: set[str] | None = None, error: Exception | None = None) -> None:
        self.failing = failing or set()
        self.error = error or PrintCommandError("Print command failed with code 1")
        self.attempts: list[str] = []
        self.printed: list[str] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def dispatch(self, photo):
        self.attempts.append(photo.id)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if photo.id in self.failing:
            raise self.error
        self.printed.append(photo.id)


class FakePlatform(BasePlatform):
    """Print facility that records files instead of spawning commands."""

    name = "fake"

    def __init__(self, failing: set[str] | None = None, printers: list[str] | None = None) -> None:
        self.failing = failing or set()
        self.printers = printers or []
        self.printed: list[tuple[str, bytes]] = []
        self.gate: asyncio.Event | None = None
        self._in_flight = 0
        self.max_in_flight = 0

    def print_attempts(self, file_path: Path, config: PrinterConfig) -> list[list[str]]:
        return [["fake-print", str(file_path)]]

    def list_printers_command(self) -> list[str]:
        return ["fake-list"]

    def parse_printers(self, output: str) -> list[str]:
        return output.split()

    async def print_file(self, file_path: Path, config: PrinterConfig) -> None:
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            self.printed.append((file_path.name, file_path.read_bytes()))
            if self.gate is not None:
                await self.gate.wait()
            if any(f"_{photo_id}_" in file_path.name for photo_id in self.failing):
                raise PrintCommandError("Print command failed with code 1")
        finally:
            self._in_flight -= 1

    async def list_printers(self) -> list[str]:
        return list(self.printers)
