"""Tests for platform print facilities."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from eventprint.models.printer import PrinterConfig
from eventprint.printers import (
    LprPlatform,
    PrintCommandError,
    UnsupportedPlatformError,
    WindowsPlatform,
    create_platform,
)

SUBPROCESS = "eventprint.printers.base.asyncio.create_subprocess_exec"


def make_process(returncode: int = 0, stdout: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.wait = AsyncMock(return_value=returncode)
    process.communicate = AsyncMock(return_value=(stdout, b""))
    return process


class TestCreatePlatform:
    """Tests for the create_platform factory function."""

    @pytest.mark.parametrize("platform", ["linux", "darwin"])
    def test_unix_platforms_use_lpr(self, platform):
        assert isinstance(create_platform(platform), LprPlatform)

    def test_windows(self):
        assert isinstance(create_platform("win32"), WindowsPlatform)

    def test_unsupported_platform(self):
        with pytest.raises(UnsupportedPlatformError, match="plan9"):
            create_platform("plan9")


class TestLprPlatform:
    """Tests for the lpr/lpstat facility."""

    def test_print_command(self):
        config = PrinterConfig(name="Canon_SELPHY", copies=2)
        attempts = LprPlatform().print_attempts(Path("/tmp/photo.jpg"), config)

        assert attempts == [["lpr", "-P", "Canon_SELPHY", "-#", "2", "/tmp/photo.jpg"]]

    def test_parse_printers(self):
        output = (
            "printer Canon_SELPHY is idle.  enabled since Sat 12 Oct 2024 10:00:00\n"
            "printer Office_Laser disabled since Sat 12 Oct 2024 10:00:00 -\n"
            "\treason unknown\n"
        )
        assert LprPlatform().parse_printers(output) == ["Canon_SELPHY", "Office_Laser"]

    def test_parse_no_printers(self):
        assert LprPlatform().parse_printers("No printers\n") == []
        assert LprPlatform().parse_printers("") == []

    @pytest.mark.asyncio
    async def test_print_file_success(self):
        with patch(SUBPROCESS, AsyncMock(return_value=make_process(0))) as spawn:
            await LprPlatform().print_file(Path("/tmp/photo.jpg"), PrinterConfig(name="Office"))

        spawn.assert_awaited_once()
        assert spawn.await_args.args == ("lpr", "-P", "Office", "-#", "1", "/tmp/photo.jpg")

    @pytest.mark.asyncio
    async def test_print_file_non_zero_exit(self):
        with patch(SUBPROCESS, AsyncMock(return_value=make_process(1))):
            with pytest.raises(PrintCommandError, match="code 1"):
                await LprPlatform().print_file(Path("/tmp/photo.jpg"), PrinterConfig())

    @pytest.mark.asyncio
    async def test_print_file_spawn_failure(self):
        with patch(SUBPROCESS, AsyncMock(side_effect=FileNotFoundError("lpr"))):
            with pytest.raises(PrintCommandError, match="failed to start"):
                await LprPlatform().print_file(Path("/tmp/photo.jpg"), PrinterConfig())

    @pytest.mark.asyncio
    async def test_list_printers(self):
        process = make_process(0, b"printer Office is idle.\n")
        with patch(SUBPROCESS, AsyncMock(return_value=process)) as spawn:
            printers = await LprPlatform().list_printers()

        assert printers == ["Office"]
        assert spawn.await_args.args == ("lpstat", "-p")

    @pytest.mark.asyncio
    async def test_list_printers_command_fails(self):
        with patch(SUBPROCESS, AsyncMock(return_value=make_process(1, b"lpstat: No destinations added.\n"))):
            assert await LprPlatform().list_printers() == []


class TestWindowsPlatform:
    """Tests for the Windows facility."""

    def test_print_attempts(self):
        attempts = WindowsPlatform().print_attempts(Path("C:\\temp\\photo.jpg"), PrinterConfig())

        assert len(attempts) == 2
        assert attempts[0][1:] == ["/p", "C:\\temp\\photo.jpg"]
        assert attempts[1][0] == "powershell"
        assert 'Start-Process -FilePath "C:/temp/photo.jpg" -Verb Print' in attempts[1][-1]

    def test_parse_printers(self):
        output = "Name                      \r\nMicrosoft Print to PDF    \r\nCanon SELPHY CP1500\r\n\r\n"
        assert WindowsPlatform().parse_printers(output) == ["Microsoft Print to PDF", "Canon SELPHY CP1500"]

    def test_parse_printers_header_only(self):
        assert WindowsPlatform().parse_printers("Name\r\n\r\n") == []

    @pytest.mark.asyncio
    async def test_falls_back_to_shell_print_when_paint_missing(self):
        spawn = AsyncMock(side_effect=[FileNotFoundError("mspaint.exe"), make_process(0)])
        with patch(SUBPROCESS, spawn):
            await WindowsPlatform().print_file(Path("C:\\temp\\photo.jpg"), PrinterConfig())

        assert spawn.await_count == 2
        assert spawn.await_args_list[1].args[0] == "powershell"

    @pytest.mark.asyncio
    async def test_no_fallback_when_paint_print_fails(self):
        spawn = AsyncMock(return_value=make_process(2))
        with patch(SUBPROCESS, spawn):
            with pytest.raises(PrintCommandError, match="code 2"):
                await WindowsPlatform().print_file(Path("C:\\temp\\photo.jpg"), PrinterConfig())

        assert spawn.await_count == 1

    @pytest.mark.asyncio
    async def test_both_methods_fail_to_start(self):
        spawn = AsyncMock(side_effect=[FileNotFoundError("mspaint.exe"), FileNotFoundError("powershell")])
        with patch(SUBPROCESS, spawn):
            with pytest.raises(PrintCommandError, match="failed to start"):
                await WindowsPlatform().print_file(Path("C:\\temp\\photo.jpg"), PrinterConfig())
