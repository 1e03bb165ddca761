"""
Unit tests for the ACPI power-button listener.
"""

import asyncio
from unittest.mock import Mock

import pytest

from cirunner.lifecycle.power import ACPI_REASON, PowerEventListener, is_power_event


@pytest.mark.unit
class TestIsPowerEvent:

    @pytest.mark.parametrize("data,expected", [
        ("button/power PBTN 00000080 00000000\n", True),
        ("BUTTON/POWER PWRF", True),
        ("button/lid LID close", False),
        ("ac_adapter ACPI0003:00 00000080 00000001", False),
        ("", False),
    ])
    def test_detects_power_button(self, data, expected):
        assert is_power_event(data) is expected


@pytest.mark.unit
class TestPowerEventListener:
    """Test cases for PowerEventListener against a local unix socket."""

    @pytest.mark.asyncio
    async def test_power_event_triggers_shutdown(self, temp_dir):
        socket_path = str(temp_dir / "acpid.socket")

        async def serve(reader, writer):
            writer.write(b"button/lid LID open\n")
            await writer.drain()
            writer.write(b"button/power PBTN 00000080 00000000\n")
            await writer.drain()
            await asyncio.sleep(0.5)
            writer.close()

        server = await asyncio.start_unix_server(serve, path=socket_path)
        trigger = Mock()
        try:
            await asyncio.wait_for(PowerEventListener(trigger, socket_path).run(), timeout=5)
        finally:
            server.close()
            await server.wait_closed()

        trigger.assert_called_once_with(ACPI_REASON)

    @pytest.mark.asyncio
    async def test_closed_connection_does_not_trigger(self, temp_dir):
        socket_path = str(temp_dir / "acpid.socket")

        async def serve(reader, writer):
            writer.write(b"button/lid LID close\n")
            await writer.drain()
            writer.close()

        server = await asyncio.start_unix_server(serve, path=socket_path)
        trigger = Mock()
        try:
            await asyncio.wait_for(PowerEventListener(trigger, socket_path).run(), timeout=5)
        finally:
            server.close()
            await server.wait_closed()

        trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_socket_logs_warning(self, temp_dir, caplog):
        trigger = Mock()

        await PowerEventListener(trigger, str(temp_dir / "missing.socket")).run()

        trigger.assert_not_called()
        assert "Error connecting to ACPI socket" in caplog.text
