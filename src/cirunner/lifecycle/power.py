"""
ACPI power-button listener.

Cloud instances being reclaimed usually receive an ACPI power-button event
before they are powered off; acpid relays it on a unix socket.
"""

import asyncio
import logging
import sys
from typing import Callable

logger = logging.getLogger(__name__)

ACPID_SOCKET = "/var/run/acpid.socket"
ACPI_REASON = "ACPI shutdown"


def is_power_event(data: str) -> bool:
    text = data.lower()
    return "power" in text and "button" in text


class PowerEventListener:
    name = "acpi-listener"

    def __init__(self, trigger: Callable[[str], None], socket_path: str = ACPID_SOCKET):
        self.trigger = trigger
        self.socket_path = socket_path

    @staticmethod
    def available() -> bool:
        return sys.platform.startswith("linux")

    async def run(self) -> None:
        try:
            reader, writer = await asyncio.open_unix_connection(self.socket_path)
        except OSError as e:
            logger.warning(
                f"Error connecting to ACPI socket: {e}. "
                "The acpid.service helps with instance termination detection."
            )
            return

        logger.info("Connected to acpid service.")
        try:
            while True:
                data = await reader.read(1024)
                if not data:
                    logger.debug("acpid closed the connection")
                    return
                if is_power_event(data.decode("utf-8", errors="replace")):
                    self.trigger(ACPI_REASON)
                    return
        finally:
            writer.close()
