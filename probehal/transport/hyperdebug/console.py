#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""HyperDebug console and state shared by the HyperDebug interfaces.

Besides the USB bulk interfaces, HyperDebug is controlled by text commands
sent to its console serial port. Every command is echoed back, followed by
its output lines and the ``> `` prompt.
"""

import logging
import re
from typing import Callable, Optional, TypeVar

from probehal.exceptions import ProbeHalError
from probehal.io.uart import Uart
from probehal.transport import TransportCommunicationError
from probehal.utils.interfaces.device.base import DeviceBase
from probehal.utils.misc import Timeout

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# line of 'spi info' output: index, name and speed of a SPI bus
SPI_REGEX = re.compile(r"^ +(\d+) (\w+) (\d+) bps")
PROMPT = "> "


class HyperdebugConsole:
    """Text command interface of HyperDebug.

    :cvar DEFAULT_TIMEOUT: Time to wait for the prompt in seconds.
    """

    DEFAULT_TIMEOUT = 1.0

    def __init__(self, uart: Uart, timeout: Optional[float] = None) -> None:
        """Initialize the console.

        :param uart: Serial port of the console.
        :param timeout: Time to wait for the prompt in seconds.
        """
        self.uart = uart
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def run_command(self, cmd: str) -> list[str]:
        """Execute command and collect its output.

        :param cmd: Command line.
        :return: Output lines without the command echo and the prompt.
        :raises ProbeHalTimeoutError: Prompt did not appear in time.
        """
        logger.debug(f"HyperDebug command: {cmd}")
        self.uart.clear_rx_buffer()
        self.uart.write(f"{cmd}\n".encode("utf-8"))
        timeout = Timeout(self.timeout)
        received = ""
        while not received.endswith(PROMPT):
            timeout.overflow(raise_exc=True)
            received += self.uart.read(256).decode("utf-8", errors="replace")
        lines = received[: -len(PROMPT)].replace("\r", "").split("\n")
        # drop the echo
        while lines and lines[0].strip() in ("", cmd):
            lines.pop(0)
        output = [line for line in lines if line.strip()]
        logger.debug(f"HyperDebug output: {output}")
        return output

    def cmd_no_output(self, cmd: str) -> None:
        """Execute command not expected to print anything.

        :param cmd: Command line.
        :raises TransportCommunicationError: The command printed something, usually an error.
        """
        output = self.run_command(cmd)
        if output:
            raise TransportCommunicationError(f"Unexpected output of '{cmd}': {output}")

    def cmd_one_line_output(self, cmd: str) -> str:
        """Execute command printing exactly one line.

        :param cmd: Command line.
        :return: The output line.
        :raises TransportCommunicationError: Other number of lines printed.
        """
        output = self.run_command(cmd)
        if len(output) != 1:
            raise TransportCommunicationError(f"Expected one line output of '{cmd}': {output}")
        return output[0]

    def cmd_one_line_output_match(self, cmd: str, regex: re.Pattern) -> re.Match:
        """Execute command printing exactly one line matching the pattern.

        :param cmd: Command line.
        :param regex: Expected format of the line.
        :return: The match object.
        :raises TransportCommunicationError: Unexpected output.
        """
        line = self.cmd_one_line_output(cmd)
        match = regex.match(line)
        if not match:
            raise TransportCommunicationError(f"Unexpected output of '{cmd}': {line}")
        return match


class Inner:
    """State shared by all interfaces of one HyperDebug.

    Holds the USB device, the console and the SPI bus currently selected on
    the USB-SPI bridge.
    """

    def __init__(self, usb_device: DeviceBase, console: HyperdebugConsole) -> None:
        self.usb_device = usb_device
        self.console = console
        self.selected_spi: Optional[int] = None

    def cmd_with_fallback(self, primary: str, legacy: str, runner: Callable[[str], _T]) -> _T:
        """Execute command in current syntax, retry in legacy syntax on failure.

        Older firmware knows only the legacy syntax.

        :param primary: Command in current syntax.
        :param legacy: Command in legacy syntax.
        :param runner: Executes a command line and interprets its output.
        :return: Result of the runner.
        :raises TransportCommunicationError: Both forms failed.
        """
        try:
            return runner(primary)
        except ProbeHalError as primary_exc:
            logger.warning(f"Command '{primary}' failed ({str(primary_exc)}), trying '{legacy}'")
            try:
                return runner(legacy)
            except ProbeHalError as legacy_exc:
                raise TransportCommunicationError(
                    f"Command failed in both syntaxes: '{primary}': {primary_exc.description}, "
                    f"'{legacy}': {legacy_exc.description}"
                ) from legacy_exc
