#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Detection of the ROM running on the device under test.

After reset the ROM prints a signature line such as ``TestROM:6a3b9f01`` on
the console UART, the hexadecimal value being the USR_ACCESS word of the FPGA
bitstream it was built into. Comparing it with the USR_ACCESS of a bitstream
tells whether that bitstream is already loaded.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from probehal.exceptions import ProbeHalError
from probehal.utils.hal_enum import HalEnum
from probehal.utils.misc import Timeout

if TYPE_CHECKING:
    from probehal.io.uart import Uart

logger = logging.getLogger(__name__)

# write of one word into the USR_ACCESS configuration register
USR_ACCESS_MARKER = b"\x30\x01\xa0\x01"
ROM_SIGNATURE_REGEX = re.compile(r"(\w*ROM):([^\r\n]+)[\r\n]")


class RomKind(HalEnum):
    """Kind of the ROM built into the FPGA bitstream."""

    ROM = (0, "ROM", "Production ROM")
    TEST_ROM = (1, "TestROM", "Test ROM")


def get_usr_access(bitstream: bytes) -> int:
    """Get the USR_ACCESS value of the bitstream.

    :param bitstream: FPGA bitstream.
    :return: The 32-bit USR_ACCESS value.
    :raises ProbeHalError: Bitstream does not set USR_ACCESS.
    """
    offset = bitstream.find(USR_ACCESS_MARKER)
    if offset < 0 or offset + len(USR_ACCESS_MARKER) + 4 > len(bitstream):
        raise ProbeHalError("USR_ACCESS value not found in the bitstream")
    start = offset + len(USR_ACCESS_MARKER)
    return int.from_bytes(bitstream[start : start + 4], "big")


class RomDetector(ABC):
    """Checks whether the expected ROM is running on the device under test."""

    @abstractmethod
    def detect(self, uart: "Uart") -> bool:
        """Watch the console for the ROM signature.

        Called right after the device under test was released from reset.

        :param uart: Console UART of the device under test.
        :return: True if the expected ROM is running.
        """


class RomDetect(RomDetector):
    """Match the ROM signature printed on the console against a bitstream."""

    def __init__(self, rom_kind: RomKind, bitstream: bytes, timeout: float) -> None:
        """Initialize the detector.

        :param rom_kind: Expected kind of ROM.
        :param bitstream: Bitstream whose USR_ACCESS the ROM must report.
        :param timeout: How long to wait for the signature in seconds.
        """
        self.rom_kind = rom_kind
        self.usr_access = get_usr_access(bitstream)
        self.timeout = timeout

    def _wait_for_signature(self, uart: "Uart") -> Optional[re.Match]:
        timeout = Timeout(self.timeout)
        received = ""
        while not timeout.overflow():
            data = uart.read(256, timeout=0.1)
            if not data:
                continue
            received += data.decode("utf-8", errors="replace")
            match = ROM_SIGNATURE_REGEX.search(received)
            if match:
                return match
        return None

    def detect(self, uart: "Uart") -> bool:
        """Watch the console for the ROM signature.

        :param uart: Console UART of the device under test.
        :return: True if the ROM kind and USR_ACCESS value match.
        """
        match = self._wait_for_signature(uart)
        if match is None:
            logger.info(f"No ROM signature received within {self.timeout}s")
            return False
        kind, version = match.group(1), match.group(2).strip()
        logger.debug(f"Detected ROM signature {kind}:{version}")
        if not RomKind.contains(kind) or RomKind.from_label(kind) != self.rom_kind:
            return False
        try:
            return int(version, 16) == self.usr_access
        except ValueError:
            logger.debug(f"Unable to parse ROM version '{version}'")
            return False
