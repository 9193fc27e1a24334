#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""SPI bridge of the CW310 board.

The SAM3X controller bit-bangs SPI on four of its pins wired to the FPGA.
Transfers longer than a single control transfer are split automatically.
"""

import logging
from typing import Sequence

from probehal.io.spi import (
    Both,
    MaxSizes,
    Read,
    SpiMismatchedDataLengthError,
    SpiTarget,
    Transfer,
    TransferMode,
    Write,
)
from probehal.transport import TransportUnsupportedOperationError
from probehal.transport.cw310.usb import Backend

logger = logging.getLogger(__name__)


class CW310Spi(SpiTarget):
    """SPI target behind the SAM3X SPI bridge, fixed to Mode0 and 8-bit words.

    :cvar MAX_TRANSFER_SIZE: Limit of a single transfer step.
    """

    MAX_TRANSFER_SIZE = 65536

    def __init__(self, backend: Backend, sck: str, copi: str, cipo: str, cs: str) -> None:
        """Assign pins to the bridge and enable it.

        :param backend: USB backend of the board.
        :param sck: Name of the clock pin.
        :param copi: Name of the controller data output pin.
        :param cipo: Name of the controller data input pin.
        :param cs: Name of the chip select pin.
        """
        self.backend = backend
        self.cs_asserted_count = 0
        backend.spi1_setpins(sdo=copi, sdi=cipo, sck=sck, cs=cs)
        backend.spi1_enable(True)

    def get_transfer_mode(self) -> TransferMode:
        return TransferMode.MODE0

    def set_transfer_mode(self, mode: TransferMode) -> None:
        """Only Mode0 is supported.

        :param mode: Requested transfer mode.
        :raises TransportUnsupportedOperationError: Mode other than Mode0.
        """
        if mode != TransferMode.MODE0:
            raise TransportUnsupportedOperationError(f"SPI {mode.label} is not supported")

    def get_max_speed(self) -> int:
        raise TransportUnsupportedOperationError("SPI speed of CW310 is not available")

    def set_max_speed(self, frequency: int) -> None:
        raise TransportUnsupportedOperationError("SPI speed of CW310 cannot be set")

    def get_max_transfer_sizes(self) -> MaxSizes:
        return MaxSizes(read=self.MAX_TRANSFER_SIZE, write=self.MAX_TRANSFER_SIZE)

    def do_assert_cs(self, assert_cs: bool) -> None:
        """Assert or deassert chip select, reference counted.

        :param assert_cs: True to assert, False to deassert.
        """
        if assert_cs:
            if self.cs_asserted_count == 0:
                self.backend.spi1_set_cs_pin(False)
            self.cs_asserted_count += 1
        elif self.cs_asserted_count > 0:
            if self.cs_asserted_count == 1:
                self.backend.spi1_set_cs_pin(True)
            self.cs_asserted_count -= 1

    def run_transaction(self, transfers: Sequence[Transfer]) -> None:
        """Run the transfers with chip select asserted.

        :param transfers: Ordered steps of the transaction.
        :raises SpiMismatchedDataLengthError: Full duplex step with different lengths.
        """
        for transfer in transfers:
            if isinstance(transfer, Both) and len(transfer.data) != transfer.length:
                raise SpiMismatchedDataLengthError(len(transfer.data), transfer.length)
        self.do_assert_cs(True)
        try:
            for transfer in transfers:
                if isinstance(transfer, Write):
                    self.backend.spi1_write(transfer.data)
                elif isinstance(transfer, Read):
                    transfer.buffer[:] = self.backend.spi1_read(transfer.length)
                elif isinstance(transfer, Both):
                    transfer.buffer[:] = self.backend.spi1_tx_rx(transfer.data)
        finally:
            self.do_assert_cs(False)
