#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Vendor USB protocol of the CW310 FPGA carrier board.

The SAM3X microcontroller of the board is controlled with vendor control
transfers. It drives the FPGA configuration interface, the general purpose
pins wired to the FPGA and a bit-banged SPI bridge.
"""

import logging
import re
import struct
import time

from probehal.exceptions import ProbeHalError
from probehal.io.gpio import GpioInvalidPinNameError, GpioInvalidPinNumberError
from probehal.transport import TransportFirmwareProgramError
from probehal.utils.interfaces.device.base import (
    REQUEST_TYPE_VENDOR_IN_INTERFACE,
    REQUEST_TYPE_VENDOR_OUT_INTERFACE,
    DeviceBase,
)
from probehal.utils.misc import split_data

logger = logging.getLogger(__name__)

VID_NEWAE = 0x2B3E
PID_CW310 = 0xC310

# pins of the SAM3X peripheral controller exposed on the board
PIN_PORTS = {"USB_A": 0, "USB_B": 32, "USB_C": 64, "USB_D": 96}
PIN_ALIASES = {
    "USB_SPI_CIPO": 25,
    "USB_SPI_COPI": 26,
    "USB_SPI_SCK": 27,
    "USB_SPI_CS": 28,
}
PIN_MAX = 127
PIN_NAME_REGEX = re.compile(r"^(USB_[A-D])(\d+)$")


def pin_name_to_number(pin_name: str) -> int:
    """Convert pin name to number of the SAM3X pin.

    Accepted are plain numbers, port names like ``USB_A18`` and the SPI aliases.

    :param pin_name: Name of the pin.
    :return: Pin number.
    :raises GpioInvalidPinNumberError: Number is out of range.
    :raises GpioInvalidPinNameError: Unknown pin name.
    """
    if pin_name.isdigit():
        number = int(pin_name)
        if number > PIN_MAX:
            raise GpioInvalidPinNumberError(number)
        return number
    name = pin_name.upper()
    if name in PIN_ALIASES:
        return PIN_ALIASES[name]
    match = PIN_NAME_REGEX.match(name)
    if match and int(match.group(2)) < 32:
        return PIN_PORTS[match.group(1)] + int(match.group(2))
    raise GpioInvalidPinNameError(pin_name)


class Backend:
    """Commands of the CW310 vendor USB protocol.

    :cvar CTRL_CHUNK: Maximal payload of single control transfer.
    :cvar BULK_CHUNK: Size of bulk transfers carrying the bitstream.
    """

    CMD_FPGA_STATUS = 0x15
    CMD_FPGA_PROGRAM = 0x16
    CMD_FW_VERSION = 0x17
    CMD_FPGAIO_UTIL = 0x34
    CMD_FPGASPI1_XFER = 0x35

    # CMD_FPGA_PROGRAM sub-commands
    FPGA_PROGRAM_ENTER = 0xA0
    FPGA_PROGRAM_LENGTH = 0xA1
    FPGA_PROGRAM_EXIT = 0xA2

    # CMD_FPGAIO_UTIL sub-commands
    GPIO_CONFIG = 0xA0
    GPIO_STATE = 0xA2
    GPIO_MODE_INPUT = 0x00
    GPIO_MODE_OUTPUT = 0x01

    # CMD_FPGASPI1_XFER sub-commands
    SPI1_DISABLE = 0x00
    SPI1_ENABLE = 0x01
    SPI1_SETPINS = 0x10
    SPI1_CS_LOW = 0x11
    SPI1_CS_HIGH = 0x12
    SPI1_TXRX = 0x14

    BULK_OUT_EP = 0x02
    CTRL_CHUNK = 64
    BULK_CHUNK = 2048

    def __init__(self, device: DeviceBase) -> None:
        """Initialize the backend.

        :param device: Opened USB device of the board.
        """
        self.device = device

    def _send_ctrl(self, cmd: int, value: int, data: bytes = b"") -> None:
        self.device.write_control(REQUEST_TYPE_VENDOR_OUT_INTERFACE, cmd, value, 0, data)

    def _read_ctrl(self, cmd: int, value: int, length: int) -> bytes:
        data = self.device.read_control(REQUEST_TYPE_VENDOR_IN_INTERFACE, cmd, value, 0, length)
        if len(data) != length:
            raise ProbeHalError(f"Short response to command 0x{cmd:02X}: {len(data)} != {length}")
        return data

    def get_serial_number(self) -> str:
        """Get USB serial number of the board.

        :return: Serial number.
        """
        return self.device.serial_number

    def get_firmware_version(self) -> str:
        """Get version of the SAM3X firmware.

        :return: Version as 'major.minor.patch'.
        """
        data = self._read_ctrl(self.CMD_FW_VERSION, 0, 3)
        return f"{data[0]}.{data[1]}.{data[2]}"

    def pin_set_output(self, pin_name: str, output: bool) -> None:
        """Configure pin direction.

        :param pin_name: Name of the pin.
        :param output: True for output, False for input.
        """
        pin = pin_name_to_number(pin_name)
        mode = self.GPIO_MODE_OUTPUT if output else self.GPIO_MODE_INPUT
        self._send_ctrl(self.CMD_FPGAIO_UTIL, self.GPIO_CONFIG, bytes([pin, mode]))

    def pin_set_state(self, pin_name: str, value: bool) -> None:
        """Drive pin to logic level.

        :param pin_name: Name of the pin.
        :param value: True for high level.
        """
        pin = pin_name_to_number(pin_name)
        self._send_ctrl(self.CMD_FPGAIO_UTIL, self.GPIO_STATE, bytes([pin, int(value)]))

    def pin_get_state(self, pin_name: str) -> int:
        """Read logic level of the pin.

        :param pin_name: Name of the pin.
        :return: Level of the pin, 0 or 1.
        """
        pin = pin_name_to_number(pin_name)
        return self._read_ctrl(self.CMD_FPGAIO_UTIL, pin, 1)[0]

    def spi1_setpins(self, sdo: str, sdi: str, sck: str, cs: str) -> None:
        """Assign pins to the SPI bridge.

        :param sdo: Name of the data output pin (COPI).
        :param sdi: Name of the data input pin (CIPO).
        :param sck: Name of the clock pin.
        :param cs: Name of the chip select pin.
        """
        pins = bytes(pin_name_to_number(name) for name in (sdo, sdi, sck, cs))
        self._send_ctrl(self.CMD_FPGASPI1_XFER, self.SPI1_SETPINS, pins)

    def spi1_enable(self, enable: bool) -> None:
        """Enable or disable the SPI bridge.

        :param enable: True to enable.
        """
        self._send_ctrl(self.CMD_FPGASPI1_XFER, self.SPI1_ENABLE if enable else self.SPI1_DISABLE)

    def spi1_set_cs_pin(self, level: bool) -> None:
        """Drive chip select of the SPI bridge, active low.

        :param level: True for high (deasserted) level.
        """
        self._send_ctrl(self.CMD_FPGASPI1_XFER, self.SPI1_CS_HIGH if level else self.SPI1_CS_LOW)

    def spi1_tx_rx(self, data: bytes) -> bytes:
        """Exchange data over the SPI bridge.

        :param data: Data to transmit.
        :return: Data received meanwhile, same length as data.
        """
        received = bytearray()
        for chunk in split_data(data, self.CTRL_CHUNK):
            self._send_ctrl(self.CMD_FPGASPI1_XFER, self.SPI1_TXRX, chunk)
            received += self._read_ctrl(self.CMD_FPGASPI1_XFER, 0, len(chunk))
        return bytes(received)

    def spi1_read(self, length: int) -> bytes:
        """Read data over the SPI bridge, transmitting zeros.

        :param length: Number of bytes to read.
        :return: Received data.
        """
        return self.spi1_tx_rx(bytes(length))

    def spi1_write(self, data: bytes) -> None:
        """Write data over the SPI bridge, ignoring received data.

        :param data: Data to transmit.
        """
        self.spi1_tx_rx(data)

    def fpga_done(self) -> bool:
        """Check the DONE status of the FPGA.

        :return: True if the FPGA is configured.
        """
        return bool(self._read_ctrl(self.CMD_FPGA_STATUS, 0, 4)[0] & 0x01)

    def fpga_program(self, bitstream: bytes) -> None:
        """Program the bitstream into the FPGA.

        :param bitstream: Bitstream data.
        :raises TransportFirmwareProgramError: FPGA did not signal DONE after programming.
        """
        logger.info(f"Programming {len(bitstream)} bytes of FPGA bitstream")
        self._send_ctrl(self.CMD_FPGA_PROGRAM, self.FPGA_PROGRAM_ENTER)
        time.sleep(0.001)
        self._send_ctrl(
            self.CMD_FPGA_PROGRAM, self.FPGA_PROGRAM_LENGTH, struct.pack("<I", len(bitstream))
        )
        for chunk in split_data(bitstream, self.BULK_CHUNK):
            self.device.write_bulk(self.BULK_OUT_EP, chunk)
        time.sleep(0.01)
        done = self.fpga_done()
        self._send_ctrl(self.CMD_FPGA_PROGRAM, self.FPGA_PROGRAM_EXIT)
        if not done:
            raise TransportFirmwareProgramError("FPGA did not signal DONE after programming")
        logger.info("FPGA programmed successfully")
