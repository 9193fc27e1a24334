#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""UART over a host serial port.

Probes typically expose the consoles of the device under test as USB CDC
serial ports, this module provides the UART implementation on top of them
and the lookup of the ports belonging to a particular probe.
"""

import logging
from typing import Optional

from serial import Serial, SerialException, SerialTimeoutException
from serial.tools.list_ports import comports

from probehal.exceptions import ProbeHalConnectionError, ProbeHalTimeoutError
from probehal.io.uart import Uart

logger = logging.getLogger(__name__)


def list_ports_by_serial_number(serial_number: str) -> list[str]:
    """Get serial ports of the USB device with given serial number.

    :param serial_number: USB serial number of the probe.
    :return: Names of the serial ports, in enumeration order.
    """
    ports = [port.device for port in comports() if port.serial_number == serial_number]
    logger.debug(f"Serial ports of USB device '{serial_number}': {ports}")
    return ports


class SerialPortUart(Uart):
    """UART accessed through a serial port of the host.

    :cvar DEFAULT_BAUDRATE: Default serial communication speed (115200 bps).
    :cvar DEFAULT_TIMEOUT: Default read/write timeout in seconds.
    """

    DEFAULT_BAUDRATE = 115200
    DEFAULT_TIMEOUT = 0.1

    def __init__(
        self, port: str, baudrate: Optional[int] = None, timeout: Optional[float] = None
    ) -> None:
        """Open the serial port.

        :param port: Name of the serial port.
        :param baudrate: Speed of the UART, defaults to 115200.
        :param timeout: Read/write timeout in seconds.
        :raises ProbeHalConnectionError: The port cannot be opened.
        """
        self.port = port
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        try:
            self._device = Serial(
                port=port,
                baudrate=baudrate or self.DEFAULT_BAUDRATE,
                timeout=self._timeout,
                write_timeout=self._timeout,
            )
        except (SerialException, ValueError) as e:
            raise ProbeHalConnectionError(f"Could not open port '{port}': {str(e)}") from e
        logger.debug(f"Opened UART on port {port}")

    def get_baudrate(self) -> int:
        """Get the baud rate of the port.

        :return: Baud rate in bits per second.
        """
        return self._device.baudrate

    def set_baudrate(self, baudrate: int) -> None:
        """Set the baud rate of the port.

        :param baudrate: Baud rate in bits per second.
        :raises ProbeHalConnectionError: Baud rate cannot be applied.
        """
        try:
            self._device.baudrate = baudrate
        except (SerialException, ValueError) as e:
            raise ProbeHalConnectionError(str(e)) from e

    def read(self, length: int, timeout: Optional[float] = None) -> bytes:
        """Read data received on the port.

        :param length: Maximal number of bytes to read.
        :param timeout: Timeout in seconds, None for the default timeout.
        :return: Received data, empty on timeout.
        :raises ProbeHalConnectionError: Reading fails.
        """
        try:
            self._device.timeout = self._timeout if timeout is None else timeout
            # return what is already buffered, wait for at least one byte otherwise
            data = self._device.read(max(1, min(length, self._device.in_waiting)))
        except SerialException as e:
            raise ProbeHalConnectionError(str(e)) from e
        if data:
            logger.debug(f"<{' '.join(f'{b:02x}' for b in data)}>")
        return data

    def write(self, data: bytes) -> None:
        """Transmit data.

        :param data: Data to send.
        :raises ProbeHalTimeoutError: When sending of data times out.
        :raises ProbeHalConnectionError: When send operation fails.
        """
        logger.debug(f"[{' '.join(f'{b:02x}' for b in data)}]")
        try:
            self._device.write(data)
            self._device.flush()
        except SerialTimeoutException as e:
            raise ProbeHalTimeoutError(
                f"Write timeout error. The timeout is set to {self._device.write_timeout} s."
            ) from e
        except SerialException as e:
            raise ProbeHalConnectionError(str(e)) from e

    def clear_rx_buffer(self) -> None:
        """Drop data received but not yet read."""
        self._device.reset_input_buffer()

    def close(self) -> None:
        """Close the serial port."""
        if self._device.is_open:
            self._device.close()

    def __str__(self) -> str:
        return self.port
