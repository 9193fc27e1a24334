#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""UART interface of ProbeHAL transports."""

from abc import ABC, abstractmethod
from typing import Optional


class Uart(ABC):
    """Serial console of the device under test."""

    @abstractmethod
    def get_baudrate(self) -> int:
        """Get the baud rate of the port.

        :return: Baud rate in bits per second.
        """

    @abstractmethod
    def set_baudrate(self, baudrate: int) -> None:
        """Set the baud rate of the port.

        :param baudrate: Baud rate in bits per second.
        """

    @abstractmethod
    def read(self, length: int, timeout: Optional[float] = None) -> bytes:
        """Read data received on the port.

        Returns as soon as any data are available, empty bytes on timeout.

        :param length: Maximal number of bytes to read.
        :param timeout: Timeout in seconds, None for the default timeout.
        :return: Received data.
        """

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Transmit data.

        :param data: Data to send.
        """

    def clear_rx_buffer(self) -> None:
        """Drop data received but not yet read."""

    def close(self) -> None:
        """Release the port."""
