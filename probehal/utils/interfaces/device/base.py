#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL USB device interface base class.

This module provides the abstract base class of raw USB devices used by the
transports, defining the common contract for control and bulk transfers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType
from typing import Optional, Type

from typing_extensions import Self

logger = logging.getLogger(__name__)

# bmRequestType values of vendor specific control transfers
REQUEST_TYPE_VENDOR_OUT_INTERFACE = 0x41
REQUEST_TYPE_VENDOR_IN_INTERFACE = 0xC1


@dataclass(frozen=True)
class BulkInterface:
    """USB interface with a pair of bulk endpoints."""

    interface: int
    in_endpoint: int
    out_endpoint: int


class DeviceBase(ABC):
    """Abstract base class for raw USB device access.

    Transports talk to probes through instances of this class only, which
    allows them to be driven by a fake device in tests.
    """

    def __enter__(self) -> Self:
        """Enter the runtime context of the device, opening it.

        :return: The device instance itself for use in context manager.
        """
        self.open()
        return self

    def __exit__(
        self,
        exception_type: Optional[Type[Exception]] = None,
        exception_value: Optional[Exception] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        """Close the device when exiting a context manager block.

        :param exception_type: Type of exception that caused the context to exit, if any.
        :param exception_value: Exception instance that caused the context to exit, if any.
        :param traceback: Traceback object associated with the exception, if any.
        """
        self.close()

    @property
    @abstractmethod
    def is_opened(self) -> bool:
        """Indicates whether device is open.

        :return: True if device is open, False otherwise.
        """

    @abstractmethod
    def open(self) -> None:
        """Open the device.

        :raises ProbeHalConnectionError: If the device cannot be opened.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the device and release all claimed interfaces."""

    @property
    @abstractmethod
    def serial_number(self) -> str:
        """Get the USB serial number string of the device.

        :return: Serial number, empty string when the device has none.
        """

    @property
    @abstractmethod
    def timeout(self) -> int:
        """Get the timeout value of USB transfers.

        :return: Timeout value in milliseconds.
        """

    @timeout.setter
    @abstractmethod
    def timeout(self, value: int) -> None:
        """Set the timeout value of USB transfers.

        :param value: Timeout value in milliseconds.
        """

    @abstractmethod
    def write_control(
        self, request_type: int, request: int, value: int, index: int, data: bytes = b""
    ) -> int:
        """Issue control transfer in OUT direction.

        :param request_type: The bmRequestType field.
        :param request: The bRequest field.
        :param value: The wValue field.
        :param index: The wIndex field.
        :param data: Data stage payload.
        :return: Number of bytes transferred.
        """

    @abstractmethod
    def read_control(
        self, request_type: int, request: int, value: int, index: int, length: int
    ) -> bytes:
        """Issue control transfer in IN direction.

        :param request_type: The bmRequestType field.
        :param request: The bRequest field.
        :param value: The wValue field.
        :param index: The wIndex field.
        :param length: Maximal length of the data stage.
        :return: Received data.
        """

    @abstractmethod
    def write_bulk(self, endpoint: int, data: bytes) -> int:
        """Write one bulk transfer.

        :param endpoint: Address of the OUT endpoint.
        :param data: Data to write.
        :return: Number of bytes written.
        """

    @abstractmethod
    def read_bulk(self, endpoint: int, length: int, timeout: Optional[int] = None) -> bytes:
        """Read one bulk transfer.

        :param endpoint: Address of the IN endpoint.
        :param length: Size of the receive buffer.
        :param timeout: Read timeout in milliseconds, None for default timeout.
        :return: Received data, possibly shorter than ``length``.
        """

    @abstractmethod
    def claim_interface(self, interface: int) -> None:
        """Claim the interface exclusively.

        :param interface: Interface number.
        """

    @abstractmethod
    def find_bulk_interface(self, interface_class: int, interface_subclass: int) -> BulkInterface:
        """Find interface of given class and subclass having bulk endpoints.

        :param interface_class: The bInterfaceClass field.
        :param interface_subclass: The bInterfaceSubClass field.
        :return: Interface number and endpoint addresses.
        :raises ProbeHalConnectionError: Device has no such interface.
        """

    @abstractmethod
    def __str__(self) -> str:
        """Return string containing information about the device.

        :return: String representation of the device.
        """
