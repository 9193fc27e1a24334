#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL USB device implementation.

This module provides raw USB device access (control and bulk transfers)
using the pyusb library.
"""

import logging
from typing import Any, Optional

import usb.core
import usb.util
from typing_extensions import Self

from probehal import PROBEHAL_DEBUG_USB, PROBEHAL_USB_TIMEOUT
from probehal.exceptions import ProbeHalConnectionError, ProbeHalError, ProbeHalTimeoutError
from probehal.utils.interfaces.device.base import BulkInterface, DeviceBase

logger = logging.getLogger(__name__)


class UsbDevice(DeviceBase):
    """USB device accessed through pyusb.

    The device is identified by vendor/product ID and, when more probes of the
    same type are attached, by its USB serial number.
    """

    def __init__(
        self,
        vid: int,
        pid: int,
        serial_number: Optional[str] = None,
        timeout: Optional[int] = None,
        device: Optional[Any] = None,
    ) -> None:
        """Initialize the USB device object.

        :param vid: USB Vendor ID of the target device.
        :param pid: USB Product ID of the target device.
        :param serial_number: Serial number string of the target device.
        :param timeout: Transfer timeout in milliseconds, defaults to PROBEHAL_USB_TIMEOUT.
        :param device: Already enumerated pyusb device.
        """
        self.vid = vid
        self.pid = pid
        self._serial_number = serial_number or ""
        self._timeout = timeout or PROBEHAL_USB_TIMEOUT
        self._device = device
        self._claimed: list[int] = []
        self._opened = False

    @property
    def timeout(self) -> int:
        """Get timeout value of USB transfers.

        :return: Timeout value in milliseconds.
        """
        return self._timeout

    @timeout.setter
    def timeout(self, value: int) -> None:
        """Set timeout value of USB transfers.

        :param value: Timeout value in milliseconds.
        """
        self._timeout = value

    @property
    def is_opened(self) -> bool:
        """Indicates whether device is open.

        :return: True if device is open, False otherwise.
        """
        return self._opened

    @property
    def serial_number(self) -> str:
        """Get the USB serial number string of the device.

        :return: Serial number, empty string when the device has none.
        """
        return self._serial_number

    def open(self) -> None:
        """Find the USB device and select its configuration.

        :raises ProbeHalError: If device is already opened.
        :raises ProbeHalConnectionError: If the device cannot be found or opened.
        """
        logger.debug(f"Opening the Interface: {str(self)}")
        if self.is_opened:
            raise ProbeHalError("Can't open already opened device")
        if self._device is None:
            kwargs: dict[str, Any] = {"idVendor": self.vid, "idProduct": self.pid}
            if self._serial_number:
                kwargs["serial_number"] = self._serial_number
            self._device = usb.core.find(**kwargs)
            if self._device is None:
                raise ProbeHalConnectionError(f"USB device not found: {str(self)}")
        if not self._serial_number:
            self._serial_number = self._read_serial_number(self._device)
        try:
            self._device.set_configuration()
        except usb.core.USBError as e:
            # already configured device reports busy on some platforms
            logger.debug(f"Unable to set configuration of {str(self)}: {str(e)}")
        self._opened = True

    def close(self) -> None:
        """Release claimed interfaces and close the device.

        :raises ProbeHalConnectionError: If the device cannot be closed.
        """
        logger.debug(f"Closing the Interface: {str(self)}")
        if not self.is_opened:
            return
        try:
            for interface in self._claimed:
                usb.util.release_interface(self._device, interface)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Unable to close device '{str(self)}'") from e
        finally:
            self._claimed.clear()
            self._opened = False

    def _check_opened(self) -> None:
        if not self.is_opened:
            raise ProbeHalConnectionError("Device is not opened for transfers")

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
        :raises ProbeHalConnectionError: The transfer failed.
        """
        self._check_opened()
        if PROBEHAL_DEBUG_USB:
            logger.debug(
                f"CTRL OUT: type=0x{request_type:02X} req=0x{request:02X} "
                f"value=0x{value:04X} index=0x{index:04X} data={data.hex()}"
            )
        try:
            return self._device.ctrl_transfer(
                request_type, request, value, index, data, timeout=self.timeout
            )
        except usb.core.USBTimeoutError as e:
            raise ProbeHalTimeoutError(f"Control transfer timed out: {str(e)}") from e
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Control transfer failed: {str(e)}") from e

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
        :raises ProbeHalConnectionError: The transfer failed.
        """
        self._check_opened()
        try:
            data = bytes(
                self._device.ctrl_transfer(
                    request_type, request, value, index, length, timeout=self.timeout
                )
            )
        except usb.core.USBTimeoutError as e:
            raise ProbeHalTimeoutError(f"Control transfer timed out: {str(e)}") from e
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Control transfer failed: {str(e)}") from e
        if PROBEHAL_DEBUG_USB:
            logger.debug(f"CTRL IN: type=0x{request_type:02X} req=0x{request:02X} <- {data.hex()}")
        return data

    def write_bulk(self, endpoint: int, data: bytes) -> int:
        """Write one bulk transfer.

        :param endpoint: Address of the OUT endpoint.
        :param data: Data to write.
        :return: Number of bytes written.
        :raises ProbeHalConnectionError: The transfer failed or was short.
        """
        self._check_opened()
        if PROBEHAL_DEBUG_USB:
            logger.debug(f"BULK OUT 0x{endpoint:02X}: {data.hex()}")
        try:
            written = self._device.write(endpoint, data, timeout=self.timeout)
        except usb.core.USBTimeoutError as e:
            raise ProbeHalTimeoutError(f"Bulk write timed out: {str(e)}") from e
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Bulk write failed: {str(e)}") from e
        if written != len(data):
            raise ProbeHalConnectionError(
                f"Invalid size of written bytes has been detected: {written} != {len(data)}"
            )
        return written

    def read_bulk(self, endpoint: int, length: int, timeout: Optional[int] = None) -> bytes:
        """Read one bulk transfer.

        :param endpoint: Address of the IN endpoint.
        :param length: Size of the receive buffer.
        :param timeout: Read timeout in milliseconds, None for default timeout.
        :return: Received data.
        :raises ProbeHalTimeoutError: Nothing received in time.
        :raises ProbeHalConnectionError: The transfer failed.
        """
        self._check_opened()
        try:
            data = bytes(self._device.read(endpoint, length, timeout=timeout or self.timeout))
        except usb.core.USBTimeoutError as e:
            raise ProbeHalTimeoutError(f"Bulk read timed out: {str(e)}") from e
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Bulk read failed: {str(e)}") from e
        if PROBEHAL_DEBUG_USB:
            logger.debug(f"BULK IN 0x{endpoint:02X}: {data.hex()}")
        return data

    def claim_interface(self, interface: int) -> None:
        """Claim the interface exclusively, detaching kernel driver if needed.

        :param interface: Interface number.
        :raises ProbeHalConnectionError: The interface cannot be claimed.
        """
        self._check_opened()
        try:
            if self._device.is_kernel_driver_active(interface):
                self._device.detach_kernel_driver(interface)
                logger.debug(f"Detached kernel driver from interface {interface}")
        except (NotImplementedError, usb.core.USBError) as e:
            logger.debug(f"Kernel driver detach: {str(e)}")
        try:
            usb.util.claim_interface(self._device, interface)
        except usb.core.USBError as e:
            raise ProbeHalConnectionError(f"Unable to claim interface {interface}") from e
        self._claimed.append(interface)

    def find_bulk_interface(self, interface_class: int, interface_subclass: int) -> BulkInterface:
        """Find interface of given class and subclass having bulk endpoints.

        :param interface_class: The bInterfaceClass field.
        :param interface_subclass: The bInterfaceSubClass field.
        :return: Interface number and endpoint addresses.
        :raises ProbeHalConnectionError: Device has no such interface.
        """
        self._check_opened()
        for intf in self._device.get_active_configuration():
            if (
                intf.bInterfaceClass != interface_class
                or intf.bInterfaceSubClass != interface_subclass
            ):
                continue
            ep_in = ep_out = None
            for ep in intf:
                if usb.util.endpoint_type(ep.bmAttributes) != usb.util.ENDPOINT_TYPE_BULK:
                    continue
                if usb.util.endpoint_direction(ep.bEndpointAddress) == usb.util.ENDPOINT_IN:
                    ep_in = ep.bEndpointAddress
                else:
                    ep_out = ep.bEndpointAddress
            if ep_in is not None and ep_out is not None:
                return BulkInterface(intf.bInterfaceNumber, ep_in, ep_out)
        raise ProbeHalConnectionError(
            f"No interface of class 0x{interface_class:02X}/0x{interface_subclass:02X} "
            f"found on {str(self)}"
        )

    @staticmethod
    def _read_serial_number(dev: Any) -> str:
        try:
            return usb.util.get_string(dev, dev.iSerialNumber) if dev.iSerialNumber else ""
        except (usb.core.USBError, ValueError) as e:
            logger.debug(
                f"Unable to read serial number of "
                f"0x{dev.idVendor:04X}:0x{dev.idProduct:04X}: {str(e)}"
            )
            return ""

    def __str__(self) -> str:
        """Return string representation of the USB device.

        :return: Formatted string with VID/PID and serial number.
        """
        return f"USB (0x{self.vid:04X}, 0x{self.pid:04X}) sn='{self._serial_number}'"

    @classmethod
    def enumerate(
        cls, vid: int, pid: int, serial_number: Optional[str] = None, timeout: Optional[int] = None
    ) -> list[Self]:
        """Enumerate all connected USB devices with given VID/PID.

        :param vid: USB Vendor ID.
        :param pid: USB Product ID.
        :param serial_number: Return only devices with this serial number.
        :param timeout: Transfer timeout of created devices in milliseconds.
        :return: List of USB device instances.
        """
        devices = []
        for dev in usb.core.find(find_all=True, idVendor=vid, idProduct=pid) or []:
            serial = cls._read_serial_number(dev)
            if serial_number and serial != serial_number:
                continue
            devices.append(cls(vid, pid, serial_number=serial, timeout=timeout, device=dev))
        return devices
