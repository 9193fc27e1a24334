#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""HyperDebug USB debug bridge transport.

HyperDebug exposes several USB CDC serial ports, the first one being its own
text console and the remaining ones the UARTs of the device under test, and a
vendor specific bulk interface bridging SPI. GPIO pins are controlled through
the console.
"""

import logging
import re
from typing import Any, Callable, Optional

from typing_extensions import Self

from probehal.io.gpio import GpioMonitoring, GpioPin
from probehal.io.spi import SpiTarget
from probehal.io.uart import Uart
from probehal.transport import (
    Capabilities,
    Capability,
    Transport,
    TransportCommunicationError,
    TransportInterfaceType,
    TransportInvalidInstanceError,
)
from probehal.transport.common.uart import SerialPortUart, list_ports_by_serial_number
from probehal.transport.hyperdebug.console import SPI_REGEX, HyperdebugConsole, Inner
from probehal.transport.hyperdebug.gpio import HyperdebugGpioMonitoring, HyperdebugGpioPin
from probehal.transport.hyperdebug.protocol import UsbSpiRequest
from probehal.transport.hyperdebug.spi import HyperdebugSpiTarget
from probehal.transport.resources import ResourceCache
from probehal.utils.config import Config
from probehal.utils.interfaces.device.base import DeviceBase
from probehal.utils.interfaces.device.usb_device import UsbDevice

logger = logging.getLogger(__name__)

VID_GOOGLE = 0x18D1
PID_HYPERDEBUG = 0x520E

# interface class and subclass of the USB-SPI bridge
USB_CLASS_VENDOR = 0xFF
USB_SUBCLASS_SPI = 0x51


class Hyperdebug(Transport):
    """HyperDebug board."""

    def __init__(
        self,
        device: DeviceBase,
        console: HyperdebugConsole,
        uart_ports: Optional[list[str]] = None,
        uart_factory: Callable[[str], Uart] = SerialPortUart,
        spi_enable_request: UsbSpiRequest = UsbSpiRequest.ENABLE,
    ) -> None:
        """Initialize the transport.

        :param device: Opened USB device of HyperDebug.
        :param console: Console of HyperDebug.
        :param uart_ports: Serial ports of UART instances, in instance order.
        :param uart_factory: Opens UART on the given serial port.
        :param spi_enable_request: Vendor request enabling the SPI bridge.
        :raises ProbeHalConnectionError: HyperDebug has no USB-SPI interface.
        """
        self.spi_interface = device.find_bulk_interface(USB_CLASS_VENDOR, USB_SUBCLASS_SPI)
        self.inner = Inner(device, console)
        self.uart_ports = list(uart_ports or [])
        self.uart_factory = uart_factory
        self.spi_enable_request = spi_enable_request
        self._uarts: ResourceCache[Uart] = ResourceCache("UART")
        self._gpios: ResourceCache[GpioPin] = ResourceCache("GPIO")
        self._spis: ResourceCache[SpiTarget] = ResourceCache("SPI")
        self._monitoring: ResourceCache[GpioMonitoring] = ResourceCache("GPIO monitoring")

    @classmethod
    def open(
        cls,
        usb_vid: Optional[int] = None,
        usb_pid: Optional[int] = None,
        usb_serial: Optional[str] = None,
        **kwargs: Any,
    ) -> Self:
        """Open HyperDebug connected over USB.

        :param usb_vid: USB Vendor ID, defaults to Google.
        :param usb_pid: USB Product ID, defaults to HyperDebug.
        :param usb_serial: Serial number of the board, any board when not given.
        :param kwargs: Remaining arguments of the transport.
        :return: The transport.
        :raises TransportCommunicationError: Console port of HyperDebug not found.
        """
        device = UsbDevice(
            usb_vid or VID_GOOGLE, usb_pid or PID_HYPERDEBUG, serial_number=usb_serial
        )
        device.open()
        ports = sorted(list_ports_by_serial_number(device.serial_number))
        if not ports:
            device.close()
            raise TransportCommunicationError(f"No serial ports of HyperDebug {device}")
        # the first port is the console of HyperDebug itself
        console = HyperdebugConsole(SerialPortUart(ports[0]))
        return cls(device, console, uart_ports=ports[1:], **kwargs)

    @classmethod
    def load_from_config(cls, config: Config) -> Self:
        """Open HyperDebug described by configuration.

        Recognized keys are ``usb_vid``, ``usb_pid`` and ``usb_serial``.

        :param config: Configuration of the board.
        :return: The transport.
        """
        return cls.open(
            usb_vid=config.get_int("usb_vid", VID_GOOGLE),
            usb_pid=config.get_int("usb_pid", PID_HYPERDEBUG),
            usb_serial=config.get("usb_serial"),
        )

    def capabilities(self) -> Capabilities:
        return Capabilities(
            Capability.UART | Capability.SPI | Capability.GPIO | Capability.GPIO_MONITORING
        )

    def _list_spi_buses(self, cmd: str) -> list[re.Match]:
        """Execute bus listing command and parse its lines.

        :param cmd: Listing command.
        :return: Matches of the bus lines.
        :raises TransportCommunicationError: No bus line printed, e.g. unknown command.
        """
        output = self.inner.console.run_command(cmd)
        buses = [match for match in map(SPI_REGEX.match, output) if match]
        if not buses:
            raise TransportCommunicationError(f"Unexpected output of '{cmd}': {output}")
        return buses

    def _spi_index(self, instance: str) -> int:
        if instance.isdigit():
            return int(instance)
        buses = self.inner.cmd_with_fallback("spi info", "spiget", self._list_spi_buses)
        for match in buses:
            if match.group(2).lower() == instance.lower():
                return int(match.group(1))
        raise TransportInvalidInstanceError(TransportInterfaceType.SPI, instance)

    def spi(self, instance: str) -> SpiTarget:
        """Get SPI bus by index or name.

        :param instance: Bus index as decimal string or bus name known to HyperDebug.
        :return: The SPI target.
        :raises TransportInvalidInstanceError: No such bus.
        """
        idx = self._spi_index(instance)
        return self._spis.get_or_create(
            idx,
            lambda: HyperdebugSpiTarget(
                self.inner, self.spi_interface, self.spi_enable_request, idx
            ),
        )

    def gpio_pin(self, name: str) -> GpioPin:
        return self._gpios.get_or_create(name, lambda: HyperdebugGpioPin(self.inner, name))

    def gpio_monitoring(self) -> GpioMonitoring:
        return self._monitoring.get_or_create(0, lambda: HyperdebugGpioMonitoring(self.inner))

    def uart(self, instance: str) -> Uart:
        """Get UART connected to the device under test.

        :param instance: UART index as a decimal string.
        :return: The UART.
        :raises TransportInvalidInstanceError: No such UART.
        """
        if not instance.isdigit() or int(instance) >= len(self.uart_ports):
            raise TransportInvalidInstanceError(TransportInterfaceType.UART, instance)
        index = int(instance)
        return self._uarts.get_or_create(index, lambda: self.uart_factory(self.uart_ports[index]))

    def close(self) -> None:
        """Close the UARTs, the console and the USB device."""
        for uart in self._uarts:
            uart.close()
        self._uarts.clear()
        self.inner.console.uart.close()
        self.inner.usb_device.close()
