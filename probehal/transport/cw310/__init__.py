#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ChipWhisperer CW310 FPGA carrier board transport.

The board hosts the FPGA emulating the device under test and a SAM3X
microcontroller acting as the USB probe. The transport provides the pins of
the SAM3X wired to the FPGA, its SPI bridge, the console UARTs and FPGA
bitstream programming.
"""

import logging
import time
from typing import Any, Callable, Optional

from typing_extensions import Self

from probehal.io.gpio import GpioPin
from probehal.io.spi import SpiTarget
from probehal.io.uart import Uart
from probehal.transport import (
    Capabilities,
    Capability,
    CommandKind,
    FpgaProgram,
    Transport,
    TransportInterfaceType,
    TransportInvalidInstanceError,
)
from probehal.transport.common.uart import SerialPortUart, list_ports_by_serial_number
from probehal.transport.cw310.gpio import CW310GpioPin
from probehal.transport.cw310.spi import CW310Spi
from probehal.transport.cw310.usb import PID_CW310, VID_NEWAE, Backend
from probehal.transport.resources import ResourceCache
from probehal.utils.config import Config
from probehal.utils.interfaces.device.base import DeviceBase
from probehal.utils.interfaces.device.usb_device import UsbDevice
from probehal.utils.rom_detect import RomDetect, RomDetector, RomKind

logger = logging.getLogger(__name__)

RomDetectorFactory = Callable[[RomKind, bytes, float], RomDetector]


class CW310(Transport):
    """CW310 FPGA carrier board."""

    # pins needed for reset & bootstrap
    PIN_SRST = "USB_A18"
    PIN_BOOTSTRAP = "USB_A16"
    PIN_JTAG = "USB_A19"
    # pins of the SPI bridge
    PIN_CLK = "USB_SPI_SCK"
    PIN_SDI = "USB_SPI_COPI"
    PIN_SDO = "USB_SPI_CIPO"
    PIN_CS = "USB_SPI_CS"

    def __init__(
        self,
        device: DeviceBase,
        uart_override: Optional[list[str]] = None,
        uart_factory: Callable[[str], Uart] = SerialPortUart,
        rom_detector_factory: RomDetectorFactory = RomDetect,
    ) -> None:
        """Initialize the transport and drive the board control pins high.

        :param device: Opened USB device of the board.
        :param uart_override: Serial ports of UART instances, discovered by USB serial number
            when empty.
        :param uart_factory: Opens UART on the given serial port.
        :param rom_detector_factory: Creates ROM detector from ROM kind, bitstream and timeout.
        """
        self.device = Backend(device)
        self.uart_override = list(uart_override or [])
        self.uart_factory = uart_factory
        self.rom_detector_factory = rom_detector_factory
        self._uarts: ResourceCache[Uart] = ResourceCache("UART")
        self._gpios: ResourceCache[GpioPin] = ResourceCache("GPIO")
        self._spis: ResourceCache[SpiTarget] = ResourceCache("SPI")
        self.init_direction()

    @classmethod
    def open(
        cls,
        usb_vid: Optional[int] = None,
        usb_pid: Optional[int] = None,
        usb_serial: Optional[str] = None,
        **kwargs: Any,
    ) -> Self:
        """Open the board connected over USB.

        :param usb_vid: USB Vendor ID, defaults to NewAE.
        :param usb_pid: USB Product ID, defaults to CW310.
        :param usb_serial: Serial number of the board, any board when not given.
        :param kwargs: Remaining arguments of the transport.
        :return: The transport.
        """
        device = UsbDevice(usb_vid or VID_NEWAE, usb_pid or PID_CW310, serial_number=usb_serial)
        device.open()
        return cls(device, **kwargs)

    @classmethod
    def load_from_config(cls, config: Config) -> Self:
        """Open the board described by configuration.

        Recognized keys are ``usb_vid``, ``usb_pid``, ``usb_serial`` and ``uart_override``.

        :param config: Configuration of the board.
        :return: The transport.
        """
        return cls.open(
            usb_vid=config.get_int("usb_vid", VID_NEWAE),
            usb_pid=config.get_int("usb_pid", PID_CW310),
            usb_serial=config.get("usb_serial"),
            uart_override=config.get_list("uart_override", []),
        )

    def init_direction(self) -> None:
        """Configure reset, JTAG and bootstrap pins as outputs driven high."""
        for pin in (self.PIN_SRST, self.PIN_JTAG, self.PIN_BOOTSTRAP):
            self.device.pin_set_output(pin, True)
            self.device.pin_set_state(pin, True)

    def _open_uart(self, instance: int) -> Uart:
        if self.uart_override:
            if instance >= len(self.uart_override):
                raise TransportInvalidInstanceError(TransportInterfaceType.UART, str(instance))
            return self.uart_factory(self.uart_override[instance])
        ports = list_ports_by_serial_number(self.device.get_serial_number())
        # the last port of the board is the UART 0 of the device under test
        ports.sort(reverse=True)
        if instance >= len(ports):
            raise TransportInvalidInstanceError(TransportInterfaceType.UART, str(instance))
        return self.uart_factory(ports[instance])

    def capabilities(self) -> Capabilities:
        return Capabilities(Capability.SPI | Capability.GPIO | Capability.UART)

    def uart(self, instance: str) -> Uart:
        """Get UART connected to the device under test.

        :param instance: UART index as a decimal string.
        :return: The UART.
        :raises TransportInvalidInstanceError: No such UART.
        """
        if not instance.isdigit():
            raise TransportInvalidInstanceError(TransportInterfaceType.UART, instance)
        index = int(instance)
        return self._uarts.get_or_create(index, lambda: self._open_uart(index))

    def gpio_pin(self, name: str) -> GpioPin:
        """Get pin of the SAM3X wired to the FPGA.

        :param name: Pin name, e.g. ``USB_A18``.
        :return: The GPIO pin.
        """
        return self._gpios.get_or_create(name, lambda: CW310GpioPin(self.device, name))

    def spi(self, instance: str) -> SpiTarget:
        """Get the SPI bridge.

        :param instance: Must be "0".
        :return: The SPI target.
        :raises TransportInvalidInstanceError: Instance other than "0".
        """
        if instance != "0":
            raise TransportInvalidInstanceError(TransportInterfaceType.SPI, instance)
        return self._spis.get_or_create(
            instance,
            lambda: CW310Spi(
                self.device, sck=self.PIN_CLK, copi=self.PIN_SDI, cipo=self.PIN_SDO, cs=self.PIN_CS
            ),
        )

    def _command_handlers(self) -> dict[CommandKind, Callable[[Any], Optional[Any]]]:
        return {CommandKind.FPGA_PROGRAM: self._fpga_program}

    def _fpga_program(self, command: FpgaProgram) -> None:
        if command.should_skip():
            logger.info("Skip loading the __skip__ bitstream.")
            return None
        if command.rom_kind is not None:
            detector = self.rom_detector_factory(
                command.rom_kind, command.bitstream, command.rom_timeout
            )
            uart = self.uart("0")
            # reset is active low, the ROM prints its version when released
            reset_pin = self.gpio_pin(self.PIN_SRST)
            reset_pin.write(False)
            time.sleep(command.rom_reset_pulse)
            reset_pin.write(True)
            if detector.detect(uart):
                logger.info("Already running the correct bitstream. Skip loading bitstream.")
                return None

        self.device.spi1_enable(False)
        self.device.pin_set_state(self.PIN_JTAG, True)
        self.device.fpga_program(command.bitstream)
        return None

    def close(self) -> None:
        """Close the UARTs and the USB device of the board."""
        for uart in self._uarts:
            uart.close()
        self._uarts.clear()
        self.device.device.close()
