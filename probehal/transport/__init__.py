#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL transports.

A transport represents one physical debug probe. It reports its capabilities,
creates (and caches) handles of GPIO pins, SPI targets and UARTs, and accepts
probe specific commands through ``dispatch``.

The concrete transports live in the sub-packages:

    - ``probehal.transport.cw310`` - ChipWhisperer CW310 FPGA carrier board
    - ``probehal.transport.hyperdebug`` - HyperDebug USB debug bridge
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntFlag
from types import TracebackType
from typing import TYPE_CHECKING, Any, Callable, Optional, Type

from typing_extensions import Self

from probehal.exceptions import ProbeHalError, ProbeHalUnsupportedOperation
from probehal.utils.hal_enum import HalEnum
from probehal.utils.misc import load_binary
from probehal.utils.rom_detect import RomKind

if TYPE_CHECKING:
    from probehal.io.gpio import GpioMonitoring, GpioPin
    from probehal.io.spi import SpiTarget
    from probehal.io.uart import Uart

logger = logging.getLogger(__name__)


#######################################################################
# Transport errors
#######################################################################


class TransportInterfaceType(HalEnum):
    """Kind of interface handed out by a transport."""

    GPIO = (0, "Gpio", "GPIO pin")
    SPI = (1, "Spi", "SPI target")
    UART = (2, "Uart", "UART port")
    GPIO_MONITORING = (3, "GpioMonitoring", "GPIO edge monitoring")


class TransportError(ProbeHalError):
    """Base of errors reported by transports."""


class TransportInvalidInstanceError(TransportError):
    """The requested instance of an interface does not exist."""

    def __init__(self, interface_type: TransportInterfaceType, instance: str) -> None:
        """Initialize the error.

        :param interface_type: Kind of the requested interface.
        :param instance: Requested instance identifier.
        """
        super().__init__(f"Invalid {interface_type.label} instance: {instance}")
        self.interface_type = interface_type
        self.instance = instance


class TransportCommunicationError(TransportError):
    """The probe sent a malformed or unexpected response."""


class TransportUnsupportedOperationError(TransportError, ProbeHalUnsupportedOperation):
    """The transport does not support the requested operation."""


class TransportMissingCapabilitiesError(TransportError):
    """The transport lacks capabilities required by the caller."""

    def __init__(self, needed: "Capability", available: "Capability") -> None:
        """Initialize the error.

        :param needed: Required capabilities.
        :param available: Capabilities of the transport.
        """
        super().__init__(f"Missing capabilities: needed {needed!r}, available {available!r}")
        self.needed = needed
        self.available = available


class TransportFirmwareProgramError(TransportError):
    """Programming of a bitstream or firmware into the probe failed."""


#######################################################################
# Capabilities
#######################################################################


class Capability(IntFlag):
    """Interfaces a transport is able to provide."""

    NONE = 0
    UART = 1 << 0
    SPI = 1 << 1
    GPIO = 1 << 2
    GPIO_MONITORING = 1 << 3


class Capabilities:
    """Capabilities of a transport."""

    def __init__(self, capabilities: Capability) -> None:
        """Initialize the capability set.

        :param capabilities: Interfaces provided by the transport.
        """
        self.capabilities = capabilities

    def request(self, needed: Capability) -> "NeededCapabilities":
        """Request the given capabilities.

        :param needed: Required capabilities.
        :return: Object to check the request against the transport's capabilities.
        """
        return NeededCapabilities(self.capabilities, needed)

    def __contains__(self, capability: Capability) -> bool:
        return capability & self.capabilities == capability

    def __str__(self) -> str:
        return f"Capabilities({self.capabilities!r})"


class NeededCapabilities:
    """Capabilities requested by a caller."""

    def __init__(self, capabilities: Capability, needed: Capability) -> None:
        self.capabilities = capabilities
        self.needed = needed

    def ok(self) -> None:
        """Check that all requested capabilities are present.

        :raises TransportMissingCapabilitiesError: Some capabilities are missing.
        """
        if self.needed & self.capabilities != self.needed:
            raise TransportMissingCapabilitiesError(self.needed, self.capabilities)


#######################################################################
# Transport specific commands
#######################################################################


class CommandKind(HalEnum):
    """Kinds of transport specific commands."""

    FPGA_PROGRAM = (0, "FpgaProgram", "Program FPGA bitstream")


class TransportCommand:
    """Base of transport specific commands passed to ``Transport.dispatch``.

    :cvar kind: Kind of the command, selects the handler of the transport.
    """

    kind: CommandKind


@dataclass
class FpgaProgram(TransportCommand):
    """Program a bitstream into the FPGA of the probe.

    A bitstream starting with ``SKIP_MARKER`` is never programmed. With
    ``rom_kind`` set, the transport first resets the target and checks whether
    the expected ROM is already running, skipping the programming if so.
    """

    SKIP_MARKER = b"__skip__"

    kind = CommandKind.FPGA_PROGRAM

    bitstream: bytes
    rom_kind: Optional[RomKind] = None
    # length of the reset pulse in seconds
    rom_reset_pulse: float = 0.05
    # how long to wait for the ROM signature in seconds
    rom_timeout: float = 2.0

    def should_skip(self) -> bool:
        """Check the bitstream for the skip marker.

        :return: True if the bitstream must not be programmed.
        """
        return self.bitstream.startswith(self.SKIP_MARKER)

    @classmethod
    def from_file(cls, path: str, search_paths: Optional[list[str]] = None, **kwargs: Any) -> Self:
        """Create the command from bitstream file.

        :param path: Path to the bitstream.
        :param search_paths: List of paths where to search for the file.
        :param kwargs: Remaining fields of the command.
        :return: The command.
        """
        return cls(bitstream=load_binary(path, search_paths=search_paths), **kwargs)


#######################################################################
# Transport
#######################################################################


class Transport(ABC):
    """Single physical debug probe.

    Handles of pins, SPI targets and UARTs are created on first request and the
    same handle is returned on every following request of the same instance.
    """

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exception_type: Optional[Type[BaseException]] = None,
        exception_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    @abstractmethod
    def capabilities(self) -> Capabilities:
        """Get interfaces supported by the transport.

        :return: Capability set.
        """

    def uart(self, instance: str) -> "Uart":
        """Get UART handle.

        :param instance: UART instance identifier.
        :return: The UART.
        :raises TransportUnsupportedOperationError: Transport has no UART.
        """
        raise TransportUnsupportedOperationError(f"{self.__class__.__name__} has no UART")

    def gpio_pin(self, name: str) -> "GpioPin":
        """Get GPIO pin handle.

        :param name: Name of the pin.
        :return: The GPIO pin.
        :raises TransportUnsupportedOperationError: Transport has no GPIO.
        """
        raise TransportUnsupportedOperationError(f"{self.__class__.__name__} has no GPIO")

    def gpio_monitoring(self) -> "GpioMonitoring":
        """Get GPIO edge monitoring.

        :return: The GPIO monitoring.
        :raises TransportUnsupportedOperationError: Transport cannot monitor pins.
        """
        raise TransportUnsupportedOperationError(
            f"{self.__class__.__name__} has no GPIO monitoring"
        )

    def spi(self, instance: str) -> "SpiTarget":
        """Get SPI target handle.

        :param instance: SPI instance identifier.
        :return: The SPI target.
        :raises TransportUnsupportedOperationError: Transport has no SPI.
        """
        raise TransportUnsupportedOperationError(f"{self.__class__.__name__} has no SPI")

    def _command_handlers(self) -> dict[CommandKind, Callable[[Any], Optional[Any]]]:
        """Get handlers of transport specific commands.

        :return: Handler per command kind.
        """
        return {}

    def dispatch(self, command: TransportCommand) -> Optional[Any]:
        """Invoke transport specific command.

        :param command: The command.
        :return: Serializable result of the command, if any.
        :raises TransportUnsupportedOperationError: The transport cannot handle the command.
        """
        handler = self._command_handlers().get(command.kind)
        if handler is None:
            raise TransportUnsupportedOperationError(
                f"Command {command.__class__.__name__} is not supported "
                f"by {self.__class__.__name__}"
            )
        logger.debug(f"Dispatching {command.kind.label} command")
        return handler(command)

    def close(self) -> None:
        """Release the probe."""
