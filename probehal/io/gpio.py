#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""GPIO interface of ProbeHAL transports.

This module defines pin and pull modes, the contract every GPIO pin
implementation satisfies, the edge monitoring contract for transports able to
capture pin changes, and the GPIO error family.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from probehal.exceptions import ProbeHalError
from probehal.transport import TransportUnsupportedOperationError
from probehal.utils.hal_enum import HalEnum

logger = logging.getLogger(__name__)


#######################################################################
# GPIO errors
#######################################################################


class GpioError(ProbeHalError):
    """Base of errors related to the GPIO interface."""


class GpioInvalidPinNameError(GpioError):
    """The pin name is not known to the transport."""

    def __init__(self, pin_name: str) -> None:
        """Initialize the error.

        :param pin_name: Name of the pin as requested.
        """
        super().__init__(f"Invalid pin name {pin_name}")
        self.pin_name = pin_name


class GpioInvalidPinNumberError(GpioError):
    """The pin number is out of range of the transport."""

    def __init__(self, pin_number: int) -> None:
        """Initialize the error.

        :param pin_number: Number of the pin as requested.
        """
        super().__init__(f"Invalid pin number {pin_number}")
        self.pin_number = pin_number


class GpioInvalidPinModeError(GpioError):
    """The current mode of the pin does not support the requested operation.

    E.g. setting level of a pin configured as input.
    """

    def __init__(self, pin: Union[int, str]) -> None:
        """Initialize the error.

        :param pin: Number or name of the pin.
        """
        super().__init__(f"Invalid mode for pin {pin}")
        self.pin = pin


class GpioUnsupportedPinModeError(GpioError):
    """The hardware does not support the requested pin mode."""

    def __init__(self, mode: "PinMode") -> None:
        """Initialize the error.

        :param mode: Requested pin mode.
        """
        super().__init__(f"Unsupported mode {mode.label} requested")
        self.mode = mode


class GpioUnsupportedPullModeError(GpioError):
    """The hardware does not support the requested pull mode."""

    def __init__(self, mode: "PullMode") -> None:
        """Initialize the error.

        :param mode: Requested pull mode.
        """
        super().__init__(f"Unsupported pull mode {mode.label} requested")
        self.mode = mode


class GpioPinModeConflictError(GpioError):
    """Host and target disagree on the configuration of a pin."""

    def __init__(self, pin_name: str, host: str, target: str) -> None:
        """Initialize the error.

        :param pin_name: Name of the pin.
        :param host: Configuration on the host side.
        :param target: Configuration on the target side.
        """
        super().__init__(
            f"Conflicting pin configurations for pin {pin_name}: host:{host}, target:{target}"
        )
        self.pin_name = pin_name
        self.host = host
        self.target = target


class GpioPinValueConflictError(GpioError):
    """Host and target drive a pin to conflicting logic values."""

    def __init__(self, pin_name: str, host: str, target: str) -> None:
        """Initialize the error.

        :param pin_name: Name of the pin.
        :param host: Logic value on the host side.
        :param target: Logic value on the target side.
        """
        super().__init__(
            f"Conflicting pin logic values for pin {pin_name}: host:{host}, target:{target}"
        )
        self.pin_name = pin_name
        self.host = host
        self.target = target


class GpioPinValueUndefinedError(GpioError):
    """Logic value of a pin cannot be determined."""

    def __init__(self, pin_name: str) -> None:
        """Initialize the error.

        :param pin_name: Name of the pin.
        """
        super().__init__(f"Undefined pin logic value for pin {pin_name}")
        self.pin_name = pin_name


class GpioUnsupportedPinVoltageError(GpioError):
    """Requested voltage is out of the range supported by the hardware."""

    def __init__(self, volts: float) -> None:
        """Initialize the error.

        :param volts: Requested voltage.
        """
        super().__init__(f"Unsupported voltage {volts}V requested")
        self.volts = volts


class GpioMonitoringOverrunError(GpioError):
    """Edges were lost because the monitoring buffer of the transport overflowed."""

    def __init__(self, desc: Optional[str] = None) -> None:
        """Initialize the error.

        :param desc: Optional details reported by the transport.
        """
        super().__init__(desc or "Buffer overrun during GPIO monitoring")


#######################################################################
# Pin configuration
#######################################################################


class PinMode(HalEnum):
    """Mode of I/O pins."""

    INPUT = (0, "Input", "Digital input")
    PUSH_PULL = (1, "PushPull", "Digital output actively driven both ways")
    OPEN_DRAIN = (2, "OpenDrain", "Digital output actively driven low only")
    ANALOG_INPUT = (3, "AnalogInput", "Analog input with digital circuitry disabled")
    ANALOG_OUTPUT = (4, "AnalogOutput", "Analog output")
    ALTERNATE = (5, "Alternate", "Pin used for UART/SPI/I2C or other peripheral")


class PullMode(HalEnum):
    """Mode of weak pull, relevant in Input and OpenDrain modes."""

    NONE = (0, "None", "No pull resistor")
    PULL_UP = (1, "PullUp", "Weak pull up")
    PULL_DOWN = (2, "PullDown", "Weak pull down")


class GpioPin(ABC):
    """Single GPIO pin.

    Pin handles keep no state on the host side: every call reaches the
    physical device.
    """

    @abstractmethod
    def read(self) -> bool:
        """Read the logic level of the pin.

        :return: True for high level.
        """

    @abstractmethod
    def write(self, value: bool) -> None:
        """Set the logic level of the pin.

        :param value: True for high level.
        """

    @abstractmethod
    def set_mode(self, mode: PinMode) -> None:
        """Set the mode of the pin as input, output, open drain, etc.

        :param mode: Requested pin mode.
        :raises GpioUnsupportedPinModeError: The hardware does not support the mode.
        """

    @abstractmethod
    def set_pull_mode(self, mode: PullMode) -> None:
        """Set the weak pull resistors of the pin.

        :param mode: Requested pull mode.
        :raises GpioUnsupportedPullModeError: The hardware does not support the mode.
        """

    def analog_read(self) -> float:
        """Read the analog value of the pin in Volts.

        :return: Voltage of the pin.
        :raises TransportUnsupportedOperationError: The transport is purely digital.
        """
        raise TransportUnsupportedOperationError("Analog read is not supported")

    def analog_write(self, volts: float) -> None:
        """Set the analog value of the pin, the pin must be in AnalogOutput mode.

        :param volts: Requested voltage.
        :raises TransportUnsupportedOperationError: The transport is purely digital.
        """
        raise TransportUnsupportedOperationError("Analog write is not supported")

    def set(
        self,
        mode: Optional[PinMode] = None,
        value: Optional[bool] = None,
        pull: Optional[PullMode] = None,
        analog_value: Optional[float] = None,
    ) -> None:
        """Set mode, value and weak pull of the pin in one call.

        The default implementation applies the settings one by one in the order
        mode, pull, value, analog value. Settings applied before a failing step
        stay applied. Transports able to guarantee atomicity override this method.

        :param mode: Pin mode to set, None to keep.
        :param value: Logic level to set, None to keep.
        :param pull: Pull mode to set, None to keep.
        :param analog_value: Voltage to set, None to keep.
        """
        if mode is not None:
            self.set_mode(mode)
        if pull is not None:
            self.set_pull_mode(pull)
        if value is not None:
            self.write(value)
        if analog_value is not None:
            self.analog_write(analog_value)

    def get_internal_pin_name(self) -> Optional[str]:
        """Get the pin name as known to the transport after alias resolution.

        Used by GPIO monitoring implementations only.

        :return: Internal pin name, None if not applicable.
        """
        return None


#######################################################################
# GPIO monitoring
#######################################################################


class Edge(HalEnum):
    """Edge detected on a monitored pin."""

    RISING = (0, "Rising", "Transition from low to high")
    FALLING = (1, "Falling", "Transition from high to low")


@dataclass(frozen=True)
class Wallclock:
    """Timestamps convertible to Unix time as ``(t + offset) / resolution``."""

    # 1_000_000 for microsecond timestamps
    resolution: int
    # offset relative to Unix epoch in units of resolution, None if unknown
    offset: Optional[int] = None

    def to_seconds(self, timestamp: int) -> float:
        """Convert timestamp to seconds.

        With unknown offset the result is relative to an arbitrary epoch.

        :param timestamp: Timestamp of a monitoring event.
        :return: Time in seconds.
        """
        return (timestamp + (self.offset or 0)) / self.resolution


@dataclass(frozen=True)
class Unspecified:
    """Timestamps increase monotonically, but not uniformly with wall clock time."""


ClockNature = Union[Wallclock, Unspecified]


@dataclass(frozen=True)
class MonitoringEvent:
    """Edge detected on a monitored pin."""

    # index into the pin list passed to monitoring_read()
    signal_index: int
    edge: Edge
    timestamp: int


@dataclass
class MonitoringStartResponse:
    """Result of starting the monitoring."""

    timestamp: int
    initial_levels: list[bool] = field(default_factory=list)


@dataclass
class MonitoringReadResponse:
    """Events captured since the start or the previous read.

    All events at or before ``timestamp`` are guaranteed to be included.
    """

    events: list[MonitoringEvent] = field(default_factory=list)
    timestamp: int = 0


class GpioMonitoring(ABC):
    """Edge detection on a set of GPIO pins.

    The transport buffers rising and falling edges of the monitored pins, the
    client collects them with repeated reads.
    """

    @abstractmethod
    def get_clock_nature(self) -> ClockNature:
        """Get the meaning of event timestamps.

        :return: Clock nature of the timestamps.
        """

    @abstractmethod
    def monitoring_start(self, pins: Sequence[GpioPin]) -> MonitoringStartResponse:
        """Start edge detection on the given pins.

        :param pins: Ordered list of pins to monitor.
        :return: Timestamp and initial level of each pin, in the order of ``pins``.
        """

    @abstractmethod
    def monitoring_stop(self, pins: Sequence[GpioPin]) -> None:
        """Stop edge detection on the given pins.

        :param pins: Pins passed to monitoring_start().
        """

    @abstractmethod
    def _monitoring_read(self, pins: Sequence[GpioPin]) -> MonitoringReadResponse:
        """Collect events buffered by the transport.

        :param pins: Pins passed to monitoring_start().
        :return: Events and timestamp watermark.
        :raises GpioMonitoringOverrunError: Monitoring buffer overflowed.
        """

    def monitoring_read(
        self, pins: Sequence[GpioPin], continue_monitoring: bool = True
    ) -> MonitoringReadResponse:
        """Retrieve events detected thus far, optionally stopping the monitoring.

        A buffer overrun always stops the monitoring, whatever the value of
        ``continue_monitoring``.

        :param pins: Pins passed to monitoring_start().
        :param continue_monitoring: Keep the edge detection running after the read.
        :return: Events and timestamp watermark.
        :raises GpioMonitoringOverrunError: Monitoring buffer overflowed.
        """
        try:
            response = self._monitoring_read(pins)
        except GpioMonitoringOverrunError:
            logger.warning("GPIO monitoring buffer overrun, stopping the monitoring")
            self.monitoring_stop(pins)
            raise
        if not continue_monitoring:
            self.monitoring_stop(pins)
        return response
