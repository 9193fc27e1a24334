#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""GPIO pins and edge monitoring of HyperDebug, controlled by console commands."""

import logging
import re
from typing import Optional, Sequence

from probehal.io.gpio import (
    ClockNature,
    Edge,
    GpioError,
    GpioMonitoring,
    GpioMonitoringOverrunError,
    GpioPin,
    GpioUnsupportedPinModeError,
    GpioUnsupportedPinVoltageError,
    GpioUnsupportedPullModeError,
    MonitoringEvent,
    MonitoringReadResponse,
    MonitoringStartResponse,
    PinMode,
    PullMode,
    Wallclock,
)
from probehal.transport import TransportCommunicationError
from probehal.transport.hyperdebug.console import Inner

logger = logging.getLogger(__name__)

ADC_REGEX = re.compile(r"^ *([^ ]+) = (\d+) mV")
MONITORING_TIMESTAMP_REGEX = re.compile(r"^ *@(\d+)$")
MONITORING_LEVELS_REGEX = re.compile(r"^ *([01]+)$")
MONITORING_EVENT_REGEX = re.compile(r"^ *(\d+) (\d+) ([RF])$")
MONITORING_OVERRUN = "Buffer overrun"
# firmware reply to a parameter it does not accept
REFUSAL_REGEX = re.compile(r"^(Parameter \d+ invalid|Command returned error)")

# analog range of HyperDebug pins
MAX_VOLTAGE = 3.3

PIN_MODE_NAMES = {
    PinMode.INPUT: "input",
    PinMode.PUSH_PULL: "push_pull",
    PinMode.OPEN_DRAIN: "open_drain",
    PinMode.ANALOG_INPUT: "adc",
    PinMode.ANALOG_OUTPUT: "dac",
    PinMode.ALTERNATE: "alternate",
}

PULL_MODE_NAMES = {
    PullMode.NONE: "none",
    PullMode.PULL_UP: "up",
    PullMode.PULL_DOWN: "down",
}


class HyperdebugGpioPin(GpioPin):
    """GPIO pin of HyperDebug."""

    def __init__(self, inner: Inner, name: str) -> None:
        """Initialize the pin.

        :param inner: State shared by the HyperDebug interfaces.
        :param name: Pin name as known to the HyperDebug firmware.
        """
        self.inner = inner
        self.name = name

    def read(self) -> bool:
        line = self.inner.console.cmd_one_line_output(f"gpioget {self.name}").strip()
        if not line or line[0] not in "01":
            raise TransportCommunicationError(f"Unexpected level of pin {self.name}: {line}")
        return line[0] == "1"

    def write(self, value: bool) -> None:
        self.inner.console.cmd_no_output(f"gpioset {self.name} {int(value)}")

    def _configure(self, cmd: str, refused: GpioError) -> None:
        """Execute configuration command printing nothing on success.

        :param cmd: Command line.
        :param refused: Error reported when the firmware rejects the parameter.
        :raises GpioError: The firmware rejected the parameter.
        :raises TransportCommunicationError: Other unexpected output.
        """
        output = self.inner.console.run_command(cmd)
        if not output:
            return
        if any(REFUSAL_REGEX.match(line.strip()) for line in output):
            logger.debug(f"Pin {self.name} refused '{cmd}': {output}")
            raise refused
        raise TransportCommunicationError(f"Unexpected output of '{cmd}': {output}")

    def set_mode(self, mode: PinMode) -> None:
        self._configure(
            f"gpiomode {self.name} {PIN_MODE_NAMES[mode]}", GpioUnsupportedPinModeError(mode)
        )

    def set_pull_mode(self, mode: PullMode) -> None:
        self._configure(
            f"gpiopullmode {self.name} {PULL_MODE_NAMES[mode]}", GpioUnsupportedPullModeError(mode)
        )

    def analog_read(self) -> float:
        """Read voltage of the pin by the ADC of HyperDebug.

        :return: Voltage in Volts.
        :raises TransportCommunicationError: Unexpected output of the adc command.
        """
        match = self.inner.console.cmd_one_line_output_match(f"adc {self.name}", ADC_REGEX)
        return int(match.group(2)) / 1000

    def analog_write(self, volts: float) -> None:
        """Drive voltage by the DAC of HyperDebug.

        :param volts: Voltage in range 0 to 3.3 V.
        :raises GpioUnsupportedPinVoltageError: Voltage out of range.
        """
        if not 0.0 <= volts <= MAX_VOLTAGE:
            raise GpioUnsupportedPinVoltageError(volts)
        millivolts = round(volts * 1000)
        self.inner.console.cmd_no_output(f"gpio analog-set {self.name} {millivolts}")

    def set(
        self,
        mode: Optional[PinMode] = None,
        value: Optional[bool] = None,
        pull: Optional[PullMode] = None,
        analog_value: Optional[float] = None,
    ) -> None:
        """Set mode, value and weak pull of the pin by a single console command.

        :param mode: Pin mode to set, None to keep.
        :param value: Logic level to set, None to keep.
        :param pull: Pull mode to set, None to keep.
        :param analog_value: Voltage to set, None to keep.
        :raises GpioUnsupportedPinVoltageError: Voltage out of range.
        """
        args = [
            "-" if value is None else str(int(value)),
            "-" if mode is None else PIN_MODE_NAMES[mode],
            "-" if pull is None else PULL_MODE_NAMES[pull],
        ]
        if analog_value is not None:
            if not 0.0 <= analog_value <= MAX_VOLTAGE:
                raise GpioUnsupportedPinVoltageError(analog_value)
            args.append(str(round(analog_value * 1000)))
        self.inner.console.cmd_no_output(f"gpio multiset {self.name} {' '.join(args)}")

    def get_internal_pin_name(self) -> Optional[str]:
        return self.name


class HyperdebugGpioMonitoring(GpioMonitoring):
    """Edge monitoring by the ``gpio monitoring`` console commands.

    HyperDebug timestamps are microseconds of its own clock.
    """

    def __init__(self, inner: Inner) -> None:
        self.inner = inner

    @staticmethod
    def _pin_names(pins: Sequence[GpioPin]) -> str:
        names = []
        for pin in pins:
            name = pin.get_internal_pin_name()
            if name is None:
                raise TransportCommunicationError(f"Pin {pin} cannot be monitored by HyperDebug")
            names.append(name)
        return " ".join(names)

    def get_clock_nature(self) -> ClockNature:
        return Wallclock(resolution=1_000_000, offset=None)

    def monitoring_start(self, pins: Sequence[GpioPin]) -> MonitoringStartResponse:
        """Start edge detection on the given pins.

        :param pins: Ordered list of pins to monitor.
        :return: Timestamp and initial level of each pin.
        :raises TransportCommunicationError: Unexpected output of the command.
        """
        output = self.inner.console.run_command(
            f"gpio monitoring start {self._pin_names(pins)}"
        )
        timestamp = None
        levels = None
        for line in output:
            match = MONITORING_TIMESTAMP_REGEX.match(line)
            if match:
                timestamp = int(match.group(1))
                continue
            match = MONITORING_LEVELS_REGEX.match(line)
            if match:
                levels = match.group(1)
                continue
            raise TransportCommunicationError(f"Unexpected output of monitoring start: {line}")
        if timestamp is None or levels is None or len(levels) != len(pins):
            raise TransportCommunicationError(f"Unexpected output of monitoring start: {output}")
        return MonitoringStartResponse(
            timestamp=timestamp, initial_levels=[level == "1" for level in levels]
        )

    def _monitoring_read(self, pins: Sequence[GpioPin]) -> MonitoringReadResponse:
        output = self.inner.console.run_command(f"gpio monitoring read {self._pin_names(pins)}")
        events = []
        timestamp = None
        for line in output:
            if MONITORING_OVERRUN in line:
                raise GpioMonitoringOverrunError(line.strip())
            match = MONITORING_EVENT_REGEX.match(line)
            if match:
                signal_index = int(match.group(1))
                if signal_index >= len(pins):
                    raise TransportCommunicationError(f"Event of unknown signal: {line}")
                events.append(
                    MonitoringEvent(
                        signal_index=signal_index,
                        edge=Edge.RISING if match.group(3) == "R" else Edge.FALLING,
                        timestamp=int(match.group(2)),
                    )
                )
                continue
            match = MONITORING_TIMESTAMP_REGEX.match(line)
            if match:
                timestamp = int(match.group(1))
                continue
            raise TransportCommunicationError(f"Unexpected output of monitoring read: {line}")
        if timestamp is None:
            raise TransportCommunicationError("Missing timestamp in output of monitoring read")
        return MonitoringReadResponse(events=events, timestamp=timestamp)

    def monitoring_stop(self, pins: Sequence[GpioPin]) -> None:
        self.inner.console.cmd_no_output(f"gpio monitoring stop {self._pin_names(pins)}")
