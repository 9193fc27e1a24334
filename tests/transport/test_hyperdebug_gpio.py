#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of HyperDebug GPIO pins and edge monitoring driven by console commands."""

import pytest

from probehal.io.gpio import (
    Edge,
    GpioMonitoringOverrunError,
    GpioUnsupportedPinModeError,
    GpioUnsupportedPinVoltageError,
    GpioUnsupportedPullModeError,
    MonitoringEvent,
    PinMode,
    PullMode,
    Wallclock,
)
from probehal.transport import TransportCommunicationError
from probehal.transport.hyperdebug.console import Inner
from probehal.transport.hyperdebug.gpio import HyperdebugGpioMonitoring, HyperdebugGpioPin
from tests.fakes import FakeConsole


@pytest.mark.parametrize("line,expected", [("  1 IOA0", True), ("0 IOA0", False)])
def test_read(inner: Inner, console: FakeConsole, line: str, expected: bool) -> None:
    """Test reading pin level from gpioget output."""
    console.outputs["gpioget IOA0"] = [line]
    assert HyperdebugGpioPin(inner, "IOA0").read() is expected


def test_read_unexpected_output(inner: Inner, console: FakeConsole) -> None:
    """Test that unexpected gpioget output is reported."""
    console.outputs["gpioget IOA0"] = ["Parameter 1 invalid"]
    with pytest.raises(TransportCommunicationError):
        HyperdebugGpioPin(inner, "IOA0").read()


@pytest.mark.parametrize(
    "mode,name",
    [
        (PinMode.INPUT, "input"),
        (PinMode.PUSH_PULL, "push_pull"),
        (PinMode.OPEN_DRAIN, "open_drain"),
        (PinMode.ANALOG_INPUT, "adc"),
        (PinMode.ANALOG_OUTPUT, "dac"),
        (PinMode.ALTERNATE, "alternate"),
    ],
)
def test_set_mode(inner: Inner, console: FakeConsole, mode: PinMode, name: str) -> None:
    """Test console command of each pin mode."""
    console.outputs[f"gpiomode IOA0 {name}"] = []
    HyperdebugGpioPin(inner, "IOA0").set_mode(mode)
    assert console.commands == [f"gpiomode IOA0 {name}"]


def test_write_and_pull(inner: Inner, console: FakeConsole) -> None:
    """Test writing level and pull mode."""
    console.outputs["gpioset IOA0 1"] = []
    console.outputs["gpiopullmode IOA0 up"] = []
    pin = HyperdebugGpioPin(inner, "IOA0")
    pin.write(True)
    pin.set_pull_mode(PullMode.PULL_UP)
    assert console.commands == ["gpioset IOA0 1", "gpiopullmode IOA0 up"]


def test_mode_refused(inner: Inner, console: FakeConsole) -> None:
    """Test that modes rejected by the firmware raise the typed GPIO errors."""
    console.outputs["gpiomode IOA0 dac"] = ["Parameter 2 invalid"]
    console.outputs["gpiopullmode IOA0 down"] = ["Command returned error 2"]
    pin = HyperdebugGpioPin(inner, "IOA0")
    with pytest.raises(GpioUnsupportedPinModeError) as mode_exc:
        pin.set_mode(PinMode.ANALOG_OUTPUT)
    assert mode_exc.value.mode == PinMode.ANALOG_OUTPUT
    with pytest.raises(GpioUnsupportedPullModeError) as pull_exc:
        pin.set_pull_mode(PullMode.PULL_DOWN)
    assert pull_exc.value.mode == PullMode.PULL_DOWN
    with pytest.raises(TransportCommunicationError):
        pin.set_mode(PinMode.INPUT)


def test_command_error(inner: Inner, console: FakeConsole) -> None:
    """Test that error printed by the firmware is reported."""
    pin = HyperdebugGpioPin(inner, "NOPE")
    with pytest.raises(TransportCommunicationError):
        pin.write(False)


def test_analog(inner: Inner, console: FakeConsole) -> None:
    """Test analog read and write in millivolts."""
    console.outputs["adc IOA0"] = ["IOA0 = 1650 mV"]
    console.outputs["gpio analog-set IOA0 1200"] = []
    pin = HyperdebugGpioPin(inner, "IOA0")
    assert pin.analog_read() == pytest.approx(1.65)
    pin.analog_write(1.2)
    with pytest.raises(GpioUnsupportedPinVoltageError):
        pin.analog_write(3.5)
    assert console.commands == ["adc IOA0", "gpio analog-set IOA0 1200"]


def test_set_single_command(inner: Inner, console: FakeConsole) -> None:
    """Test that combined setting is one multiset command with placeholders."""
    console.outputs["gpio multiset IOA0 1 open_drain -"] = []
    console.outputs["gpio multiset IOA0 - - down"] = []
    pin = HyperdebugGpioPin(inner, "IOA0")
    pin.set(mode=PinMode.OPEN_DRAIN, value=True)
    pin.set(pull=PullMode.PULL_DOWN)
    assert console.commands == ["gpio multiset IOA0 1 open_drain -", "gpio multiset IOA0 - - down"]


def test_monitoring(inner: Inner, console: FakeConsole) -> None:
    """Test monitoring start, read and stop."""
    pins = [HyperdebugGpioPin(inner, "IOA0"), HyperdebugGpioPin(inner, "IOA1")]
    console.outputs["gpio monitoring start IOA0 IOA1"] = ["  @1000", "  10"]
    console.outputs["gpio monitoring read IOA0 IOA1"] = ["  0 1010 F", "  1 1020 R", "  @1100"]
    console.outputs["gpio monitoring stop IOA0 IOA1"] = []
    monitoring = HyperdebugGpioMonitoring(inner)

    assert monitoring.get_clock_nature() == Wallclock(resolution=1_000_000)
    start = monitoring.monitoring_start(pins)
    assert start.timestamp == 1000
    assert start.initial_levels == [True, False]

    response = monitoring.monitoring_read(pins, continue_monitoring=False)
    assert response.timestamp == 1100
    assert response.events == [
        MonitoringEvent(signal_index=0, edge=Edge.FALLING, timestamp=1010),
        MonitoringEvent(signal_index=1, edge=Edge.RISING, timestamp=1020),
    ]
    assert console.commands[-1] == "gpio monitoring stop IOA0 IOA1"


def test_monitoring_start_level_count(inner: Inner, console: FakeConsole) -> None:
    """Test that number of initial levels must match number of pins."""
    pins = [HyperdebugGpioPin(inner, "IOA0")]
    console.outputs["gpio monitoring start IOA0"] = ["  @1000", "  10"]
    with pytest.raises(TransportCommunicationError):
        HyperdebugGpioMonitoring(inner).monitoring_start(pins)


def test_monitoring_overrun(inner: Inner, console: FakeConsole) -> None:
    """Test that buffer overrun stops the monitoring even when asked to continue."""
    pins = [HyperdebugGpioPin(inner, "IOA0")]
    console.outputs["gpio monitoring read IOA0"] = ["Error: Buffer overrun"]
    console.outputs["gpio monitoring stop IOA0"] = []
    with pytest.raises(GpioMonitoringOverrunError):
        HyperdebugGpioMonitoring(inner).monitoring_read(pins, continue_monitoring=True)
    assert console.commands == ["gpio monitoring read IOA0", "gpio monitoring stop IOA0"]


def test_monitoring_read_missing_timestamp(inner: Inner, console: FakeConsole) -> None:
    """Test that read output without timestamp is rejected."""
    pins = [HyperdebugGpioPin(inner, "IOA0")]
    console.outputs["gpio monitoring read IOA0"] = ["  0 1010 F"]
    with pytest.raises(TransportCommunicationError, match="Missing timestamp"):
        HyperdebugGpioMonitoring(inner).monitoring_read(pins)
