#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the CW310 FPGA carrier board transport."""

import struct
from typing import Any

import pytest

from probehal.io.gpio import (
    GpioInvalidPinNameError,
    GpioInvalidPinNumberError,
    GpioUnsupportedPinModeError,
    GpioUnsupportedPullModeError,
    PinMode,
    PullMode,
)
from probehal.io.spi import Both, Read, SpiMismatchedDataLengthError, TransferMode, Write
from probehal.io.uart import Uart
from probehal.transport import (
    Capability,
    FpgaProgram,
    TransportCommand,
    TransportFirmwareProgramError,
    TransportInvalidInstanceError,
    TransportUnsupportedOperationError,
)
from probehal.transport import cw310 as cw310_module
from probehal.transport.cw310 import CW310
from probehal.transport.cw310.usb import PID_CW310, VID_NEWAE, Backend, pin_name_to_number
from probehal.utils.config import Config
from probehal.utils.rom_detect import RomDetector, RomKind
from tests.fakes import FakeCW310Device, FakeUart

CTRL_OUT = "ctrl_out"


class StaticRomDetector(RomDetector):
    """ROM detector with fixed result."""

    def __init__(self, result: bool) -> None:
        self.result = result
        self.uarts: list[Uart] = []

    def detect(self, uart: Uart) -> bool:
        self.uarts.append(uart)
        return self.result


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip delays of the programming sequence and the reset pulse."""
    monkeypatch.setattr("time.sleep", lambda _: None)


def create_cw310(device: FakeCW310Device, **kwargs: Any) -> CW310:
    """Create CW310 transport on fake device with fake UARTs.

    :param device: Fake USB device of the board.
    :param kwargs: Remaining arguments of the transport.
    :return: The transport.
    """
    kwargs.setdefault("uart_override", ["/dev/ttyACM1", "/dev/ttyACM0"])
    return CW310(device, uart_factory=FakeUart, **kwargs)


def gpio_writes(device: FakeCW310Device) -> list[tuple]:
    """Get GPIO related control writes as (sub-command, data)."""
    return [(value, data) for request, value, _, data in device.control_out if request == 0x34]


@pytest.mark.parametrize(
    "name,number",
    [
        ("USB_A0", 0),
        ("USB_A18", 18),
        ("usb_b1", 33),
        ("USB_D31", 127),
        ("USB_SPI_SCK", 27),
        ("100", 100),
    ],
)
def test_pin_names(name: str, number: int) -> None:
    """Test conversion of symbolic pin names."""
    assert pin_name_to_number(name) == number


@pytest.mark.parametrize(
    "name,error",
    [
        ("128", GpioInvalidPinNumberError),
        ("USB_A32", GpioInvalidPinNameError),
        ("USB_E1", GpioInvalidPinNameError),
        ("IOA0", GpioInvalidPinNameError),
    ],
)
def test_invalid_pin_names(name: str, error: type) -> None:
    """Test rejection of unknown pin names."""
    with pytest.raises(error):
        pin_name_to_number(name)


def test_init_direction() -> None:
    """Test that reset, JTAG and bootstrap pins are outputs driven high."""
    device = FakeCW310Device()
    create_cw310(device)
    assert gpio_writes(device) == [
        (0xA0, bytes([18, 1])),
        (0xA2, bytes([18, 1])),
        (0xA0, bytes([19, 1])),
        (0xA2, bytes([19, 1])),
        (0xA0, bytes([16, 1])),
        (0xA2, bytes([16, 1])),
    ]


def test_capabilities() -> None:
    """Test that CW310 has no GPIO monitoring."""
    transport = create_cw310(FakeCW310Device())
    capabilities = transport.capabilities()
    capabilities.request(Capability.SPI | Capability.GPIO | Capability.UART).ok()
    assert Capability.GPIO_MONITORING not in capabilities
    with pytest.raises(TransportUnsupportedOperationError):
        transport.gpio_monitoring()


def test_gpio_pin_cached() -> None:
    """Test that the same pin handle is returned for the same name."""
    transport = create_cw310(FakeCW310Device(serial_number="SN1"))
    pin = transport.gpio_pin("USB_A18")
    assert transport.gpio_pin("USB_A18") is pin
    assert pin.get_internal_pin_name() == "USB_A18"
    with pytest.raises(GpioInvalidPinNameError):
        transport.gpio_pin("USB_X1")


def test_gpio_pin_operations() -> None:
    """Test reading, writing and configuring a pin."""
    device = FakeCW310Device()
    device.control_responses[(0x34, 5)] = b"\x01"
    transport = create_cw310(device)
    pin = transport.gpio_pin("USB_A5")
    assert pin.read() is True
    pin.set(mode=PinMode.PUSH_PULL, pull=PullMode.NONE, value=False)
    assert gpio_writes(device)[-2:] == [(0xA0, bytes([5, 1])), (0xA2, bytes([5, 0]))]
    with pytest.raises(GpioUnsupportedPinModeError):
        pin.set_mode(PinMode.OPEN_DRAIN)
    with pytest.raises(GpioUnsupportedPullModeError):
        pin.set_pull_mode(PullMode.PULL_UP)


def test_uart_override() -> None:
    """Test UART instances from the override list."""
    transport = create_cw310(FakeCW310Device())
    uart = transport.uart("1")
    assert isinstance(uart, FakeUart) and uart.port == "/dev/ttyACM0"
    assert transport.uart("1") is uart
    for instance in ("2", "a"):
        with pytest.raises(TransportInvalidInstanceError):
            transport.uart(instance)


def test_uart_by_serial_number(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that UART 0 is the last serial port of the board."""
    monkeypatch.setattr(
        cw310_module,
        "list_ports_by_serial_number",
        lambda serial: ["/dev/ttyACM3", "/dev/ttyACM4"] if serial == "SN1" else [],
    )
    transport = create_cw310(FakeCW310Device(serial_number="SN1"), uart_override=[])
    uart0 = transport.uart("0")
    uart1 = transport.uart("1")
    assert isinstance(uart0, FakeUart) and uart0.port == "/dev/ttyACM4"
    assert isinstance(uart1, FakeUart) and uart1.port == "/dev/ttyACM3"


def test_spi() -> None:
    """Test SPI bridge setup, instance validation and loopback transfers."""
    device = FakeCW310Device()
    transport = create_cw310(device)
    with pytest.raises(TransportInvalidInstanceError):
        transport.spi("1")
    spi = transport.spi("0")
    assert transport.spi("0") is spi
    spi_writes = [
        (value, data) for request, value, _, data in device.control_out if request == 0x35
    ]
    assert spi_writes == [(0x10, bytes([26, 25, 27, 28])), (0x01, b"")]

    both = Both(bytes(range(100)))
    read = Read(3)
    spi.run_transaction([Write(b"\x9f"), both, read])
    assert bytes(both.buffer) == bytes(range(100))
    assert bytes(read.buffer) == bytes(3)

    with pytest.raises(SpiMismatchedDataLengthError):
        spi.run_transaction([Both(b"\x00", 2)])
    with pytest.raises(TransportUnsupportedOperationError):
        spi.set_transfer_mode(TransferMode.MODE1)


def test_spi_chip_select_bracket() -> None:
    """Test that transaction is bracketed by a single chip select pair."""
    device = FakeCW310Device()
    spi = create_cw310(device).spi("0")
    with spi.assert_cs():
        spi.run_transaction([Write(b"\x01")])
        spi.run_transaction([Write(b"\x02")])
    cs = [value for request, value, _, _ in device.control_out if value in (0x11, 0x12)]
    assert cs == [0x11, 0x12]


def test_fpga_program_skip() -> None:
    """Test that skip bitstream causes no USB traffic."""
    device = FakeCW310Device()
    transport = create_cw310(device)
    events_before = len(device.events)
    assert transport.dispatch(FpgaProgram(bitstream=b"__skip__ whatever")) is None
    assert len(device.events) == events_before


def test_fpga_program() -> None:
    """Test the programming sequence."""
    device = FakeCW310Device()
    transport = create_cw310(device)
    bitstream = bytes(5000)
    events_before = len(device.events)
    transport.dispatch(FpgaProgram(bitstream=bitstream))
    events = device.events[events_before:]
    assert events[0] == (CTRL_OUT, 0x35, 0x00, 0, b"")
    assert events[1] == (CTRL_OUT, 0x34, 0xA2, 0, bytes([19, 1]))
    assert events[2] == (CTRL_OUT, 0x16, 0xA0, 0, b"")
    assert events[3] == (CTRL_OUT, 0x16, 0xA1, 0, struct.pack("<I", 5000))
    bulk = [event[2] for event in events if event[0] == "bulk_out"]
    assert [len(chunk) for chunk in bulk] == [2048, 2048, 904]
    assert events[-2][:2] == ("ctrl_in", 0x15)
    assert events[-1] == (CTRL_OUT, 0x16, 0xA2, 0, b"")


def test_fpga_program_not_done() -> None:
    """Test that missing DONE status is reported."""
    transport = create_cw310(FakeCW310Device(fpga_done=False))
    with pytest.raises(TransportFirmwareProgramError):
        transport.dispatch(FpgaProgram(bitstream=b"\x00" * 10))


@pytest.mark.parametrize("detected,programmed", [(True, False), (False, True)])
def test_fpga_program_rom_detection(detected: bool, programmed: bool) -> None:
    """Test that programming is skipped when the expected ROM is running."""
    device = FakeCW310Device()
    detector = StaticRomDetector(detected)
    transport = create_cw310(device, rom_detector_factory=lambda *args: detector)
    writes_before = len(device.control_out)
    transport.dispatch(FpgaProgram(bitstream=b"\x01" * 10, rom_kind=RomKind.TEST_ROM))
    writes = device.control_out[writes_before:]
    # reset pulse on USB_A18
    assert (0x34, 0xA2, 0, bytes([18, 0])) in writes
    assert (0x34, 0xA2, 0, bytes([18, 1])) in writes
    assert detector.uarts == [transport.uart("0")]
    assert any(event[0] == "bulk_out" for event in device.events) is programmed


def test_unsupported_command() -> None:
    """Test that unknown command kind is rejected."""

    class Unknown(TransportCommand):
        kind = None  # type: ignore[assignment]

    transport = create_cw310(FakeCW310Device())
    with pytest.raises(TransportUnsupportedOperationError):
        transport.dispatch(Unknown())


def test_backend_firmware_version() -> None:
    """Test reading SAM3X firmware version."""
    device = FakeCW310Device()
    device.control_responses[(0x17, 0)] = b"\x01\x02\x03"
    assert Backend(device).get_firmware_version() == "1.2.3"


def test_close() -> None:
    """Test that closing releases UARTs and the USB device."""
    device = FakeCW310Device()
    transport = create_cw310(device)
    uart = transport.uart("0")
    transport.close()
    assert isinstance(uart, FakeUart) and uart.closed
    assert not device.is_opened


def test_load_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test opening the board from configuration."""
    opened: dict = {}
    monkeypatch.setattr(CW310, "open", classmethod(lambda cls, **kwargs: opened.update(kwargs)))
    CW310.load_from_config(Config({"usb_serial": "SN1", "uart_override": ["/dev/ttyUSB0"]}))
    assert opened == {
        "usb_vid": VID_NEWAE,
        "usb_pid": PID_CW310,
        "usb_serial": "SN1",
        "uart_override": ["/dev/ttyUSB0"],
    }
