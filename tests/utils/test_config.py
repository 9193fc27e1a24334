#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the configuration object."""

import os
from pathlib import Path

import pytest

from probehal.exceptions import ProbeHalError, ProbeHalKeyError
from probehal.transport import FpgaProgram
from probehal.utils.config import Config


@pytest.fixture
def config() -> Config:
    """Get configuration of a CW310 board."""
    return Config(
        {
            "cw310": {"uart_override": ["/dev/ttyACM1", "/dev/ttyACM0"], "usb_pid": "0xC310"},
            "usb_serial": "SN1",
            "detect_rom": True,
        }
    )


def test_nested_get(config: Config) -> None:
    """Test access to nested values by key path."""
    assert config["cw310/uart_override/1"] == "/dev/ttyACM0"
    assert config.get("cw310/usb_pid") == "0xC310"
    assert config.get("cw310/usb_vid", 0x2B3E) == 0x2B3E
    assert config.get("cw310/uart_override/5") is None
    with pytest.raises(ProbeHalKeyError):
        config["missing"]  # pylint: disable=pointless-statement


def test_set_creates_nested(config: Config) -> None:
    """Test that setting a key path creates intermediate dictionaries."""
    config["hyperdebug/uart/baudrate"] = 115200
    assert config["hyperdebug"] == {"uart": {"baudrate": 115200}}
    config["cw310/uart_override/0"] = "/dev/ttyUSB0"
    assert config["cw310/uart_override"][0] == "/dev/ttyUSB0"


def test_typed_getters(config: Config) -> None:
    """Test getters converting or checking the value type."""
    assert config.get_int("cw310/usb_pid") == 0xC310
    assert config.get_list("cw310/uart_override") == ["/dev/ttyACM1", "/dev/ttyACM0"]
    assert config.get_str("usb_serial") == "SN1"
    assert config.get_bool("detect_rom") is True
    assert config.get_list("uart_override", []) == []
    with pytest.raises(ProbeHalError):
        config.get_int("cw310/usb_vid")
    with pytest.raises(ProbeHalError):
        config.get_list("usb_serial")
    with pytest.raises(ProbeHalError):
        config.get_bool("usb_serial")
    with pytest.raises(ProbeHalKeyError):
        config["usb_serial/baudrate"] = 115200


def test_create_from_file(tmp_path: Path) -> None:
    """Test loading configuration and resolving files relative to it."""
    with open(os.path.join(tmp_path, "board.bit"), "wb") as f:
        f.write(b"__skip__")
    with open(os.path.join(tmp_path, "board.yaml"), "w", encoding="utf-8") as f:
        f.write("bitstream: board.bit\nusb_serial: SN1\n")
    config = Config.create_from_file(os.path.join(tmp_path, "board.yaml"))
    assert config.config_dir == str(tmp_path).replace("\\", "/")
    bitstream_path = config.get_input_file_name("bitstream")
    assert bitstream_path.endswith("board.bit")
    command = FpgaProgram.from_file(config["bitstream"], search_paths=config.search_paths)
    assert command.should_skip()
    config["bitstream"] = "other.bit"
    with pytest.raises(ProbeHalError, match="Cannot find input file"):
        config.get_input_file_name("bitstream")
