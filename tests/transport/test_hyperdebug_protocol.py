#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the HyperDebug USB-SPI packets."""

import pytest

from probehal.transport import TransportCommunicationError
from probehal.transport.hyperdebug.protocol import (
    FULL_DUPLEX,
    CmdChipSelect,
    CmdGetUsbSpiConfig,
    CmdTransferContinue,
    CmdTransferStart,
    RspChipSelect,
    RspTransferContinue,
    RspTransferStart,
    RspUsbSpiConfig,
    UsbSpiPacketId,
    packet_id_of,
)


def test_commands_export() -> None:
    """Test binary layout of commands."""
    assert CmdGetUsbSpiConfig().export() == b"\x00\x00"
    assert CmdTransferStart(3, 2, b"\x9f").export() == b"\x02\x00\x03\x00\x02\x00\x9f"
    assert CmdTransferStart(2, FULL_DUPLEX, b"\x01\x02").export()[4:6] == b"\xff\xff"
    assert CmdTransferContinue(58, b"\xaa").export() == b"\x03\x00\x3a\x00\xaa"
    assert CmdChipSelect(True).export() == b"\x07\x00\x01\x00"
    assert CmdChipSelect(False).export() == b"\x07\x00\x00\x00"


def test_commands_data_limit() -> None:
    """Test that commands carry at most one USB packet of data."""
    assert len(CmdTransferStart(58, 0, bytes(58)).export()) == 64
    assert len(CmdTransferContinue(58, bytes(60)).export()) == 64
    with pytest.raises(TransportCommunicationError):
        CmdTransferStart(59, 0, bytes(59))
    with pytest.raises(TransportCommunicationError):
        CmdTransferContinue(58, bytes(61))


def test_responses_parse() -> None:
    """Test parsing of responses."""
    config = RspUsbSpiConfig.parse(b"\x01\x00\x00\x02\x00\x01\x01\x00")
    assert (config.max_write_chunk, config.max_read_chunk) == (0x200, 0x100)
    assert config.full_duplex
    assert not RspUsbSpiConfig.parse(b"\x01\x00\x00\x02\x00\x01\x00\x00").full_duplex
    start = RspTransferStart.parse(b"\x05\x00\x00\x00\x01\x02")
    assert (start.status_code, start.data) == (0, b"\x01\x02")
    cont = RspTransferContinue.parse(b"\x06\x00\x3c\x00\x03")
    assert (cont.data_index, cont.data) == (60, b"\x03")
    assert RspChipSelect.parse(b"\x08\x00\x02\x00").status_code == 2


@pytest.mark.parametrize(
    "parser,data",
    [
        (RspUsbSpiConfig.parse, b"\x01\x00\x00\x02\x00\x01\x01"),
        (RspUsbSpiConfig.parse, b"\x02\x00\x00\x02\x00\x01\x01\x00"),
        (RspTransferStart.parse, b"\x05\x00\x00"),
        (RspTransferStart.parse, b"\x06\x00\x00\x00"),
        (RspTransferContinue.parse, b"\x06\x00\x3c\x00"),
        (RspChipSelect.parse, b"\x05\x00\x00\x00"),
    ],
)
def test_responses_malformed(parser: object, data: bytes) -> None:
    """Test rejection of malformed responses."""
    with pytest.raises(TransportCommunicationError):
        parser(data)  # type: ignore[operator]


def test_packet_id_of() -> None:
    """Test recognition of packet ids."""
    assert packet_id_of(b"\x05\x00\x00\x00") == UsbSpiPacketId.RSP_TRANSFER_START
    assert packet_id_of(b"\x09\x00") is None
    assert packet_id_of(b"\x05") is None
