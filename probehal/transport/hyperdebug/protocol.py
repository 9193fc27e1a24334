#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Packets of the HyperDebug USB-SPI bulk protocol.

Every packet is at most 64 bytes long and starts with a little-endian 16-bit
packet id. A SPI operation is sent as one transfer-start packet followed by
transfer-continue packets while write data remain, the answer comes the same
way.
"""

import struct
from typing import Optional

from typing_extensions import Self

from probehal.transport import TransportCommunicationError
from probehal.utils.hal_enum import HalEnum
from probehal.utils.interfaces.commands import CmdPacketBase, CmdResponseBase

USB_MAX_SIZE = 64
# read count announcing full duplex transfer
FULL_DUPLEX = 65535


class UsbSpiPacketId(HalEnum):
    """Packet identifiers of the USB-SPI protocol."""

    CMD_GET_USB_SPI_CONFIG = (0, "CmdGetUsbSpiConfig", "Query of bridge capabilities")
    RSP_USB_SPI_CONFIG = (1, "RspUsbSpiConfig", "Bridge capabilities")
    CMD_TRANSFER_START = (2, "CmdTransferStart", "First packet of SPI operation")
    CMD_TRANSFER_CONTINUE = (3, "CmdTransferContinue", "Next packet of SPI operation")
    CMD_RESTART_RESPONSE = (4, "CmdRestartResponse", "Request to resend the response")
    RSP_TRANSFER_START = (5, "RspTransferStart", "First packet of SPI operation result")
    RSP_TRANSFER_CONTINUE = (6, "RspTransferContinue", "Next packet of SPI operation result")
    CMD_CHIP_SELECT = (7, "CmdChipSelect", "Assert or deassert chip select")
    RSP_CHIP_SELECT = (8, "RspChipSelect", "Chip select result")


class UsbSpiRequest(HalEnum):
    """Vendor control requests enabling the SPI bridge towards a bus."""

    ENABLE = (0, "Enable", "Enable bridge to generic SPI bus")
    DISABLE = (1, "Disable", "Disable bridge")
    ENABLE_AP = (2, "EnableAp", "Enable bridge to application processor flash")
    ENABLE_EC = (3, "EnableEc", "Enable bridge to embedded controller flash")


class CmdGetUsbSpiConfig(CmdPacketBase):
    """Capability query."""

    FORMAT = "<H"

    def export(self) -> bytes:
        return struct.pack(self.FORMAT, UsbSpiPacketId.CMD_GET_USB_SPI_CONFIG.tag)

    def __str__(self) -> str:
        return "CmdGetUsbSpiConfig()"


class RspUsbSpiConfig(CmdResponseBase):
    """Capabilities of the bridge."""

    FORMAT = "<4H"
    SIZE = struct.calcsize(FORMAT)
    # feature bit: concurrent read and write supported
    FEATURE_FULL_DUPLEX = 0x0001

    def __init__(self, max_write_chunk: int, max_read_chunk: int, feature_bitmap: int) -> None:
        self.max_write_chunk = max_write_chunk
        self.max_read_chunk = max_read_chunk
        self.feature_bitmap = feature_bitmap

    @property
    def full_duplex(self) -> bool:
        """Bridge supports bidirectional transfers."""
        return bool(self.feature_bitmap & self.FEATURE_FULL_DUPLEX)

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse the capability response.

        :param data: Raw response data.
        :return: Parsed response.
        :raises TransportCommunicationError: Wrong size or packet id.
        """
        if len(data) != cls.SIZE:
            raise TransportCommunicationError("Unrecognized response to GET_USB_SPI_CONFIG")
        packet_id, max_write, max_read, features = struct.unpack(cls.FORMAT, data)
        if packet_id != UsbSpiPacketId.RSP_USB_SPI_CONFIG.tag:
            raise TransportCommunicationError("Unrecognized response to GET_USB_SPI_CONFIG")
        return cls(max_write, max_read, features)

    def __str__(self) -> str:
        return (
            f"RspUsbSpiConfig(max_write={self.max_write_chunk}, max_read={self.max_read_chunk}, "
            f"features=0x{self.feature_bitmap:04X})"
        )


class CmdTransferStart(CmdPacketBase):
    """First packet of SPI operation: write and read counts and leading write data."""

    FORMAT = "<3H"
    MAX_DATA = USB_MAX_SIZE - struct.calcsize(FORMAT)

    def __init__(self, write_count: int, read_count: int, data: bytes = b"") -> None:
        if len(data) > self.MAX_DATA:
            raise TransportCommunicationError(f"Too much data for TRANSFER_START: {len(data)}")
        self.write_count = write_count
        self.read_count = read_count
        self.data = data

    def export(self) -> bytes:
        header = struct.pack(
            self.FORMAT, UsbSpiPacketId.CMD_TRANSFER_START.tag, self.write_count, self.read_count
        )
        return header + self.data

    def __str__(self) -> str:
        return (
            f"CmdTransferStart(write={self.write_count}, read={self.read_count}, "
            f"data={len(self.data)})"
        )


class CmdTransferContinue(CmdPacketBase):
    """Next packet of SPI operation: offset and further write data."""

    FORMAT = "<2H"
    MAX_DATA = USB_MAX_SIZE - struct.calcsize(FORMAT)

    def __init__(self, data_index: int, data: bytes) -> None:
        if len(data) > self.MAX_DATA:
            raise TransportCommunicationError(f"Too much data for TRANSFER_CONTINUE: {len(data)}")
        self.data_index = data_index
        self.data = data

    def export(self) -> bytes:
        header = struct.pack(
            self.FORMAT, UsbSpiPacketId.CMD_TRANSFER_CONTINUE.tag, self.data_index
        )
        return header + self.data

    def __str__(self) -> str:
        return f"CmdTransferContinue(index={self.data_index}, data={len(self.data)})"


class RspTransferStart(CmdResponseBase):
    """First packet of SPI operation result: status and leading read data."""

    FORMAT = "<2H"
    HEADER_SIZE = struct.calcsize(FORMAT)

    def __init__(self, status_code: int, data: bytes) -> None:
        self.status_code = status_code
        self.data = data

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse the response.

        :param data: Raw response data.
        :return: Parsed response.
        :raises TransportCommunicationError: Too short or wrong packet id.
        """
        if len(data) < cls.HEADER_SIZE:
            raise TransportCommunicationError("Unrecognized response to TRANSFER_START")
        packet_id, status_code = struct.unpack_from(cls.FORMAT, data)
        if packet_id != UsbSpiPacketId.RSP_TRANSFER_START.tag:
            raise TransportCommunicationError("Unrecognized response to TRANSFER_START")
        return cls(status_code, bytes(data[cls.HEADER_SIZE :]))

    def __str__(self) -> str:
        return f"RspTransferStart(status={self.status_code}, data={len(self.data)})"


class RspTransferContinue(CmdResponseBase):
    """Next packet of SPI operation result: offset and further read data."""

    FORMAT = "<2H"
    HEADER_SIZE = struct.calcsize(FORMAT)

    def __init__(self, data_index: int, data: bytes) -> None:
        self.data_index = data_index
        self.data = data

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse the response, it must carry at least one data byte.

        :param data: Raw response data.
        :return: Parsed response.
        :raises TransportCommunicationError: Too short or wrong packet id.
        """
        if len(data) <= cls.HEADER_SIZE:
            raise TransportCommunicationError("Unrecognized response to TRANSFER_CONTINUE")
        packet_id, data_index = struct.unpack_from(cls.FORMAT, data)
        if packet_id != UsbSpiPacketId.RSP_TRANSFER_CONTINUE.tag:
            raise TransportCommunicationError("Unrecognized response to TRANSFER_CONTINUE")
        return cls(data_index, bytes(data[cls.HEADER_SIZE :]))

    def __str__(self) -> str:
        return f"RspTransferContinue(index={self.data_index}, data={len(self.data)})"


class CmdChipSelect(CmdPacketBase):
    """Assert or deassert chip select."""

    FORMAT = "<2H"

    def __init__(self, assert_cs: bool) -> None:
        self.assert_cs = assert_cs

    def export(self) -> bytes:
        return struct.pack(self.FORMAT, UsbSpiPacketId.CMD_CHIP_SELECT.tag, int(self.assert_cs))

    def __str__(self) -> str:
        return f"CmdChipSelect(assert={self.assert_cs})"


class RspChipSelect(CmdResponseBase):
    """Chip select result."""

    FORMAT = "<2H"
    HEADER_SIZE = struct.calcsize(FORMAT)

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse the response.

        :param data: Raw response data.
        :return: Parsed response.
        :raises TransportCommunicationError: Too short or wrong packet id.
        """
        if len(data) < cls.HEADER_SIZE:
            raise TransportCommunicationError("Unrecognized response to CHIP_SELECT")
        packet_id, status_code = struct.unpack_from(cls.FORMAT, data)
        if packet_id != UsbSpiPacketId.RSP_CHIP_SELECT.tag:
            raise TransportCommunicationError("Unrecognized response to CHIP_SELECT")
        return cls(status_code)

    def __str__(self) -> str:
        return f"RspChipSelect(status={self.status_code})"


def packet_id_of(data: bytes) -> Optional[UsbSpiPacketId]:
    """Get packet id of raw packet.

    :param data: Raw packet.
    :return: Packet id, None if unknown or data too short.
    """
    if len(data) < 2:
        return None
    tag = struct.unpack_from("<H", data)[0]
    if not UsbSpiPacketId.contains(tag):
        return None
    return UsbSpiPacketId.from_tag(tag)
