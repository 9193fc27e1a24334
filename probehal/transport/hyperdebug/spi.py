#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""SPI targets behind the HyperDebug USB-SPI bridge.

HyperDebug forwards SPI operations received on a vendor specific bulk
interface to one of its SPI buses. One operation writes up to ``max_write``
bytes and then reads up to ``max_read`` bytes, with chip select asserted
around it. Longer sequences are bracketed by explicit chip select commands.
"""

import logging
from typing import Sequence

from probehal.exceptions import ProbeHalError, ProbeHalTimeoutError, ProbeHalTypeError
from probehal.io.spi import (
    Both,
    MaxSizes,
    Read,
    SpiInvalidDataLengthError,
    SpiMismatchedDataLengthError,
    SpiTarget,
    Transfer,
    TransferMode,
    Write,
)
from probehal.transport import TransportCommunicationError
from probehal.transport.hyperdebug.console import SPI_REGEX, Inner
from probehal.transport.hyperdebug.protocol import (
    FULL_DUPLEX,
    USB_MAX_SIZE,
    CmdChipSelect,
    CmdGetUsbSpiConfig,
    CmdTransferContinue,
    CmdTransferStart,
    RspChipSelect,
    RspTransferContinue,
    RspTransferStart,
    RspUsbSpiConfig,
    UsbSpiRequest,
)
from probehal.utils.interfaces.device.base import REQUEST_TYPE_VENDOR_OUT_INTERFACE, BulkInterface

logger = logging.getLogger(__name__)

# read timeout in milliseconds used when dropping stale responses
DRAIN_TIMEOUT = 10


class HyperdebugSpiTarget(SpiTarget):
    """SPI bus of HyperDebug reached through the USB-SPI bridge."""

    def __init__(
        self,
        inner: Inner,
        interface: BulkInterface,
        enable_cmd: UsbSpiRequest,
        idx: int,
    ) -> None:
        """Enable the bridge towards the bus and query its capabilities.

        :param inner: State shared by the HyperDebug interfaces.
        :param interface: Bulk interface of the USB-SPI bridge.
        :param enable_cmd: Vendor request enabling the bridge.
        :param idx: Index of the SPI bus.
        :raises TransportCommunicationError: The bridge is not usable.
        """
        self.inner = inner
        self.interface = interface
        self.target_enable_cmd = enable_cmd
        self.target_idx = idx
        self.cs_asserted_count = 0
        self.transfer_mode = TransferMode.MODE0

        usb_device = inner.usb_device
        # tell HyperDebug to enable the bridge and to address this bus
        inner.selected_spi = idx
        usb_device.write_control(
            REQUEST_TYPE_VENDOR_OUT_INTERFACE, enable_cmd.tag, idx, interface.interface
        )
        usb_device.claim_interface(interface.interface)

        self._usb_write_bulk(CmdGetUsbSpiConfig().export())
        config = RspUsbSpiConfig.parse(self._usb_read_bulk())
        logger.debug(f"SPI bus {idx}: {config}")
        if not config.full_duplex:
            raise TransportCommunicationError("HyperDebug does not support bidirectional SPI")
        self.max_sizes = MaxSizes(read=config.max_read_chunk, write=config.max_write_chunk)

    def _select_my_spi_bus(self) -> None:
        """Point the bridge to this bus unless it already is."""
        if self.inner.selected_spi != self.target_idx:
            self.inner.selected_spi = self.target_idx
            self.inner.usb_device.write_control(
                REQUEST_TYPE_VENDOR_OUT_INTERFACE,
                self.target_enable_cmd.tag,
                self.target_idx,
                self.interface.interface,
            )

    def _usb_write_bulk(self, data: bytes) -> None:
        self.inner.usb_device.write_bulk(self.interface.out_endpoint, data)

    def _usb_read_bulk(self) -> bytes:
        return self.inner.usb_device.read_bulk(self.interface.in_endpoint, USB_MAX_SIZE)

    def transmit(self, wbuf: bytes, rbuf_len: int) -> None:
        """Send one SPI operation.

        The start packet is sent even without write data, as it announces the
        number of bytes to read.

        :param wbuf: Data to write.
        :param rbuf_len: Number of bytes to read afterwards, FULL_DUPLEX for simultaneous read.
        """
        databytes = min(CmdTransferStart.MAX_DATA, len(wbuf))
        self._usb_write_bulk(CmdTransferStart(len(wbuf), rbuf_len, wbuf[:databytes]).export())
        index = databytes
        while index < len(wbuf):
            databytes = min(CmdTransferContinue.MAX_DATA, len(wbuf) - index)
            self._usb_write_bulk(
                CmdTransferContinue(index, wbuf[index : index + databytes]).export()
            )
            index += databytes

    def receive(self, rbuf: bytearray) -> None:
        """Receive result of one SPI operation.

        :param rbuf: Buffer to fill, its length is the number of bytes to read.
        :raises TransportCommunicationError: Failed operation or malformed response.
        """
        resp = RspTransferStart.parse(self._usb_read_bulk())
        if resp.status_code != 0:
            raise TransportCommunicationError(f"SPI error ({resp.status_code})")
        if len(resp.data) > len(rbuf):
            raise TransportCommunicationError(
                f"Response to TRANSFER_START too long: {len(resp.data)} > {len(rbuf)}"
            )
        rbuf[: len(resp.data)] = resp.data
        index = len(resp.data)
        while index < len(rbuf):
            cont = RspTransferContinue.parse(self._usb_read_bulk())
            if cont.data_index != index:
                raise TransportCommunicationError(
                    f"Unexpected byte index in response to TRANSFER_START: "
                    f"{cont.data_index} != {index}"
                )
            if index + len(cont.data) > len(rbuf):
                raise TransportCommunicationError(
                    f"Response to TRANSFER_CONTINUE too long: "
                    f"{index + len(cont.data)} > {len(rbuf)}"
                )
            rbuf[index : index + len(cont.data)] = cont.data
            index += len(cont.data)

    def _exchange(self, wbuf: bytes, rbuf: bytearray) -> None:
        self.transmit(wbuf, len(rbuf))
        self.receive(rbuf)

    def do_assert_cs(self, assert_cs: bool) -> None:
        """Assert or deassert chip select, reference counted.

        Only the first assertion and the last deassertion reach the bus. The
        count changes only when the command succeeds, so a failed deassertion
        can be retried.

        :param assert_cs: True to assert, False to deassert.
        """
        if assert_cs:
            if self.cs_asserted_count == 0:
                self._do_assert_cs(True)
            self.cs_asserted_count += 1
        elif self.cs_asserted_count > 0:
            if self.cs_asserted_count == 1:
                self._do_assert_cs(False)
            self.cs_asserted_count -= 1

    def _drain_responses(self) -> None:
        """Drop responses left on the IN endpoint by an interrupted operation."""
        while True:
            try:
                stale = self.inner.usb_device.read_bulk(
                    self.interface.in_endpoint, USB_MAX_SIZE, timeout=DRAIN_TIMEOUT
                )
            except ProbeHalTimeoutError:
                return
            logger.debug(f"Dropped stale USB-SPI response: {stale.hex()}")

    def _abort_transaction(self) -> None:
        """Deassert chip select after a failed transaction.

        Failure of the deassertion is logged only, the error of the
        transaction is the one reported. The chip select count of the
        transaction is dropped either way, so the next transaction asserts
        the chip select again.
        """
        try:
            self._drain_responses()
            self.do_assert_cs(False)
        except ProbeHalError as exc:
            logger.error(f"Deasserting CS after failed transaction failed: {str(exc)}")
            self.cs_asserted_count -= 1

    def _do_assert_cs(self, assert_cs: bool) -> None:
        self._usb_write_bulk(CmdChipSelect(assert_cs).export())
        resp = RspChipSelect.parse(self._usb_read_bulk())
        if resp.status_code != 0:
            raise TransportCommunicationError(f"SPI error ({resp.status_code})")

    def get_transfer_mode(self) -> TransferMode:
        return self.transfer_mode

    def set_transfer_mode(self, mode: TransferMode) -> None:
        """Set clock polarity and phase of the bus.

        :param mode: Requested transfer mode.
        :raises TransportCommunicationError: HyperDebug refused the mode.
        """
        idx = self.target_idx
        self.inner.cmd_with_fallback(
            f"spi set mode {idx} {mode.tag}",
            f"spisetmode {idx} {mode.tag}",
            self.inner.console.cmd_no_output,
        )
        self.transfer_mode = mode

    def get_max_speed(self) -> int:
        """Get clock frequency of the bus as reported by HyperDebug.

        :return: Frequency in Hz.
        :raises TransportCommunicationError: The speed cannot be read.
        """
        idx = self.target_idx
        match = self.inner.cmd_with_fallback(
            f"spi info {idx}",
            f"spiget {idx}",
            lambda cmd: self.inner.console.cmd_one_line_output_match(cmd, SPI_REGEX),
        )
        return int(match.group(3))

    def set_max_speed(self, frequency: int) -> None:
        """Set clock frequency of the bus.

        :param frequency: Frequency in Hz.
        :raises TransportCommunicationError: HyperDebug refused the speed.
        """
        idx = self.target_idx
        self.inner.cmd_with_fallback(
            f"spi set speed {idx} {frequency}",
            f"spisetspeed {idx} {frequency}",
            self.inner.console.cmd_no_output,
        )

    def get_max_transfer_sizes(self) -> MaxSizes:
        return self.max_sizes

    def _validate(self, transfers: Sequence[Transfer]) -> None:
        for transfer in transfers:
            if isinstance(transfer, Write):
                if len(transfer.data) > self.max_sizes.write:
                    raise SpiInvalidDataLengthError(len(transfer.data))
            elif isinstance(transfer, Read):
                if transfer.length > self.max_sizes.read:
                    raise SpiInvalidDataLengthError(transfer.length)
            elif isinstance(transfer, Both):
                if len(transfer.data) != transfer.length:
                    raise SpiMismatchedDataLengthError(len(transfer.data), transfer.length)
                if transfer.length > min(self.max_sizes.read, self.max_sizes.write):
                    raise SpiInvalidDataLengthError(transfer.length)
            else:
                raise ProbeHalTypeError(f"Unknown SPI transfer {transfer!r}")

    def _run_single_exchange(self, transfers: Sequence[Transfer]) -> bool:
        """Run transaction expressible as one USB operation.

        Chip select is asserted by HyperDebug around a single operation.

        :param transfers: Steps of the transaction.
        :return: True if handled.
        """
        kinds = tuple(type(transfer) for transfer in transfers)
        if kinds == (Write, Read):
            write, read = transfers
            assert isinstance(write, Write) and isinstance(read, Read)
            self._exchange(write.data, read.buffer)
        elif kinds == (Write,):
            write = transfers[0]
            assert isinstance(write, Write)
            self._exchange(write.data, bytearray())
        elif kinds == (Write, Write):
            first, second = transfers
            assert isinstance(first, Write) and isinstance(second, Write)
            if len(first.data) + len(second.data) > self.max_sizes.write:
                return False
            self._exchange(first.data + second.data, bytearray())
        elif kinds == (Read,):
            read = transfers[0]
            assert isinstance(read, Read)
            self._exchange(b"", read.buffer)
        else:
            return False
        return True

    def run_transaction(self, transfers: Sequence[Transfer]) -> None:
        """Run the transfers with chip select asserted across the whole sequence.

        The whole transaction is validated before anything is sent.

        :param transfers: Ordered steps of the transaction.
        :raises SpiInvalidDataLengthError: A step exceeds the limits of the bridge.
        :raises SpiMismatchedDataLengthError: Full duplex step with different lengths.
        :raises TransportCommunicationError: Failed operation or malformed response.
        """
        self._validate(transfers)
        self._select_my_spi_bus()

        if self._run_single_exchange(transfers):
            return

        self.do_assert_cs(True)
        try:
            self._run_bracketed(transfers)
        except Exception:
            self._abort_transaction()
            raise
        self.do_assert_cs(False)

    def _run_bracketed(self, transfers: Sequence[Transfer]) -> None:
        idx = 0
        while idx < len(transfers):
            transfer = transfers[idx]
            following = transfers[idx + 1] if idx + 1 < len(transfers) else None
            if isinstance(transfer, Write) and isinstance(following, Read):
                # write followed by read is a single operation
                self._exchange(transfer.data, following.buffer)
                idx += 2
                continue
            if isinstance(transfer, Write):
                self._exchange(transfer.data, bytearray())
            elif isinstance(transfer, Read):
                self._exchange(b"", transfer.buffer)
            elif isinstance(transfer, Both):
                self.transmit(transfer.data, FULL_DUPLEX)
                self.receive(transfer.buffer)
            idx += 1
