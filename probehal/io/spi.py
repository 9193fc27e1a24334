#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""SPI interface of ProbeHAL transports.

This module defines the transfer steps of a SPI transaction, the contract
every SPI target implementation satisfies, the scoped chip select guard and
the SPI error family.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType
from typing import Optional, Sequence, Type

from typing_extensions import Self

from probehal.exceptions import ProbeHalError
from probehal.utils.hal_enum import HalEnum

logger = logging.getLogger(__name__)


class SpiError(ProbeHalError):
    """Base of errors related to the SPI interface."""


class SpiInvalidWordSizeError(SpiError):
    """Requested number of bits per word is not supported."""

    def __init__(self, bits_per_word: int) -> None:
        """Initialize the error.

        :param bits_per_word: Requested word size.
        """
        super().__init__(f"Invalid word size: {bits_per_word}")
        self.bits_per_word = bits_per_word


class SpiInvalidDataLengthError(SpiError):
    """Length of a transfer exceeds what the target can exchange at once."""

    def __init__(self, length: int) -> None:
        """Initialize the error.

        :param length: Length of the offending transfer.
        """
        super().__init__(f"Invalid data length: {length}")
        self.length = length


class SpiMismatchedDataLengthError(SpiError):
    """Write and read part of a full duplex transfer differ in length."""

    def __init__(self, write_length: int, read_length: int) -> None:
        """Initialize the error.

        :param write_length: Number of bytes to write.
        :param read_length: Number of bytes to read.
        """
        super().__init__(f"Mismatched data length: {write_length} != {read_length}")
        self.write_length = write_length
        self.read_length = read_length


class TransferMode(HalEnum):
    """SPI clock polarity and phase."""

    MODE0 = (0, "Mode0", "CPOL=0, CPHA=0")
    MODE1 = (1, "Mode1", "CPOL=0, CPHA=1")
    MODE2 = (2, "Mode2", "CPOL=1, CPHA=0")
    MODE3 = (3, "Mode3", "CPOL=1, CPHA=1")


@dataclass(frozen=True)
class MaxSizes:
    """Byte limits of a single exchange with a SPI target."""

    read: int
    write: int


class Transfer:
    """Single step of a SPI transaction."""


class Write(Transfer):
    """Write data, ignoring what is received meanwhile."""

    def __init__(self, data: bytes) -> None:
        """Initialize the step.

        :param data: Data to write.
        """
        self.data = bytes(data)

    def __repr__(self) -> str:
        return f"Write({len(self.data)})"


class Read(Transfer):
    """Read data while clocking out unspecified values."""

    def __init__(self, length: int) -> None:
        """Initialize the step.

        :param length: Number of bytes to read.
        """
        self.buffer = bytearray(length)

    @property
    def length(self) -> int:
        """Number of bytes to read."""
        return len(self.buffer)

    def __repr__(self) -> str:
        return f"Read({self.length})"


class Both(Transfer):
    """Full duplex step, write and read the same number of bytes simultaneously."""

    def __init__(self, data: bytes, length: Optional[int] = None) -> None:
        """Initialize the step.

        :param data: Data to write.
        :param length: Number of bytes to read, defaults to the length of data.
        """
        self.data = bytes(data)
        self.buffer = bytearray(len(self.data) if length is None else length)

    @property
    def length(self) -> int:
        """Number of bytes to read."""
        return len(self.buffer)

    def __repr__(self) -> str:
        return f"Both({len(self.data)}, {self.length})"


class SpiTarget(ABC):
    """SPI target (device) reachable through a transport.

    Received data of ``Read`` and ``Both`` steps are stored into their ``buffer``.
    """

    @abstractmethod
    def get_transfer_mode(self) -> TransferMode:
        """Get the clock polarity and phase.

        :return: Current transfer mode.
        """

    @abstractmethod
    def set_transfer_mode(self, mode: TransferMode) -> None:
        """Set the clock polarity and phase.

        :param mode: Requested transfer mode.
        """

    def get_bits_per_word(self) -> int:
        """Get the number of bits of a single word.

        :return: Word size in bits.
        """
        return 8

    def set_bits_per_word(self, bits_per_word: int) -> None:
        """Set the number of bits of a single word.

        :param bits_per_word: Requested word size.
        :raises SpiInvalidWordSizeError: Word size is not supported.
        """
        if bits_per_word != 8:
            raise SpiInvalidWordSizeError(bits_per_word)

    @abstractmethod
    def get_max_speed(self) -> int:
        """Get the maximal clock frequency.

        :return: Frequency in Hz.
        """

    @abstractmethod
    def set_max_speed(self, frequency: int) -> None:
        """Set the maximal clock frequency.

        :param frequency: Frequency in Hz.
        """

    def get_max_transfer_count(self) -> int:
        """Get the maximal number of steps of a single transaction.

        :return: Maximal number of transfers, ``sys.maxsize`` when unbounded.
        """
        return sys.maxsize

    @abstractmethod
    def get_max_transfer_sizes(self) -> MaxSizes:
        """Get byte limits of a single exchange.

        :return: Maximal read and write sizes.
        """

    @abstractmethod
    def run_transaction(self, transfers: Sequence[Transfer]) -> None:
        """Run the transfers with chip select asserted across the whole sequence.

        :param transfers: Ordered steps of the transaction.
        :raises SpiError: The transaction is not valid for this target.
        """

    @abstractmethod
    def do_assert_cs(self, assert_cs: bool) -> None:
        """Assert or deassert the chip select line.

        :param assert_cs: True to assert, False to deassert.
        """

    def assert_cs(self) -> "AssertChipSelect":
        """Assert the chip select until the returned guard is released.

        Transactions run while the guard is held form a single logical
        transaction on the bus.

        :return: Guard deasserting the chip select on release.
        """
        self.do_assert_cs(True)
        return AssertChipSelect(self)


class AssertChipSelect:
    """Scoped chip select assertion.

    Use as context manager or call ``release()`` explicitly. A guard that is
    garbage collected unreleased deasserts the chip select as a last resort and
    aborts the process when that fails.
    """

    def __init__(self, target: SpiTarget) -> None:
        """Initialize the guard, the chip select is already asserted.

        :param target: Target holding the chip select.
        """
        self.target = target
        self._released = False

    @property
    def released(self) -> bool:
        """Indicates whether the chip select was already released."""
        return self._released

    def release(self) -> None:
        """Deassert the chip select.

        Calling the method again after a successful release has no further
        effect. After a failed deassertion the guard stays unreleased and the
        release may be retried.

        :raises ProbeHalError: Deassertion failed.
        """
        if self._released:
            return
        self.target.do_assert_cs(False)
        self._released = True

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exception_type: Optional[Type[BaseException]] = None,
        exception_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.release()

    def __del__(self) -> None:
        if self._released:
            return
        try:
            self.release()
        except Exception as exc:  # pylint: disable=broad-except
            logger.critical(f"Error while deasserting CS: {str(exc)}")
            self._fatal()

    @staticmethod
    def _fatal() -> None:
        """Terminate the process, state of the chip select line is unknown."""
        os.abort()
