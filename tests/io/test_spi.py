#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the SPI interface contract and the chip select guard."""

import gc
import sys
from typing import Sequence

import pytest

from probehal.exceptions import ProbeHalConnectionError
from probehal.io.spi import (
    AssertChipSelect,
    Both,
    MaxSizes,
    Read,
    SpiInvalidWordSizeError,
    SpiTarget,
    Transfer,
    TransferMode,
    Write,
)


class RecordingTarget(SpiTarget):
    """SPI target recording chip select changes."""

    def __init__(self, fail_deassert: bool = False) -> None:
        self.cs_calls: list[bool] = []
        self.fail_deassert = fail_deassert

    def get_transfer_mode(self) -> TransferMode:
        return TransferMode.MODE0

    def set_transfer_mode(self, mode: TransferMode) -> None:
        pass

    def get_max_speed(self) -> int:
        return 1000000

    def set_max_speed(self, frequency: int) -> None:
        pass

    def get_max_transfer_sizes(self) -> MaxSizes:
        return MaxSizes(read=64, write=64)

    def run_transaction(self, transfers: Sequence[Transfer]) -> None:
        pass

    def do_assert_cs(self, assert_cs: bool) -> None:
        self.cs_calls.append(assert_cs)
        if not assert_cs and self.fail_deassert:
            raise ProbeHalConnectionError("Device disconnected")


def test_word_size() -> None:
    """Test that only 8-bit words are supported by default."""
    target = RecordingTarget()
    assert target.get_bits_per_word() == 8
    target.set_bits_per_word(8)
    with pytest.raises(SpiInvalidWordSizeError):
        target.set_bits_per_word(16)
    assert target.get_max_transfer_count() == sys.maxsize


def test_guard_context_manager() -> None:
    """Test that the guard deasserts chip select on exit."""
    target = RecordingTarget()
    with target.assert_cs() as guard:
        assert target.cs_calls == [True]
        assert not guard.released
    assert guard.released
    assert target.cs_calls == [True, False]


def test_guard_release_once() -> None:
    """Test that repeated release deasserts only once."""
    target = RecordingTarget()
    guard = target.assert_cs()
    guard.release()
    guard.release()
    del guard
    gc.collect()
    assert target.cs_calls == [True, False]


def test_guard_release_error_propagates() -> None:
    """Test that explicit release reports deassertion failure and can be retried."""
    target = RecordingTarget(fail_deassert=True)
    guard = target.assert_cs()
    with pytest.raises(ProbeHalConnectionError):
        guard.release()
    assert not guard.released
    target.fail_deassert = False
    guard.release()
    assert guard.released
    assert target.cs_calls == [True, False, False]


def test_guard_dropped_deasserts(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that unreleased guard deasserts chip select when collected."""
    aborted = []
    monkeypatch.setattr(AssertChipSelect, "_fatal", staticmethod(lambda: aborted.append(True)))
    target = RecordingTarget()
    guard = target.assert_cs()
    del guard
    gc.collect()
    assert target.cs_calls == [True, False]
    assert aborted == []


def test_guard_dropped_failure_aborts(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that failing deassertion of collected guard terminates the process."""
    aborted = []
    monkeypatch.setattr(AssertChipSelect, "_fatal", staticmethod(lambda: aborted.append(True)))
    target = RecordingTarget(fail_deassert=True)
    guard = target.assert_cs()
    del guard
    gc.collect()
    assert aborted == [True]


def test_transfers() -> None:
    """Test transfer steps and their buffers."""
    read = Read(4)
    assert read.length == 4 and bytes(read.buffer) == bytes(4)
    both = Both(b"\x01\x02")
    assert both.length == 2
    assert Both(b"\x01\x02", 3).length == 3
    assert Write(bytearray(b"\x01")).data == b"\x01"
