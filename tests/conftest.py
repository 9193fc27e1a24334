#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL pytest configuration and shared test fixtures.

This module provides fixtures building transports on top of the fake
hardware from ``tests.fakes``, so the test modules do not need a probe.
"""

import logging
import os
from typing import Any

import pytest

from probehal.transport.hyperdebug.console import Inner
from probehal.utils.interfaces.device.base import BulkInterface
from tests.fakes import FakeConsole, FakeHyperdebugSpi, FakeUsbDevice

SPI_INTERFACE = BulkInterface(interface=2, in_endpoint=0x83, out_endpoint=0x03)


@pytest.fixture(scope="module")
def data_dir(request: Any) -> str:
    """Get test data directory path for the current test module.

    :param request: Pytest request fixture containing test execution context.
    :return: Absolute path to the test data directory.
    """
    logging.debug(f"data_dir for module: {request.fspath}")
    data_path = os.path.join(os.path.dirname(request.fspath), "data")
    logging.debug(f"data_dir: {data_path}")
    return data_path


@pytest.fixture
def hyperdebug_device() -> FakeUsbDevice:
    """Get fake USB device of HyperDebug with the USB-SPI interface.

    :return: Fake USB device.
    """
    return FakeUsbDevice(serial_number="HD1", interfaces={(0xFF, 0x51): SPI_INTERFACE})


@pytest.fixture
def hyperdebug_spi(hyperdebug_device: FakeUsbDevice) -> FakeHyperdebugSpi:
    """Get fake USB-SPI bridge answering on the HyperDebug device.

    :param hyperdebug_device: Fake USB device of HyperDebug.
    :return: Fake USB-SPI bridge.
    """
    return FakeHyperdebugSpi(hyperdebug_device)


@pytest.fixture
def console() -> FakeConsole:
    """Get HyperDebug console with no scripted outputs.

    :return: Fake console.
    """
    return FakeConsole()


@pytest.fixture
def inner(hyperdebug_device: FakeUsbDevice, console: FakeConsole) -> Inner:
    """Get state shared by HyperDebug interfaces on the fake hardware.

    :param hyperdebug_device: Fake USB device of HyperDebug.
    :param console: Fake console.
    :return: Shared HyperDebug state.
    """
    return Inner(hyperdebug_device, console)
