#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""GPIO pins of the CW310 board."""

import logging
from typing import Optional

from probehal.io.gpio import (
    GpioPin,
    GpioUnsupportedPinModeError,
    GpioUnsupportedPullModeError,
    PinMode,
    PullMode,
)
from probehal.transport.cw310.usb import Backend, pin_name_to_number

logger = logging.getLogger(__name__)


class CW310GpioPin(GpioPin):
    """Pin of the SAM3X controller wired to the FPGA.

    Pins are either inputs or push-pull outputs, without pull resistors.
    """

    def __init__(self, backend: Backend, pin_name: str) -> None:
        """Initialize the pin.

        :param backend: USB backend of the board.
        :param pin_name: Name of the pin.
        :raises GpioInvalidPinNameError: Unknown pin name.
        :raises GpioInvalidPinNumberError: Pin number is out of range.
        """
        pin_name_to_number(pin_name)
        self.backend = backend
        self.pin_name = pin_name

    def read(self) -> bool:
        return self.backend.pin_get_state(self.pin_name) != 0

    def write(self, value: bool) -> None:
        self.backend.pin_set_state(self.pin_name, value)

    def set_mode(self, mode: PinMode) -> None:
        """Set the pin as input or push-pull output.

        :param mode: Requested pin mode.
        :raises GpioUnsupportedPinModeError: Mode other than Input or PushPull.
        """
        if mode == PinMode.INPUT:
            self.backend.pin_set_output(self.pin_name, False)
        elif mode == PinMode.PUSH_PULL:
            self.backend.pin_set_output(self.pin_name, True)
        else:
            raise GpioUnsupportedPinModeError(mode)

    def set_pull_mode(self, mode: PullMode) -> None:
        """Pull resistors are not available, only PullMode.NONE is accepted.

        :param mode: Requested pull mode.
        :raises GpioUnsupportedPullModeError: Mode other than None.
        """
        if mode != PullMode.NONE:
            raise GpioUnsupportedPullModeError(mode)

    def get_internal_pin_name(self) -> Optional[str]:
        return self.pin_name
