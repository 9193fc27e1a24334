#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2019-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL exception classes.

This module defines the base of the exception hierarchy used throughout
the library. Domain specific errors (GPIO, SPI, transport) derive from
these classes in the module of their domain.
"""

from typing import Optional

#######################################################################
# # ProbeHAL Exceptions
#######################################################################


class ProbeHalError(Exception):
    """ProbeHAL Base Exception.

    Base exception class for all library errors. It provides consistent
    error formatting through the ``fmt`` template.

    :cvar fmt: Default error message format template.
    """

    fmt = "ProbeHAL: {description}"

    def __init__(self, desc: Optional[str] = None) -> None:
        """Initialize the base ProbeHAL Exception.

        :param desc: Optional description of the exception.
        """
        super().__init__()
        self.description = desc

    def __str__(self) -> str:
        """Return string representation of the exception.

        If no description is provided, defaults to "Unknown Error".

        :return: Formatted exception message as string.
        """
        return self.fmt.format(description=self.description or "Unknown Error")


class ProbeHalKeyError(ProbeHalError, KeyError):
    """ProbeHAL Key Error exception for missing or invalid keys."""


class ProbeHalValueError(ProbeHalError, ValueError):
    """ProbeHAL standard value error exception."""


class ProbeHalTypeError(ProbeHalError, TypeError):
    """ProbeHAL standard type error exception."""


class ProbeHalUnsupportedOperation(ProbeHalError):
    """ProbeHAL unsupported operation exception.

    Raised when an operation is requested that the attached hardware or
    the implementation does not support.
    """


class ProbeHalConnectionError(ProbeHalError, ConnectionError):
    """ProbeHAL Connection Error exception class.

    Raised when communication with a probe fails at the USB or serial level,
    e.g. the device cannot be found, opened or a transfer is rejected.
    """


class ProbeHalTimeoutError(ProbeHalError, TimeoutError):
    """ProbeHAL timeout exception for operations that exceed time limits."""
