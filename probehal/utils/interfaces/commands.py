#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL generic protocol packet definitions.

This module provides abstract base classes for command packets sent to
a probe and responses received from it.
"""

from abc import ABC, abstractmethod

from typing_extensions import Self


class CmdResponseBase(ABC):
    """Abstract base class of responses received from a probe."""

    @abstractmethod
    def __str__(self) -> str:
        """Get string representation of the object.

        :return: String representation containing object information.
        """

    @classmethod
    @abstractmethod
    def parse(cls, data: bytes) -> Self:
        """Parse response from raw data received from the probe.

        :param data: Raw response data.
        :return: Parsed response.
        :raises TransportCommunicationError: The data are not a valid response.
        """


class CmdPacketBase(ABC):
    """Abstract base class of command packets sent to a probe."""

    @abstractmethod
    def export(self) -> bytes:
        """Export command packet into bytes.

        :return: Exported object into bytes.
        """
