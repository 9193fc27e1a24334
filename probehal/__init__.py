#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2019-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL - hardware abstraction layer for debug probes.

One API to drive a chip-under-test regardless of the probe sitting between the host
and the target:

    - uniform GPIO, SPI and UART handles created lazily by a transport
    - USB bridge protocol engines hidden behind the SPI contract
    - probe-specific commands (e.g. FPGA programming) through a generic dispatch

The library does not pick a transport for you - instantiate the one matching
the attached hardware (see ``probehal.transport``).
"""

import os
from typing import Optional, Union

from packaging.version import Version, parse


def get_probehal_version() -> Version:
    """Get ProbeHAL version information.

    :return: Parsed version object containing ProbeHAL version information.
    """
    from .__version__ import __version__ as probehal_version

    return parse(probehal_version)


def value_to_bool(value: Optional[Union[bool, int, str]]) -> bool:
    """Convert value to boolean from various input formats.

    Supports conversion from string representations like "True", "true", "T", "1"
    and standard Python truthy/falsy values for other types.

    :param value: Value to convert to boolean (string, int, bool, or None).
    :return: Boolean representation of the input value.
    """
    if isinstance(value, str):
        return value in ("True", "true", "T", "1")
    return bool(value)


version = get_probehal_version()

__author__ = "NXP"
__license__ = "BSD-3-Clause"
__version__ = str(version)
__release__ = "alpha"


# The ProbeHAL behavior settings
PROBEHAL_DEBUG = value_to_bool(os.environ.get("PROBEHAL_DEBUG"))
# PROBEHAL_DEBUG_USB enables packet dumps of all USB traffic exchanged with the probes
PROBEHAL_DEBUG_USB = PROBEHAL_DEBUG or value_to_bool(os.environ.get("PROBEHAL_DEBUG_USB"))

# Default timeout of USB transfers in milliseconds
PROBEHAL_USB_TIMEOUT = int(os.environ.get("PROBEHAL_USB_TIMEOUT", "2000"))
