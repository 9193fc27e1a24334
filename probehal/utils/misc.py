#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2020-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Helpers shared by the transports.

Number parsing for configuration values, the deadline used by polling loops,
splitting of data into transfer sized chunks and loading of bitstreams and
configuration files.
"""

import json
import logging
import os
import re
import time
from math import ceil
from typing import Generator, Optional, Union

import yaml

from probehal.exceptions import ProbeHalError, ProbeHalTimeoutError, ProbeHalValueError

logger = logging.getLogger(__name__)

NUMBER_REGEX = re.compile(r"(?P<prefix>0[box])?(?P<number>[0-9a-f_]+)$")
NUMBER_BASES = {"0b": 2, "0o": 8, "0x": 16, None: 10}


def value_to_int(value: Union[bytes, bytearray, int, str], default: Optional[int] = None) -> int:
    """Convert number given in one of the usual notations to integer.

    Strings may carry a ``0b``, ``0o`` or ``0x`` prefix and ``_`` separators,
    bytes are read as big-endian.

    :param value: Value to convert.
    :param default: Returned when the value is not a number.
    :return: The integer.
    :raises ProbeHalError: The value is not a number and no default is given.
    """
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    if isinstance(value, str):
        match = NUMBER_REGEX.match(value.strip().lower())
        if match:
            try:
                return int(match.group("number"), NUMBER_BASES[match.group("prefix")])
            except ValueError:
                pass
    if default is not None:
        return default
    raise ProbeHalError(f"Invalid input number type({type(value)}) with value ({value})")


class Timeout:
    """Deadline of a polling loop.

    :cvar UNITS: Supported units and their length in microseconds.
    """

    UNITS = {"s": 1_000_000, "ms": 1000, "us": 1}

    def __init__(self, timeout: Union[int, float], units: str = "s") -> None:
        """Start the timeout.

        :param timeout: Length of the timeout, zero means no timeout.
        :param units: One of ``UNITS``.
        :raises ProbeHalValueError: Unknown units.
        """
        if units not in self.UNITS:
            raise ProbeHalValueError(f"Unsupported timeout units '{units}'")
        self.units = units
        self.enabled = timeout != 0
        self.end_time_us = self._now_us() + ceil(timeout * self.UNITS[units])

    @staticmethod
    def _now_us() -> int:
        return ceil(time.monotonic() * 1_000_000)

    def overflow(self, raise_exc: bool = False) -> bool:
        """Check whether the deadline passed.

        :param raise_exc: Raise instead of returning True.
        :return: True if the deadline passed.
        :raises ProbeHalTimeoutError: The deadline passed and raise_exc is set.
        """
        expired = self.enabled and self._now_us() > self.end_time_us
        if expired and raise_exc:
            raise ProbeHalTimeoutError("Timeout of operation.")
        return expired

    def get_rest_time(self, raise_exc: bool = False) -> float:
        """Get time left until the deadline, in the units of the timeout.

        :param raise_exc: Raise when the deadline passed.
        :return: Time left, zero when expired or disabled.
        """
        if self.overflow(raise_exc=raise_exc) or not self.enabled:
            return 0
        return (self.end_time_us - self._now_us()) / self.UNITS[self.units]


def split_data(data: Union[bytearray, bytes], size: int) -> Generator[bytes, None, None]:
    """Split data into chunks, the last one may be shorter.

    :param data: Data to split.
    :param size: Size of a chunk.
    :return: Generator of chunks.
    """
    for offset in range(0, len(data), size):
        yield bytes(data[offset : offset + size])


def find_file(
    file_path: str, use_cwd: bool = True, search_paths: Optional[list[str]] = None
) -> str:
    """Find file in the search paths, then in the current directory.

    :param file_path: Absolute or relative path of the file.
    :param use_cwd: Look into the current working directory as well.
    :param search_paths: Directories to look into first.
    :return: Absolute path of the file with forward slashes.
    :raises ProbeHalError: The file does not exist.
    """
    file_path = file_path.replace("\\", "/")
    if os.path.isabs(file_path):
        if not os.path.isfile(file_path):
            raise ProbeHalError(f"File '{file_path}' not found")
        return file_path
    directories = [path for path in search_paths or [] if path]
    if use_cwd:
        directories.append(os.getcwd())
    for directory in directories:
        candidate = os.path.abspath(os.path.join(directory, file_path)).replace("\\", "/")
        if os.path.isfile(candidate):
            return candidate
    raise ProbeHalError(f"File '{file_path}' not found, Searched in: {', '.join(directories)}")


def load_binary(path: str, search_paths: Optional[list[str]] = None) -> bytes:
    """Load binary file, e.g. FPGA bitstream.

    :param path: Path of the file.
    :param search_paths: Directories to look into first.
    :return: Content of the file.
    """
    with open(find_file(path, search_paths=search_paths), "rb") as f:
        return f.read()


def load_configuration(path: str) -> dict:
    """Load configuration from JSON or YAML file.

    :param path: Path of the file.
    :return: Content of the file.
    :raises ProbeHalError: The file cannot be read or does not hold a mapping.
    """
    try:
        with open(find_file(path), "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, ProbeHalError) as exc:
        raise ProbeHalError(f"Can't load configuration file: {str(exc)}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ProbeHalError(f"Can't parse configuration file: {path}") from exc

    if not data:
        raise ProbeHalError(f"Can't parse configuration file: {path}")
    if not isinstance(data, dict):
        raise ProbeHalError(f"Invalid configuration file: {path}")
    logger.debug(f"Configuration keys in {path}: {list(data)}")
    return data
