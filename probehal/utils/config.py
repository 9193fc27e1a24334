#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Description of an attached probe loaded from YAML or JSON.

Transports accept a ``Config`` in ``load_from_config``. Nested values are
addressed by ``/`` separated key paths, list items by their index::

    usb_serial: SN1
    uart_override:
      - /dev/ttyACM1
      - /dev/ttyACM0

``config["uart_override/0"]`` gives ``"/dev/ttyACM1"``.
"""

import logging
import os
from typing import Any, Optional, Union

from typing_extensions import Self

from probehal.exceptions import ProbeHalError, ProbeHalKeyError
from probehal.utils.misc import find_file, load_configuration, value_to_int

logger = logging.getLogger(__name__)


class Config(dict):
    """Probe configuration with key path access.

    :cvar SEP: Separator of key path components.
    """

    SEP = "/"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.config_dir = os.getcwd().replace("\\", "/")
        self.search_paths: list[str] = []

    @classmethod
    def create_from_file(cls, file_path: str) -> Self:
        """Load configuration file.

        Files referenced by the configuration are looked up relative to its directory.

        :param file_path: Path to YAML or JSON file.
        :return: Loaded configuration.
        """
        abs_path = os.path.abspath(file_path).replace("\\", "/")
        cfg = cls(load_configuration(abs_path))
        cfg.config_dir = os.path.dirname(abs_path)
        cfg.search_paths = [cfg.config_dir]
        logger.debug(f"Loaded probe configuration from {abs_path}")
        return cfg

    @classmethod
    def _split(cls, key: str) -> list[Union[int, str]]:
        return [int(part) if part.isdigit() else part for part in key.split(cls.SEP)]

    def __getitem__(self, key: str) -> Any:
        """Get value at key path.

        :param key: Key or ``/`` separated key path.
        :raises ProbeHalKeyError: Nothing is stored at the key path.
        :return: The value.
        """
        node: Any = self
        for part in self._split(key):
            if isinstance(node, list) and isinstance(part, int) and part < len(node):
                node = node[part]
            elif isinstance(node, dict) and dict.get(node, part) is not None:
                node = dict.__getitem__(node, part)
            else:
                raise ProbeHalKeyError(f"No value at '{key}' in configuration")
        return node

    def __setitem__(self, key: str, value: Any) -> None:
        """Set value at key path, missing dictionaries on the path are created.

        :param key: Key or ``/`` separated key path.
        :param value: Value to store.
        :raises ProbeHalKeyError: The key path leads through a value that is not a container.
        """
        *parents, last = self._split(key)
        node: Any = self
        for part in parents:
            if isinstance(node, dict):
                if part not in node:
                    dict.__setitem__(node, part, {})
                node = dict.__getitem__(node, part)
            elif isinstance(node, list) and isinstance(part, int) and part < len(node):
                node = node[part]
            else:
                raise ProbeHalKeyError(f"Cannot set '{key}' in configuration")
        if isinstance(node, dict):
            dict.__setitem__(node, last, value)
        elif isinstance(node, list) and isinstance(last, int) and last < len(node):
            node[last] = value
        else:
            raise ProbeHalKeyError(f"Cannot set '{key}' in configuration")

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get value at key path.

        :param key: Key or ``/`` separated key path.
        :param default: Returned when nothing is stored at the key path.
        :return: The value or default.
        """
        try:
            return self[key]
        except ProbeHalKeyError:
            return default

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        """Get integer, strings like ``"0x18d1"`` are converted.

        :param key: Key path.
        :param default: Returned when nothing is stored at the key path.
        :raises ProbeHalError: Missing value without default, or not a number.
        :return: The integer.
        """
        value = self.get(key, default)
        if value is None:
            raise ProbeHalError(f"Missing integer value '{key}' in configuration")
        return value_to_int(value)

    def get_str(self, key: str, default: Optional[str] = None) -> str:
        """Get string.

        :param key: Key path.
        :param default: Returned when nothing is stored at the key path.
        :raises ProbeHalError: The value is not a string.
        :return: The string.
        """
        value = self.get(key, default)
        if not isinstance(value, str):
            raise ProbeHalError(f"Value '{key}' in configuration is not a string")
        return value

    def get_bool(self, key: str, default: Optional[bool] = None) -> bool:
        """Get boolean.

        :param key: Key path.
        :param default: Returned when nothing is stored at the key path.
        :raises ProbeHalError: The value is not a boolean.
        :return: The boolean.
        """
        value = self.get(key, default)
        if not isinstance(value, bool):
            raise ProbeHalError(f"Value '{key}' in configuration is not a boolean")
        return value

    def get_list(self, key: str, default: Optional[list] = None) -> list:
        """Get list.

        :param key: Key path.
        :param default: Returned when nothing is stored at the key path.
        :raises ProbeHalError: The value is not a list.
        :return: The list.
        """
        value = self.get(key, default)
        if not isinstance(value, list):
            raise ProbeHalError(f"Value '{key}' in configuration is not a list")
        return value

    def get_input_file_name(self, key: str) -> str:
        """Resolve file referenced by the configuration, e.g. a bitstream.

        :param key: Key path of the file name.
        :raises ProbeHalError: The file does not exist.
        :return: Absolute path of the file.
        """
        try:
            return find_file(self.get_str(key), search_paths=self.search_paths)
        except ProbeHalError as exc:
            raise ProbeHalError(f"Cannot find input file for '{key}': {str(exc)}") from exc
