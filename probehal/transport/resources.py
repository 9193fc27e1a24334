#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Cache of interface handles owned by a transport."""

import logging
import threading
from typing import Callable, Generic, Hashable, Iterator, TypeVar

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class ResourceCache(Generic[_T]):
    """Handles created lazily on first request, keyed by instance identifier.

    Once created, the same handle is returned for the identifier on every
    following request. Creation is guarded by a lock, so concurrent first
    requests construct the handle only once.
    """

    def __init__(self, name: str) -> None:
        """Initialize empty cache.

        :param name: Name of the cached resource used in log messages.
        """
        self.name = name
        self._items: dict[Hashable, _T] = {}
        self._lock = threading.RLock()

    def get_or_create(self, key: Hashable, factory: Callable[[], _T]) -> _T:
        """Get the handle, creating it when requested for the first time.

        A failing factory leaves the cache unchanged.

        :param key: Instance identifier.
        :param factory: Creates the handle.
        :return: The cached handle.
        """
        with self._lock:
            if key not in self._items:
                logger.debug(f"Creating {self.name} instance {key}")
                self._items[key] = factory()
            return self._items[key]

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[_T]:
        with self._lock:
            return iter(list(self._items.values()))

    def clear(self) -> None:
        """Forget all handles."""
        with self._lock:
            self._items.clear()
