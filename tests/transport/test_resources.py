#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2024-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the cache of interface handles."""

import threading

import pytest

from probehal.exceptions import ProbeHalError
from probehal.transport import Capabilities, Capability, TransportMissingCapabilitiesError
from probehal.transport.resources import ResourceCache


def test_same_handle_returned() -> None:
    """Test that the factory runs only on first request of an identifier."""
    cache: ResourceCache[object] = ResourceCache("test")
    created = []

    def factory() -> object:
        created.append(1)
        return object()

    first = cache.get_or_create("a", factory)
    assert cache.get_or_create("a", factory) is first
    assert cache.get_or_create("b", factory) is not first
    assert len(created) == 2
    assert "a" in cache and len(cache) == 2


def test_failing_factory_not_cached() -> None:
    """Test that failed creation can be retried."""
    cache: ResourceCache[str] = ResourceCache("test")

    def failing() -> str:
        raise ProbeHalError("No such instance")

    with pytest.raises(ProbeHalError):
        cache.get_or_create("a", failing)
    assert "a" not in cache
    assert cache.get_or_create("a", lambda: "handle") == "handle"


def test_concurrent_creation() -> None:
    """Test that concurrent first requests create a single handle."""
    cache: ResourceCache[object] = ResourceCache("test")
    results = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(cache.get_or_create(0, object))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(results) == 8
    assert all(result is results[0] for result in results)


def test_clear_and_iterate() -> None:
    """Test iteration over cached handles and clearing."""
    cache: ResourceCache[int] = ResourceCache("test")
    cache.get_or_create("a", lambda: 1)
    cache.get_or_create("b", lambda: 2)
    assert sorted(cache) == [1, 2]
    cache.clear()
    assert len(cache) == 0


def test_capabilities() -> None:
    """Test capability requests."""
    capabilities = Capabilities(Capability.SPI | Capability.GPIO)
    capabilities.request(Capability.SPI).ok()
    assert Capability.GPIO in capabilities
    assert Capability.UART not in capabilities
    with pytest.raises(TransportMissingCapabilitiesError) as exc_info:
        capabilities.request(Capability.SPI | Capability.GPIO_MONITORING).ok()
    assert exc_info.value.needed == Capability.SPI | Capability.GPIO_MONITORING
