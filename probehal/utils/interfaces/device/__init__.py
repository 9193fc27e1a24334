#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL low-level device interface abstractions.

This module provides the abstract raw USB device and its pyusb based
implementation used by the transports.
"""
