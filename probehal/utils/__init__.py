#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2019-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL utilities.

Helpers shared by the transports: conversions, timeouts, configuration,
enumerations, raw USB device access and ROM detection.
"""
