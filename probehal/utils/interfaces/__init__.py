#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2023-2026 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""ProbeHAL communication interfaces and protocol packet bases."""
