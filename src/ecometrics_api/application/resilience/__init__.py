# Copyright (c)
# SPDX-License-Identifier: MIT
"""Retry helpers for transient storage conflicts."""
