# Copyright (c)
# SPDX-License-Identifier: MIT
"""Adapters layer: repositories, mappers, and Unit-of-Work implementations."""
