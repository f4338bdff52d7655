# Copyright (c)
# SPDX-License-Identifier: MIT
"""Repository protocols."""
