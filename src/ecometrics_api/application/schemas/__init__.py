# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application schemas."""
