# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain exceptions."""
