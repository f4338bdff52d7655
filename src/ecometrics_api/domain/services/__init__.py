# Copyright (c)
# SPDX-License-Identifier: MIT
"""Pure domain services: import transform, validation, and analytics."""
