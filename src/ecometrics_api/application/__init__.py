# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application layer: Unit of Work boundary, DTOs, and the version store."""
