# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain entities (storage-agnostic, immutable)."""
