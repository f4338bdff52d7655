# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application-layer DTOs (pydantic, transport-agnostic)."""
