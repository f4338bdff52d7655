# Copyright (c)
# SPDX-License-Identifier: MIT
"""Mappers between domain entities, ORM rows, and plain structures."""
