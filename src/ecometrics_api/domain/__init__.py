# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain layer: entities, enums, exceptions, and pure services."""
