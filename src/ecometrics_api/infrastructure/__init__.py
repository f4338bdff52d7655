# Copyright (c)
# SPDX-License-Identifier: MIT
"""Infrastructure layer: database, logging, observability, resilience."""
