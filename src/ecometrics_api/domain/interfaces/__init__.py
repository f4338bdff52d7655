# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain interfaces (Protocols implemented by outer layers)."""
