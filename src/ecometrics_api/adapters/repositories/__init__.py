# Copyright (c)
# SPDX-License-Identifier: MIT
"""SQLAlchemy repositories."""
