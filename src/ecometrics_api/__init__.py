# src/ecometrics_api/__init__.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""EcoMetrics API core.

Versioned ESG metric snapshots per company and domain, the import transform
that feeds them, the validation engine that scores them, and the read-only
analytics computed over them.
"""

from __future__ import annotations

__version__ = "0.1.0"
