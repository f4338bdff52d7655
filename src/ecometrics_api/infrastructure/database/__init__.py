# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async database engine, sessions, and ORM models."""
