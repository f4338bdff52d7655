# src/ecometrics_api/adapters/uow/__init__.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Unit of Work implementations."""

from ecometrics_api.adapters.uow.sqlalchemy_uow import SqlAlchemyUnitOfWork

__all__ = ["SqlAlchemyUnitOfWork"]
