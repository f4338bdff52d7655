# src/ecometrics_api/application/schemas/dto/base.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Base DTO (Application Layer).

Purpose:
    Pydantic base for application-layer DTOs that validate untrusted import
    bodies before they become domain entities. Transport-agnostic.

Layer: application/schemas/dto
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseDTO(BaseModel):
    """Base class for application-layer DTOs.

    Notes:
        - Unknown keys are rejected (``extra='forbid'``).
        - Instances are immutable once validated.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
