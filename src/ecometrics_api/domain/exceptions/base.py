# src/ecometrics_api/domain/exceptions/base.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Base Domain Exceptions.

Summary:
    Canonical base class for domain/application exceptions. Each subclass
    pins a stable ``code`` so callers (and whatever transport sits on top of
    this package) can branch on the code instead of the class.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain/application exceptions.

    Attributes:
        code:
            Stable error code suitable for mapping to transport status codes
            and metrics labels.
        message:
            Human-readable message.
        details:
            Optional machine-readable diagnostic payload used by adapters and
            logging code.
    """

    code: str = "DOMAIN_ERROR"
    retryable: bool = False

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        """Initialize a DomainError instance.

        Args:
            message: Human-readable error message.
            details: Optional structured diagnostic payload.
        """
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        """Return ``CODE: message`` with details appended when present."""
        base = f"{self.code}: {self.message}" if self.message else self.code
        if self.details:
            return f"{base} ({self.details})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Return a serializable error envelope."""
        return {"code": self.code, "message": self.message, "details": dict(self.details)}
