# src/ecometrics_api/domain/services/metric_traversal.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Typed traversal over metric payloads.

Purpose:
    Dispatch on the payload variant of a metric through an explicit visitor
    instead of probing objects for field presence. The main client is
    :func:`stamp_actor`, which fills in ``added_by``/``added_at`` on every
    nested entry that does not carry them yet.

Layer:
    domain/services
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Generic, Protocol, TypeVar, assert_never

from ecometrics_api.domain.entities.metric_record import (
    ListData,
    Metric,
    MetricPayload,
    SingleValue,
    Summary,
    YearlySeries,
)

__all__ = ["PayloadVisitor", "visit_payload", "ActorStamper", "stamp_actor"]

TResult = TypeVar("TResult", covariant=True)
_R = TypeVar("_R")


class PayloadVisitor(Protocol, Generic[TResult]):  # noqa: UP046
    """One handler per payload variant."""

    def visit_yearly_series(self, payload: YearlySeries) -> TResult:
        """Handle a yearly series payload."""
        ...

    def visit_single_value(self, payload: SingleValue) -> TResult:
        """Handle a single value payload."""
        ...

    def visit_list(self, payload: ListData) -> TResult:
        """Handle a list payload."""
        ...

    def visit_summary(self, payload: Summary) -> TResult:
        """Handle a summary payload."""
        ...


def visit_payload(payload: MetricPayload, visitor: PayloadVisitor[_R]) -> _R:  # noqa: UP047
    """Dispatch ``payload`` to the matching visitor method."""
    match payload:
        case YearlySeries():
            return visitor.visit_yearly_series(payload)
        case SingleValue():
            return visitor.visit_single_value(payload)
        case ListData():
            return visitor.visit_list(payload)
        case Summary():
            return visitor.visit_summary(payload)
        case _:
            assert_never(payload)


class ActorStamper:
    """Visitor returning a copy of the payload with missing actor stamps filled."""

    def __init__(self, actor_id: str, at: datetime) -> None:
        """Initialize the stamper.

        Args:
            actor_id: Actor to record on unstamped entries.
            at: Timestamp to record on unstamped entries.
        """
        self._actor_id = actor_id
        self._at = at

    def visit_yearly_series(self, payload: YearlySeries) -> YearlySeries:
        """Stamp each data point that has no ``added_by``."""
        points = tuple(
            p
            if p.added_by
            else replace(p, added_by=self._actor_id, added_at=p.added_at or self._at)
            for p in payload.points
        )
        return replace(payload, points=points)

    def visit_single_value(self, payload: SingleValue) -> SingleValue:
        """Stamp the value if it has no ``added_by``."""
        if payload.added_by:
            return payload
        return replace(payload, added_by=self._actor_id, added_at=payload.added_at or self._at)

    def visit_list(self, payload: ListData) -> ListData:
        """Stamp each list item that has no ``added_by``."""
        items = tuple(
            i
            if i.added_by
            else replace(i, added_by=self._actor_id, added_at=i.added_at or self._at)
            for i in payload.items
        )
        return replace(payload, items=items)

    def visit_summary(self, payload: Summary) -> Summary:
        """Stamp the summary if it has no ``added_by``."""
        if payload.added_by:
            return payload
        return replace(payload, added_by=self._actor_id, added_at=payload.added_at or self._at)


def stamp_actor(metric: Metric, actor_id: str, at: datetime) -> Metric:
    """Return ``metric`` with every unstamped nested entry attributed to ``actor_id``."""
    payload = visit_payload(metric.payload, ActorStamper(actor_id, at))
    return replace(metric, payload=payload)
