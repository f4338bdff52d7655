"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from ecometrics_api.infrastructure.database.models.base import Base, metadata
from ecometrics_api.infrastructure.database.models.metric_records import (
    MetricRecordMetricModel,
    MetricRecordModel,
)

__all__ = ["Base", "metadata", "MetricRecordModel", "MetricRecordMetricModel"]
