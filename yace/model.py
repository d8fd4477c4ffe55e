"""Data model shared by discovery, scraping and metric export."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_PERIOD_SECONDS = 300
DEFAULT_LENGTH_SECONDS = 300
DEFAULT_DELAY_SECONDS = 300

LabelSet = set


@dataclass
class Tag:
    key: str = ""
    value: str = ""


@dataclass
class Dimension:
    name: str = ""
    value: str = ""


@dataclass
class Role:
    role_arn: str = ""
    external_id: str = ""


@dataclass
class MetricConfig:
    name: str = ""
    statistics: list[str] = field(default_factory=list)
    period: int = 0
    length: int = 0
    delay: int = 0
    nil_to_zero: bool | None = None
    add_cloudwatch_timestamp: bool | None = None


@dataclass
class JobLevelMetricFields:
    statistics: list[str] = field(default_factory=list)
    period: int = 0
    length: int = 0
    delay: int = 0
    nil_to_zero: bool | None = None
    add_cloudwatch_timestamp: bool | None = None


@dataclass
class DiscoveryJob(JobLevelMetricFields):
    regions: list[str] = field(default_factory=list)
    type: str = ""
    roles: list[Role] = field(default_factory=list)
    search_tags: list[Tag] = field(default_factory=list)
    custom_tags: list[Tag] = field(default_factory=list)
    dimension_name_requirements: list[str] = field(default_factory=list)
    metrics: list[MetricConfig] = field(default_factory=list)
    rounding_period: int | None = None
    recently_active_only: bool = False
    exported_tags_on_metrics: list[str] = field(default_factory=list)


@dataclass
class StaticJob:
    name: str = ""
    regions: list[str] = field(default_factory=list)
    roles: list[Role] = field(default_factory=list)
    namespace: str = ""
    custom_tags: list[Tag] = field(default_factory=list)
    dimensions: list[Dimension] = field(default_factory=list)
    metrics: list[MetricConfig] = field(default_factory=list)


@dataclass
class CustomNamespaceJob(JobLevelMetricFields):
    regions: list[str] = field(default_factory=list)
    name: str = ""
    namespace: str = ""
    recently_active_only: bool = False
    roles: list[Role] = field(default_factory=list)
    metrics: list[MetricConfig] = field(default_factory=list)
    custom_tags: list[Tag] = field(default_factory=list)
    dimension_name_requirements: list[str] = field(default_factory=list)
    rounding_period: int | None = None


@dataclass
class JobsConfig:
    sts_region: str = ""
    discovery_jobs: list[DiscoveryJob] = field(default_factory=list)
    static_jobs: list[StaticJob] = field(default_factory=list)
    custom_namespace_jobs: list[CustomNamespaceJob] = field(default_factory=list)


@dataclass
class Metric:
    """A metric as listed by CloudWatch: its dimensions, name and namespace."""

    dimensions: list[Dimension] = field(default_factory=list)
    metric_name: str = ""
    namespace: str = ""


@dataclass
class Datapoint:
    average: float | None = None
    extended_statistics: dict[str, float] = field(default_factory=dict)
    maximum: float | None = None
    minimum: float | None = None
    sample_count: float | None = None
    sum: float | None = None
    timestamp: datetime | None = None


@dataclass
class JobContext:
    region: str = ""
    account_id: str = ""
    custom_tags: list[Tag] = field(default_factory=list)


@dataclass
class CloudwatchData:
    """A CloudWatch metric with attached data points, metric and resource information."""

    id: str | None = None
    metric_id: str | None = None
    metric: str | None = None
    namespace: str | None = None
    statistics: list[str] = field(default_factory=list)
    points: list[Datapoint] | None = None
    get_metric_data_point: float | None = None
    get_metric_data_timestamps: datetime | None = None
    nil_to_zero: bool | None = None
    add_cloudwatch_timestamp: bool | None = None
    tags: list[Tag] = field(default_factory=list)
    dimensions: list[Dimension] = field(default_factory=list)
    period: int = 0


@dataclass
class CloudwatchMetricResult:
    context: JobContext | None = None
    data: list[CloudwatchData] = field(default_factory=list)


@dataclass
class TaggedResource:
    """An AWS resource with its ARN, namespace, region and tags."""

    arn: str = ""
    namespace: str = ""
    region: str = ""
    tags: list[Tag] = field(default_factory=list)

    def filter_through_tags(self, filter_tags: list[Tag]) -> bool:
        """Return True when every filter tag matches a tag of this resource.

        Filter values are regular expressions searched in the tag value.
        """
        if not filter_tags:
            return True
        matches = sum(
            1
            for resource_tag in self.tags
            for filter_tag in filter_tags
            if resource_tag.key == filter_tag.key
            and re.search(filter_tag.value, resource_tag.value)
        )
        return matches == len(filter_tags)

    def metric_tags(self, exported_tags: list[str]) -> list[Tag]:
        """Build one tag per exported tag name, empty when the resource lacks it."""
        values = {}
        for tag in self.tags:
            values.setdefault(tag.key, tag.value)
        return [Tag(key=name, value=values.get(name, "")) for name in exported_tags]