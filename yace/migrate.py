"""Conversion of CloudWatch results into Prometheus metrics."""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Iterable

from yace.logger import Logger
from yace.model import CloudwatchData, CloudwatchMetricResult, Datapoint, JobContext, TaggedResource
from yace.prometheus import (
    DUPLICATE_METRICS_FILTERED_COUNTER,
    PrometheusMetric,
    labels_to_signature,
    prom_string,
    prom_string_tag,
)

PERCENTILE = re.compile(r"p(\d{1,2}(\.\d{0,2})?|100)")

_SIMPLE_STATISTICS = {
    "Maximum": "maximum",
    "Minimum": "minimum",
    "Sum": "sum",
    "SampleCount": "sample_count",
}


class InvalidStatisticError(ValueError):
    """Raised when a metric asks for a statistic that is not known."""

    def __init__(self, metric: str | None, statistic: str):
        super().__init__(f"invalid statistic requested on metric {metric}: {statistic}")
        self.metric = metric
        self.statistic = statistic


def _namespace_prefix(namespace: str) -> str:
    prom_ns = prom_string(namespace.lower())
    return prom_ns if prom_ns.startswith("aws") else "aws_" + prom_ns


def build_namespace_info_metrics(
    tag_data: Iterable[Iterable[TaggedResource]],
    metrics: list[PrometheusMetric],
    observed_metric_labels: dict[str, set[str]],
    labels_snake_case: bool,
    logger: Logger,
) -> tuple[list[PrometheusMetric], dict[str, set[str]]]:
    """Append one ``<namespace>_info`` metric per tagged resource."""
    for resources in tag_data:
        for resource in resources:
            metric_name = _namespace_prefix(resource.namespace) + "_info"
            prom_labels = {"name": resource.arn}
            for tag in resource.tags:
                ok, prom_tag = prom_string_tag(tag.key, labels_snake_case)
                if not ok:
                    logger.warn("tag name is an invalid prometheus label name", "tag", tag.key)
                    continue
                prom_labels["tag_" + prom_tag] = tag.value

            observed_metric_labels = record_labels_for_metric(
                metric_name, prom_labels, observed_metric_labels
            )
            metrics.append(PrometheusMetric(name=metric_name, labels=prom_labels, value=0.0))
    return metrics, observed_metric_labels


def build_metrics(
    results: Iterable[CloudwatchMetricResult],
    labels_snake_case: bool,
    logger: Logger,
) -> tuple[list[PrometheusMetric], dict[str, set[str]]]:
    """Turn scrape results into Prometheus metrics and the labels seen per metric name.

    Raises InvalidStatisticError for an unknown statistic.
    """
    output: list[PrometheusMetric] = []
    observed_metric_labels: dict[str, set[str]] = {}

    for result in results:
        context = result.context
        for metric in result.data:
            for statistic in metric.statistics:
                include_timestamp = bool(metric.add_cloudwatch_timestamp)
                value, timestamp = get_datapoint(metric, statistic)
                if value is None and not metric.add_cloudwatch_timestamp:
                    value = 0.0 if metric.nil_to_zero else math.nan
                    include_timestamp = False

                name = "_".join(
                    (
                        _namespace_prefix(metric.namespace or ""),
                        prom_string(metric.metric or ""),
                        prom_string(statistic),
                    )
                )

                if value is None:
                    continue
                prom_labels = create_prometheus_labels(context, metric, labels_snake_case, logger)
                observed_metric_labels = record_labels_for_metric(
                    name, prom_labels, observed_metric_labels
                )
                output.append(
                    PrometheusMetric(
                        name=name,
                        labels=prom_labels,
                        value=value,
                        timestamp=timestamp,
                        include_timestamp=include_timestamp,
                    )
                )

    return output, observed_metric_labels


def get_datapoint(cwd: CloudwatchData, statistic: str) -> tuple[float | None, datetime | None]:
    """Pick the value and timestamp to export for one statistic of a metric.

    The newest datapoint carrying the statistic wins, except for "Average",
    which is averaged over all datapoints that have it.
    """
    if cwd.get_metric_data_point is not None:
        return cwd.get_metric_data_point, cwd.get_metric_data_timestamps

    average_points: list[Datapoint] = []
    for datapoint in sort_by_timestamp(cwd.points or []):
        if statistic in _SIMPLE_STATISTICS:
            value = getattr(datapoint, _SIMPLE_STATISTICS[statistic])
            if value is not None:
                return value, datapoint.timestamp
        elif statistic == "Average":
            if datapoint.average is not None:
                average_points.append(datapoint)
        elif PERCENTILE.fullmatch(statistic):
            if statistic in datapoint.extended_statistics:
                return datapoint.extended_statistics[statistic], datapoint.timestamp
        else:
            raise InvalidStatisticError(cwd.metric, statistic)

    if average_points:
        timestamp = max(point.timestamp for point in average_points)
        total = sum(point.average for point in average_points)
        return total / len(average_points), timestamp
    return None, None


def sort_by_timestamp(datapoints: list[Datapoint]) -> list[Datapoint]:
    """Sort datapoints in place, newest first, and return the list."""
    datapoints.sort(key=lambda point: point.timestamp, reverse=True)
    return datapoints


def create_prometheus_labels(
    context: JobContext,
    cwd: CloudwatchData,
    labels_snake_case: bool,
    logger: Logger,
) -> dict[str, str]:
    """Build the label set of a metric from its job context, dimensions and tags."""
    labels = {
        "name": cwd.id or "",
        "region": context.region,
        "account_id": context.account_id,
    }

    for dimension in cwd.dimensions:
        ok, prom_tag = prom_string_tag(dimension.name, labels_snake_case)
        if not ok:
            logger.warn(
                "dimension name is an invalid prometheus label name", "dimension", dimension.name
            )
            continue
        labels["dimension_" + prom_tag] = dimension.value

    for label in context.custom_tags:
        ok, prom_tag = prom_string_tag(label.key, labels_snake_case)
        if not ok:
            logger.warn("custom tag name is an invalid prometheus label name", "tag", label.key)
            continue
        labels["custom_tag_" + prom_tag] = label.value

    for tag in cwd.tags:
        ok, prom_tag = prom_string_tag(tag.key, labels_snake_case)
        if not ok:
            logger.warn("metric tag name is an invalid prometheus label name", "tag", tag.key)
            continue
        labels["tag_" + prom_tag] = tag.value

    return labels


def record_labels_for_metric(
    metric_name: str,
    prom_labels: dict[str, str],
    observed_metric_labels: dict[str, set[str]],
) -> dict[str, set[str]]:
    """Add the label names of ``prom_labels`` to those seen for ``metric_name``."""
    observed_metric_labels.setdefault(metric_name, set()).update(prom_labels)
    return observed_metric_labels


def ensure_label_consistency_and_remove_duplicates(
    metrics: Iterable[PrometheusMetric],
    observed_metric_labels: dict[str, set[str]],
) -> list[PrometheusMetric]:
    """Give every metric all labels seen for its name and drop duplicate metrics.

    Missing labels are filled in with empty values on the metrics themselves.
    """
    seen: set[tuple[str | None, int]] = set()
    output: list[PrometheusMetric] = []

    for metric in metrics:
        for label in observed_metric_labels.get(metric.name, ()):
            metric.labels.setdefault(label, "")

        key = (metric.name, labels_to_signature(metric.labels))
        if key in seen:
            DUPLICATE_METRICS_FILTERED_COUNTER.inc()
            continue
        seen.add(key)
        output.append(metric)

    return output