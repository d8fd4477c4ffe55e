"""Building GetMetricData queries from listed metrics and mapping the results back."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from yace.compact import compact
from yace.logger import Logger
from yace.model import CloudwatchData, Dimension, Metric, MetricConfig, TaggedResource


class ResourceAssociator(Protocol):
    def associate_metric_to_resource(self, cw_metric: Metric) -> tuple[TaggedResource | None, bool]:
        ...


@dataclass
class MetricDataResult:
    """One result of a GetMetricData call: query id, value and timestamp."""

    id: str = ""
    datapoint: float = 0.0
    timestamp: datetime | None = None


def _new_metric_id() -> str:
    return f"id_{random.getrandbits(63)}"


def map_results_to_metric_datas(
    output: Iterable[list[MetricDataResult] | None],
    datas: Iterable[CloudwatchData],
    logger: Logger,
) -> None:
    """Copy each result's value and timestamp onto the query with the same metric id.

    Matched entries have their ``metric_id`` cleared to mark them processed.
    Results with unknown ids are logged and ignored; repeated results for an
    already processed id are ignored.
    """
    by_metric_id = {data.metric_id: data for data in datas}

    for batch in output:
        if batch is None:
            continue
        for result in batch:
            data = by_metric_id.get(result.id)
            if data is None:
                logger.warn("GetMetricData returned unknown metric ID", "metric_id", result.id)
                continue
            if data.metric_id is None:
                continue
            data.get_metric_data_point = result.datapoint
            data.get_metric_data_timestamps = result.timestamp
            data.metric_id = None


def drop_unprocessed(datas: list[CloudwatchData]) -> list[CloudwatchData]:
    """Remove in place every entry that received no result, and return the list."""
    return compact(datas, lambda data: data.metric_id is None)


def get_metric_data_input_length(metrics: Iterable[MetricConfig]) -> int:
    """Return the largest length among the metric configs, or 0."""
    return max((metric.length for metric in metrics), default=0)


def get_filtered_metric_datas(
    logger: Logger,
    namespace: str,
    tags_on_metrics: list[str] | None,
    metrics_list: Iterable[Metric],
    dimension_name_list: list[str] | None,
    m: MetricConfig,
    assoc: ResourceAssociator,
) -> list[CloudwatchData]:
    """Build one query per statistic for every listed metric that passes the filters."""
    result: list[CloudwatchData] = []
    for cw_metric in metrics_list:
        if dimension_name_list and not metric_dimensions_match_names(cw_metric, dimension_name_list):
            continue

        matched, skip = assoc.associate_metric_to_resource(cw_metric)
        if skip:
            if logger.is_debug_enabled():
                dimensions = ",".join(f"{d.name}={d.value}" for d in cw_metric.dimensions)
                logger.debug(
                    "skipping metric unmatched by associator",
                    "metric",
                    m.name,
                    "dimensions",
                    dimensions,
                )
            continue

        resource = matched if matched is not None else TaggedResource(arn="global", namespace=namespace)
        metric_tags = resource.metric_tags(tags_on_metrics or [])

        for statistic in m.statistics:
            result.append(
                CloudwatchData(
                    id=resource.arn,
                    metric_id=_new_metric_id(),
                    metric=m.name,
                    namespace=namespace,
                    statistics=[statistic],
                    nil_to_zero=m.nil_to_zero,
                    add_cloudwatch_timestamp=m.add_cloudwatch_timestamp,
                    tags=metric_tags,
                    dimensions=cw_metric.dimensions,
                    period=m.period,
                )
            )
    return result


def metric_dimensions_match_names(metric: Metric, dimension_name_requirements: list[str]) -> bool:
    """Return True if the metric has exactly as many dimensions as required, all named in the list."""
    if len(dimension_name_requirements) != len(metric.dimensions):
        return False
    required = set(dimension_name_requirements)
    return all(dimension.name in required for dimension in metric.dimensions)


__all__ = [
    "Dimension",
    "MetricDataResult",
    "drop_unprocessed",
    "get_filtered_metric_datas",
    "get_metric_data_input_length",
    "map_results_to_metric_datas",
    "metric_dimensions_match_names",
]