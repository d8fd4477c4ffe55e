"""Best-effort association of listed CloudWatch metrics to tagged resources.

Each namespace has a list of regular expressions that pull dimension names
and values out of resource ARNs. A metric is associated to the resource whose
ARN-derived dimensions match the metric's own dimensions. When several
mappings apply, the one with the most dimensions wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from yace.logger import Logger
from yace.model import Metric, TaggedResource
from yace.prometheus import labels_to_signature

_AMAZON_MQ_BROKER_SUFFIX = re.compile(r"-[0-9]+\Z")


@dataclass
class _DimensionsRegexpMapping:
    """Dimension names of one regex, and resources keyed by label signature."""

    dimensions: list[str]
    dimensions_mapping: dict[int, TaggedResource] = field(default_factory=dict)

    def __str__(self) -> str:
        entries = "".join(f"{sig}={res.arn}," for sig, res in self.dimensions_mapping.items())
        return "{dimensions=[" + "".join(self.dimensions) + "], dimensions_mappings={" + entries + "}}"


def _dimension_names(pattern: re.Pattern) -> list[str]:
    """Group names in group order; regex underscores stand for spaces in AWS names."""
    by_index = {index: name for name, index in pattern.groupindex.items()}
    return [by_index.get(i, "").replace("_", " ") for i in range(1, pattern.groups + 1)]


class Associator:
    """Maps metrics to resources using per-namespace ARN regular expressions."""

    def __init__(
        self,
        logger: Logger,
        dimension_regexps: Iterable[re.Pattern | str],
        resources: Sequence[TaggedResource],
    ):
        self._logger = logger
        self._mappings: list[_DimensionsRegexpMapping] = []

        # Each resource is matched against at most one regex.
        mapped: set[int] = set()

        for regex in dimension_regexps:
            pattern = re.compile(regex) if isinstance(regex, str) else regex
            names = _dimension_names(pattern)
            mapping = _DimensionsRegexpMapping(dimensions=names)

            for idx, resource in enumerate(resources):
                if idx in mapped:
                    continue
                match = pattern.search(resource.arn)
                if match is None:
                    continue
                labels = {}
                for name, value in zip(names, match.groups()):
                    labels[name] = value or ""
                mapping.dimensions_mapping[labels_to_signature(labels)] = resource
                mapped.add(idx)

            if mapping.dimensions_mapping:
                self._mappings.append(mapping)
            elif logger.is_debug_enabled():
                logger.debug("unable to define a regex mapping", "regex", pattern.pattern)

        # Most specific mappings first; the sort is stable for equal lengths.
        self._mappings.sort(key=lambda m: len(m.dimensions), reverse=True)

        if logger.is_debug_enabled():
            for idx, mapping in enumerate(self._mappings):
                logger.debug("associator mapping", "mapping_idx", idx, "mapping", str(mapping))

    def associate_metric_to_resource(self, cw_metric: Metric) -> tuple[TaggedResource | None, bool]:
        """Find the resource for a metric.

        Returns the resource (or None) and whether the metric should be skipped.
        A metric for which no mapping applies is kept as a global metric; one
        for which a mapping applied but no resource matched is skipped.
        """
        logger = self._logger.with_values("metric_name", cw_metric.metric_name)

        if not cw_metric.dimensions:
            logger.debug("metric has no dimensions, don't skip")
            return None, False

        dimensions = [dimension.name for dimension in cw_metric.dimensions]
        if logger.is_debug_enabled():
            logger.debug("associate loop start", "dimensions", ",".join(dimensions))

        mapping_found = False
        for idx, mapping in enumerate(self._mappings):
            if not contains_all(dimensions, mapping.dimensions):
                continue
            if logger.is_debug_enabled():
                logger.debug("found mapping", "mapping_idx", idx, "mapping", str(mapping))

            mapping_found = True
            signature = labels_to_signature(build_labels_map(cw_metric, mapping.dimensions))
            resource = mapping.dimensions_mapping.get(signature)
            if resource is not None:
                logger.debug("resource matched", "signature", signature)
                return resource, False
            logger.debug("resource not matched", "signature", signature)

        logger.debug("associate loop end", "skip", mapping_found)
        return None, mapping_found


def build_labels_map(cw_metric: Metric, dimensions: Iterable[str]) -> dict[str, str]:
    """Map the metric's dimensions named in ``dimensions`` to their values.

    Values are adjusted where a namespace's dimension value differs from
    what the ARN holds.
    """
    wanted = set(dimensions)
    labels: dict[str, str] = {}
    for dimension in cw_metric.dimensions:
        if dimension.name not in wanted:
            continue
        value = dimension.value
        # Active/standby ActiveMQ brokers carry a number suffix absent from the ARN.
        if cw_metric.namespace == "AWS/AmazonMQ" and dimension.name == "Broker":
            value = _AMAZON_MQ_BROKER_SUFFIX.sub("", value)
        # SageMaker ARNs are lower case while endpoint names may not be.
        if cw_metric.namespace == "AWS/SageMaker" and dimension.name == "EndpointName":
            value = value.lower()
        labels[dimension.name] = value
    return labels


def contains_all(a: Iterable[str], b: Iterable[str]) -> bool:
    """Return True if ``a`` contains every element of ``b``."""
    present = set(a)
    return all(element in present for element in b)