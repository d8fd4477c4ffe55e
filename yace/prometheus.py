"""Prometheus metric types, name sanitisation and text exposition."""

from __future__ import annotations

import math
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator

_HELP = "Help is not implemented yet."


class Counter:
    """A monotonically increasing, thread-safe counter."""

    def __init__(self, name: str, help: str = ""):
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    def inc(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


CLOUDWATCH_API_COUNTER = Counter("yace_cloudwatch_requests_total", _HELP)
CLOUDWATCH_API_ERROR_COUNTER = Counter("yace_cloudwatch_request_errors", _HELP)
CLOUDWATCH_GET_METRIC_DATA_API_COUNTER = Counter("yace_cloudwatch_getmetricdata_requests_total", _HELP)
CLOUDWATCH_GET_METRIC_STATISTICS_API_COUNTER = Counter(
    "yace_cloudwatch_getmetricstatistics_requests_total", _HELP
)
RESOURCE_GROUP_TAGGING_API_COUNTER = Counter("yace_cloudwatch_resourcegrouptaggingapi_requests_total", _HELP)
AUTO_SCALING_API_COUNTER = Counter("yace_cloudwatch_autoscalingapi_requests_total", _HELP)
TARGET_GROUPS_API_COUNTER = Counter("yace_cloudwatch_targetgroupapi_requests_total", _HELP)
API_GATEWAY_API_COUNTER = Counter("yace_cloudwatch_apigatewayapi_requests_total")
API_GATEWAY_API_V2_COUNTER = Counter("yace_cloudwatch_apigatewayapiv2_requests_total")
EC2_API_COUNTER = Counter("yace_cloudwatch_ec2api_requests_total", _HELP)
SHIELD_API_COUNTER = Counter("yace_cloudwatch_shieldapi_requests_total", _HELP)
MANAGED_PROMETHEUS_API_COUNTER = Counter("yace_cloudwatch_managedprometheusapi_requests_total", _HELP)
STORAGEGATEWAY_API_COUNTER = Counter("yace_cloudwatch_storagegatewayapi_requests_total", _HELP)
DMS_API_COUNTER = Counter("yace_cloudwatch_dmsapi_requests_total", _HELP)
DUPLICATE_METRICS_FILTERED_COUNTER = Counter("yace_cloudwatch_duplicate_metrics_filtered", _HELP)

_REPLACEMENTS = str.maketrans(
    {
        " ": "_",
        ",": "_",
        "\t": "_",
        "/": "_",
        "\\": "_",
        ".": "_",
        "-": "_",
        ":": "_",
        "=": "_",
        "\u201c": "_",
        "@": "_",
        "<": "_",
        ">": "_",
        "%": "_percent",
    }
)
_SPLIT_RE = re.compile(r"([a-z0-9])([A-Z])")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_FNV_OFFSET64 = 14695981039346656037
_FNV_PRIME64 = 1099511628211
_MASK64 = (1 << 64) - 1
_SEPARATOR = 0xFF


@dataclass
class PrometheusMetric:
    name: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    value: float | None = None
    include_timestamp: bool = False
    timestamp: datetime | None = None


class PrometheusCollector:
    """Holds a fixed set of metrics and exposes them as gauges."""

    def __init__(self, metrics: list[PrometheusMetric]):
        self._metrics = list(metrics)

    def collect(self) -> Iterator[PrometheusMetric]:
        yield from self._metrics

    def render(self) -> str:
        """Render the metrics in the Prometheus text exposition format."""
        groups: dict[str, list[PrometheusMetric]] = {}
        for metric in self.collect():
            groups.setdefault(metric.name or "", []).append(metric)
        lines = []
        for name, metrics in groups.items():
            lines.append(f"# HELP {name} {_HELP}")
            lines.append(f"# TYPE {name} gauge")
            lines.extend(_sample_line(name, metric) for metric in metrics)
        return "".join(line + "\n" for line in lines)


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _sample_line(name: str, metric: PrometheusMetric) -> str:
    labels = ",".join(
        f'{key}="{_escape_label_value(metric.labels[key])}"' for key in sorted(metric.labels)
    )
    line = f"{name}{{{labels}}}" if labels else name
    value = metric.value if metric.value is not None else math.nan
    line += " " + _format_value(value)
    if metric.include_timestamp and metric.timestamp is not None:
        line += f" {int(metric.timestamp.timestamp() * 1000)}"
    return line


def prom_string(text: str) -> str:
    """Turn a CloudWatch name into a lower snake-case Prometheus name."""
    return sanitize(split_string(text)).lower()


def prom_string_tag(text: str, labels_snake_case: bool) -> tuple[bool, str]:
    """Sanitise a label name; return whether it is valid and the sanitised name."""
    name = prom_string(text) if labels_snake_case else sanitize(text)
    return is_valid_label_name(name), name


def sanitize(text: str) -> str:
    return text.translate(_REPLACEMENTS)


def split_string(text: str) -> str:
    return _SPLIT_RE.sub(r"\1.\2", text)


def is_valid_label_name(name: str) -> bool:
    return bool(_LABEL_NAME_RE.match(name))


def _fnv_add(h: int, data: bytes) -> int:
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME64) & _MASK64
    return h


def labels_to_signature(labels: dict[str, str]) -> int:
    """Compute the 64-bit FNV-1a signature of a label set, independent of order."""
    h = _FNV_OFFSET64
    for name in sorted(labels):
        h = _fnv_add(h, name.encode())
        h = _fnv_add(h, bytes([_SEPARATOR]))
        h = _fnv_add(h, labels[name].encode())
        h = _fnv_add(h, bytes([_SEPARATOR]))
    return h