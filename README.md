# yace

The core logic of a CloudWatch metrics exporter for Prometheus, as a plain
Python library with no third-party dependencies. The caller fetches metrics and
resources from the cloud. The library does everything after that.

- **Resource association** (`yace.associator`). `Associator` matches listed
  metrics to tagged resources. You give it a list of ARN regular expressions
  with named groups. Each group name is a dimension name; an underscore in a
  group name stands for a space. Each regex turns matching ARNs into a set of
  dimensions, and each resource is mapped by at most one regex.
  `associate_metric_to_resource(metric)` returns `(resource, skip)` and tries
  the most specific mapping (most dimensions) first. The outcomes are:
  - A metric with no dimensions is kept as a global metric.
  - A metric that fits no mapping is also kept as a global metric.
  - A metric that fits a mapping but matches no resource is skipped.

  There are two value adjustments:
  - `AWS/AmazonMQ` broker names drop a trailing `-<number>`.
  - `AWS/SageMaker` endpoint names are lower-cased.
- **Query building and result mapping** (`yace.discovery`).
  - `metric_dimensions_match_names` filters metrics by the names of their
    dimensions.
  - `get_filtered_metric_datas` builds one `CloudwatchData` query per
    statistic. Each query gets a random `metric_id`.
  - `map_results_to_metric_datas` copies `MetricDataResult` values back onto
    the queries by id.
  - `drop_unprocessed` removes the queries that got no result.
  - `get_metric_data_input_length` gives the largest configured length.
- **Prometheus conversion** (`yace.migrate`, `yace.prometheus`).
  - `build_metrics` turns results into `PrometheusMetric` objects.
  - `build_namespace_info_metrics` adds `*_info` metrics for tagged resources.
  - `ensure_label_consistency_and_remove_duplicates` gives all metrics of one
    name the same label set and drops duplicates.
  - `PrometheusCollector.render()` writes everything in the text exposition
    format.
- **Data model** (`yace.model`). Dataclasses for jobs, metrics, datapoints and
  tagged resources. `TaggedResource.filter_through_tags` matches tag values as
  regular expressions. `TaggedResource.metric_tags` exports chosen tags as
  metric labels; a tag the resource lacks gets an empty value.
- **Logging** (`yace.logger`). `new_logger(format, debug_enabled, *keyvals)`
  writes key/value lines to standard error, in JSON when `format` is `"json"`
  and in logfmt otherwise. `new_nop_logger()` discards everything.
  `Logger.with_values` adds context pairs to every line.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example: converting results

```python
from yace.logger import new_nop_logger
from yace.migrate import build_metrics, ensure_label_consistency_and_remove_duplicates
from yace.model import CloudwatchData, CloudwatchMetricResult, Dimension, JobContext
from yace.prometheus import PrometheusCollector

data = CloudwatchData(
    id="arn:aws:elasticache:us-east-1:123456789012:cluster:redis-cluster",
    metric="CPUUtilization",
    namespace="AWS/ElastiCache",
    statistics=["Average"],
    dimensions=[Dimension("CacheClusterId", "redis-cluster")],
    nil_to_zero=False,
    get_metric_data_point=1.0,
)
result = CloudwatchMetricResult(
    context=JobContext(region="us-east-1", account_id="123456789012"),
    data=[data],
)

metrics, labels = build_metrics([result], False, new_nop_logger())
metrics = ensure_label_consistency_and_remove_duplicates(metrics, labels)
print(PrometheusCollector(metrics).render())
```

This prints a gauge named `aws_elasticache_cpuutilization_average`. It carries
the labels `name`, `region`, `account_id` and `dimension_CacheClusterId`.

## Example: associating metrics to resources

```python
from yace.associator import Associator
from yace.logger import new_nop_logger
from yace.model import Dimension, Metric, TaggedResource

instance = TaggedResource(arn="arn:aws:ec2:us-east-1:123456789012:instance/i-abc123")
assoc = Associator(new_nop_logger(), [r":instance/(?P<InstanceId>[^/]+)"], [instance])

metric = Metric(metric_name="CPUUtilization", namespace="AWS/EC2",
                dimensions=[Dimension("InstanceId", "i-abc123")])
resource, skip = assoc.associate_metric_to_resource(metric)  # (instance, False)
```

## Naming rules

- **Metric names** are built as `aws_<namespace>_<metric>_<statistic>`. The
  `aws_` prefix is not doubled when the namespace already starts with `aws`.
  Each part is split at camel-case boundaries, lower-cased and sanitised, so
  `GlobalTopicCount` becomes `global_topic_count`.
- **Label names** keep their original case unless snake case is requested.
  With snake case, `CacheClusterId` becomes `cache_cluster_id`.
- **Invalid labels.** A tag or dimension whose name is not a valid Prometheus
  label name is skipped, and a warning is logged.
- **Statistics.** The accepted statistics are `Maximum`, `Minimum`, `Sum`,
  `SampleCount`, `Average` and percentiles such as `p99`. Any other statistic
  raises `InvalidStatisticError` when it has to be read from datapoints.
- **Missing values.** A missing value is exported as `NaN`, or as `0` when
  `nil_to_zero` is set. The exception is when `add_cloudwatch_timestamp` is
  set: then the metric is left out.

## What this package does not do

- It makes no calls to any cloud API. Listing metrics, fetching metric data,
  looking up accounts and tagged resources are all left to the caller.
- It ships no per-service ARN regular expressions. The caller supplies them to
  `Associator`.
- It has no job scheduler, configuration file loader, HTTP server or command
  line program. `PrometheusCollector.render()` produces the exposition text,
  and serving it is up to the caller.
- The request counters in `yace.prometheus` are plain in-process counters and
  are not exported on their own.