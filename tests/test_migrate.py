import math
from datetime import datetime, timedelta, timezone

import pytest

from yace.logger import new_nop_logger
from yace.migrate import (
    InvalidStatisticError,
    build_metrics,
    build_namespace_info_metrics,
    create_prometheus_labels,
    ensure_label_consistency_and_remove_duplicates,
    get_datapoint,
    record_labels_for_metric,
    sort_by_timestamp,
)
from yace.model import (
    CloudwatchData,
    CloudwatchMetricResult,
    Datapoint,
    Dimension,
    JobContext,
    Tag,
    TaggedResource,
)
from yace.prometheus import DUPLICATE_METRICS_FILTERED_COUNTER, PrometheusMetric

CACHE_ARN = "arn:aws:elasticache:us-east-1:123456789012:cluster:redis-cluster"


def _cache_resource():
    return TaggedResource(
        arn=CACHE_ARN,
        namespace="AWS/ElastiCache",
        region="us-east-1",
        tags=[Tag(key="CustomTag", value="tag_Value")],
    )


def test_info_metrics_with_tag():
    metrics, labels = build_namespace_info_metrics(
        [[_cache_resource()]], [], {}, False, new_nop_logger()
    )
    assert metrics == [
        PrometheusMetric(
            name="aws_elasticache_info",
            labels={"name": CACHE_ARN, "tag_CustomTag": "tag_Value"},
            value=0.0,
        )
    ]
    assert labels == {"aws_elasticache_info": {"name", "tag_CustomTag"}}


def test_info_metrics_snake_case():
    metrics, labels = build_namespace_info_metrics(
        [[_cache_resource()]], [], {}, True, new_nop_logger()
    )
    assert metrics == [
        PrometheusMetric(
            name="aws_elasticache_info",
            labels={"name": CACHE_ARN, "tag_custom_tag": "tag_Value"},
            value=0.0,
        )
    ]
    assert labels == {"aws_elasticache_info": {"name", "tag_custom_tag"}}


def test_info_metrics_with_observed_metrics_and_labels():
    ec2_labels = {
        "name": "arn:aws:ec2:us-east-1:123456789012:instance/i-abc123",
        "dimension_InstanceId": "i-abc123",
    }
    existing = [PrometheusMetric(name="aws_ec2_cpuutilization_maximum", labels=dict(ec2_labels), value=0.0)]
    observed = {"aws_ec2_cpuutilization_maximum": {"name", "dimension_InstanceId"}}
    metrics, labels = build_namespace_info_metrics(
        [[_cache_resource()]], existing, observed, True, new_nop_logger()
    )
    assert metrics == [
        PrometheusMetric(name="aws_ec2_cpuutilization_maximum", labels=ec2_labels, value=0.0),
        PrometheusMetric(
            name="aws_elasticache_info",
            labels={"name": CACHE_ARN, "tag_custom_tag": "tag_Value"},
            value=0.0,
        ),
    ]
    assert labels == {
        "aws_ec2_cpuutilization_maximum": {"name", "dimension_InstanceId"},
        "aws_elasticache_info": {"name", "tag_custom_tag"},
    }


def test_info_metrics_skip_invalid_tag_names():
    resource = TaggedResource(
        arn="arn:x", namespace="AWS/EC2", tags=[Tag(key="bad$", value="v"), Tag(key="ok", value="w")]
    )
    metrics, _ = build_namespace_info_metrics([[resource]], [], {}, False, new_nop_logger())
    assert metrics[0].name == "aws_ec2_info"
    assert metrics[0].labels == {"name": "arn:x", "tag_ok": "w"}


def _cache_data(ts, **overrides):
    fields = dict(
        metric="CPUUtilization",
        namespace="AWS/ElastiCache",
        statistics=["Average"],
        dimensions=[Dimension(name="CacheClusterId", value="redis-cluster")],
        nil_to_zero=False,
        get_metric_data_point=1.0,
        get_metric_data_timestamps=ts,
        id=CACHE_ARN,
    )
    fields.update(overrides)
    return CloudwatchData(**fields)


def _context():
    return JobContext(region="us-east-1", account_id="123456789012")


@pytest.mark.parametrize(
    "snake_case, dimension_label",
    [(False, "dimension_CacheClusterId"), (True, "dimension_cache_cluster_id")],
)
def test_build_metrics(snake_case, dimension_label):
    ts = datetime.now(timezone.utc)
    results = [CloudwatchMetricResult(context=_context(), data=[_cache_data(ts)])]
    metrics, labels = build_metrics(results, snake_case, new_nop_logger())
    assert metrics == [
        PrometheusMetric(
            name="aws_elasticache_cpuutilization_average",
            value=1.0,
            timestamp=ts,
            labels={
                "account_id": "123456789012",
                "name": CACHE_ARN,
                "region": "us-east-1",
                dimension_label: "redis-cluster",
            },
        )
    ]
    assert labels == {
        "aws_elasticache_cpuutilization_average": {"account_id", "name", "region", dimension_label}
    }


def test_build_metrics_missing_value_is_nan():
    data = _cache_data(None, get_metric_data_point=None, points=[])
    metrics, _ = build_metrics([CloudwatchMetricResult(context=_context(), data=[data])], False, new_nop_logger())
    assert len(metrics) == 1
    assert math.isnan(metrics[0].value)
    assert metrics[0].include_timestamp is False


def test_build_metrics_missing_value_nil_to_zero():
    data = _cache_data(None, get_metric_data_point=None, nil_to_zero=True)
    metrics, _ = build_metrics([CloudwatchMetricResult(context=_context(), data=[data])], False, new_nop_logger())
    assert [m.value for m in metrics] == [0.0]


def test_build_metrics_missing_value_with_timestamp_is_dropped():
    data = _cache_data(None, get_metric_data_point=None, add_cloudwatch_timestamp=True)
    metrics, labels = build_metrics(
        [CloudwatchMetricResult(context=_context(), data=[data])], False, new_nop_logger()
    )
    assert metrics == []
    assert labels == {}


def test_build_metrics_invalid_statistic():
    ts = datetime(2023, 1, 1, tzinfo=timezone.utc)
    data = _cache_data(
        None,
        get_metric_data_point=None,
        statistics=["Bogus"],
        points=[Datapoint(timestamp=ts, maximum=1.0)],
    )
    with pytest.raises(InvalidStatisticError):
        build_metrics([CloudwatchMetricResult(context=_context(), data=[data])], False, new_nop_logger())


def test_sort_by_timestamp_descending():
    now = datetime.now(timezone.utc)
    middle = Datapoint(timestamp=now - timedelta(minutes=2), maximum=2.0)
    newest = Datapoint(timestamp=now - timedelta(minutes=1), maximum=1.0)
    oldest = Datapoint(timestamp=now - timedelta(minutes=3), maximum=3.0)
    result = sort_by_timestamp([middle, newest, oldest])
    assert result == [newest, middle, oldest]


def test_get_datapoint_newest_maximum():
    now = datetime(2023, 5, 1, tzinfo=timezone.utc)
    older = Datapoint(timestamp=now - timedelta(minutes=5), maximum=7.0)
    newer = Datapoint(timestamp=now, maximum=3.0)
    data = CloudwatchData(metric="m", points=[older, newer])
    assert get_datapoint(data, "Maximum") == (3.0, now)


def test_get_datapoint_average():
    now = datetime(2023, 5, 1, tzinfo=timezone.utc)
    points = [
        Datapoint(timestamp=now - timedelta(minutes=1), average=2.0),
        Datapoint(timestamp=now, average=4.0),
    ]
    assert get_datapoint(CloudwatchData(metric="m", points=points), "Average") == (3.0, now)


def test_get_datapoint_percentile():
    now = datetime(2023, 5, 1, tzinfo=timezone.utc)
    points = [Datapoint(timestamp=now, extended_statistics={"p99": 42.0})]
    assert get_datapoint(CloudwatchData(metric="m", points=points), "p99") == (42.0, now)


def test_get_datapoint_no_points():
    assert get_datapoint(CloudwatchData(metric="m"), "Sum") == (None, None)


def test_get_datapoint_invalid_statistic():
    points = [Datapoint(timestamp=datetime(2023, 5, 1, tzinfo=timezone.utc), sum=1.0)]
    with pytest.raises(InvalidStatisticError):
        get_datapoint(CloudwatchData(metric="m", points=points), "p101")


def test_create_prometheus_labels():
    context = JobContext(region="eu-west-1", account_id="1", custom_tags=[Tag(key="Team", value="a")])
    cwd = CloudwatchData(
        id="arn:r",
        dimensions=[Dimension(name="InstanceId", value="i-1")],
        tags=[Tag(key="Env", value="prod")],
    )
    labels = create_prometheus_labels(context, cwd, False, new_nop_logger())
    assert labels == {
        "name": "arn:r",
        "region": "eu-west-1",
        "account_id": "1",
        "dimension_InstanceId": "i-1",
        "custom_tag_Team": "a",
        "tag_Env": "prod",
    }


def test_record_labels_for_metric_merges():
    observed = {"m": {"a"}}
    result = record_labels_for_metric("m", {"b": "1", "a": "2"}, observed)
    assert result == {"m": {"a", "b"}}


def _m(name, labels, value=None):
    return PrometheusMetric(name=name, labels=labels, value=value)


def _key(metric):
    return (metric.name, sorted(metric.labels.items()), metric.value)


@pytest.mark.parametrize(
    "metrics, observed, expected",
    [
        (
            [_m("metric1", {"label1": "value1"}, 1.0), _m("metric1", {"label2": "value2"}, 2.0), _m("metric1", {}, 3.0)],
            {"metric1": {"label1", "label2", "label3"}},
            [
                _m("metric1", {"label1": "value1", "label2": "", "label3": ""}, 1.0),
                _m("metric1", {"label1": "", "label3": "", "label2": "value2"}, 2.0),
                _m("metric1", {"label1": "", "label2": "", "label3": ""}, 3.0),
            ],
        ),
        (
            [_m("metric1", {"label1": "value1"}), _m("metric1", {"label1": "value1"})],
            {},
            [_m("metric1", {"label1": "value1"})],
        ),
        (
            [
                _m("metric1", {"label1": "value1", "label2": "value2"}),
                _m("metric1", {"label2": "value2", "label1": "value1"}),
            ],
            {},
            [_m("metric1", {"label1": "value1", "label2": "value2"})],
        ),
        (
            [_m("metric1", {"label1": "value1"}), _m("metric1", {"label2": "value2"})],
            {},
            [_m("metric1", {"label1": "value1"}), _m("metric1", {"label2": "value2"})],
        ),
        (
            [_m("metric1", {"label1": "value1"}), _m("metric2", {"label1": "value1"})],
            {},
            [_m("metric1", {"label1": "value1"}), _m("metric2", {"label1": "value1"})],
        ),
        (
            [_m("metric1", {"label1": "value1"}), _m("metric2", {"label2": "value2"})],
            {},
            [_m("metric1", {"label1": "value1"}), _m("metric2", {"label2": "value2"})],
        ),
        (
            [
                _m("metric2", {"label2": "value2"}),
                _m("metric2", {"label1": "value1"}),
                _m("metric1", {"label1": "value1"}),
                _m("metric1", {"label1": "value1"}),
                _m("metric1", {"label1": "value1"}),
            ],
            {},
            [
                _m("metric2", {"label2": "value2"}),
                _m("metric2", {"label1": "value1"}),
                _m("metric1", {"label1": "value1"}),
            ],
        ),
    ],
)
def test_ensure_label_consistency_and_remove_duplicates(metrics, observed, expected):
    actual = ensure_label_consistency_and_remove_duplicates(metrics, observed)
    assert sorted(map(_key, actual)) == sorted(map(_key, expected))


def test_duplicates_increment_counter():
    before = DUPLICATE_METRICS_FILTERED_COUNTER.value
    result = ensure_label_consistency_and_remove_duplicates(
        [_m("dup", {"a": "1"}), _m("dup", {"a": "1"}), _m("dup", {"a": "1"})], {}
    )
    assert [_key(m) for m in result] == [_key(_m("dup", {"a": "1"}))]
    assert DUPLICATE_METRICS_FILTERED_COUNTER.value - before == 2