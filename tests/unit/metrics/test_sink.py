"""Tests for metricspine.metrics.sink - Prometheus metric sinks."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from metricspine.core.exceptions import InitializationError, ObservationError
from metricspine.metrics.sink import (
    CounterSink,
    GaugeSink,
    LabeledCounterSink,
    LabeledGaugeSink,
    MetricSink,
    create_sink,
)
from metricspine.models.metric import MetricSpec


def make_spec(
    name: str = "test_metric",
    kind: str = "gauge",
    labels: tuple[str, ...] = (),
) -> MetricSpec:
    """Create a spec with default values."""
    return MetricSpec(
        name=name,
        type=kind,
        help="test metric",
        value="value",
        labels=labels,
        database="db",
        collection="coll",
    )


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


class TestCreateSink:
    """Tests for sink variant selection and registration."""

    @pytest.mark.parametrize(
        ("kind", "labels", "expected"),
        [
            ("gauge", (), GaugeSink),
            ("counter", (), CounterSink),
            ("gauge", ("region",), LabeledGaugeSink),
            ("counter", ("region",), LabeledCounterSink),
        ],
    )
    def test_variant(
        self,
        registry: CollectorRegistry,
        kind: str,
        labels: tuple[str, ...],
        expected: type,
    ) -> None:
        sink = create_sink(make_spec(kind=kind, labels=labels), registry)

        assert isinstance(sink, expected)
        assert isinstance(sink, MetricSink)
        assert sink.name == "test_metric"

    def test_duplicate_name_raises(self, registry: CollectorRegistry) -> None:
        create_sink(make_spec(name="dup"), registry)

        with pytest.raises(InitializationError) as exc_info:
            create_sink(make_spec(name="dup", kind="counter"), registry)

        assert exc_info.value.metric == "dup"

    @pytest.mark.parametrize("name", ["not a valid name", "orders-total", "9lives", "caf\u00e9_total"])
    def test_invalid_name_raises(self, registry: CollectorRegistry, name: str) -> None:
        spec = make_spec().model_copy(update={"name": name})

        with pytest.raises(InitializationError, match="invalid metric name"):
            create_sink(spec, registry)

        assert list(registry.collect()) == []

    def test_invalid_label_name_raises(self, registry: CollectorRegistry) -> None:
        spec = make_spec(labels=("region",)).model_copy(update={"labels": ("queue:name",)})

        with pytest.raises(InitializationError, match="invalid label name"):
            create_sink(spec, registry)

    def test_colon_allowed_in_metric_name(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(name="shop:orders_total"), registry)

        assert sink.name == "shop:orders_total"

    def test_same_name_in_separate_registries(self) -> None:
        """Registration is scoped to the registry passed in."""
        create_sink(make_spec(name="shared"), CollectorRegistry())
        create_sink(make_spec(name="shared"), CollectorRegistry())


class TestApply:
    """Tests for applying observations."""

    def test_gauge_sets_latest(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(), registry)

        sink.apply(3.0)
        sink.apply(7.0)

        assert registry.get_sample_value("test_metric") == 7.0

    def test_counter_adds(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(name="orders_total", kind="counter"), registry)

        sink.apply(42.0)
        sink.apply(8.0)

        assert registry.get_sample_value("orders_total") == 50.0

    def test_counter_rejects_negative(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(name="orders_total", kind="counter"), registry)

        with pytest.raises(ObservationError):
            sink.apply(-1.0)

        assert registry.get_sample_value("orders_total") == 0.0

    def test_labeled_gauge_sets_child(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(labels=("region", "zone")), registry)

        sink.apply(7.0, ("us-east", "a"))
        sink.apply(2.0, ("eu-west", "b"))

        assert registry.get_sample_value("test_metric", {"region": "us-east", "zone": "a"}) == 7.0
        assert registry.get_sample_value("test_metric", {"region": "eu-west", "zone": "b"}) == 2.0

    def test_labeled_counter_adds_to_child(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(name="events_total", kind="counter", labels=("type",)), registry)

        sink.apply(1.0, ("insert",))
        sink.apply(2.0, ("insert",))
        sink.apply(5.0, ("delete",))

        assert registry.get_sample_value("events_total", {"type": "insert"}) == 3.0
        assert registry.get_sample_value("events_total", {"type": "delete"}) == 5.0

    def test_labeled_counter_rejects_negative(self, registry: CollectorRegistry) -> None:
        sink = create_sink(make_spec(name="events_total", kind="counter", labels=("type",)), registry)

        with pytest.raises(ObservationError):
            sink.apply(-2.0, ("insert",))

    @pytest.mark.parametrize(
        ("labels", "supplied"),
        [((), ("extra",)), (("region",), ()), (("region",), ("a", "b"))],
    )
    def test_label_count_mismatch_is_programming_error(
        self,
        registry: CollectorRegistry,
        labels: tuple[str, ...],
        supplied: tuple[str, ...],
    ) -> None:
        sink = create_sink(make_spec(labels=labels), registry)

        with pytest.raises(RuntimeError, match="label values"):
            sink.apply(1.0, supplied)
