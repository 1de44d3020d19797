"""Render samples in the Prometheus text exposition format.

Output for one metric looks like this:

  # HELP unifi_device_up 1 if the device is online, 0 otherwise
  # TYPE unifi_device_up gauge
  unifi_device_up{site="default",device_id="6f1c...",device="Lobby AP"} 1.0
  unifi_device_up{site="default",device_id="a9d2...",device="Garage"} 0.0

The text itself is produced by prometheus_client: every scrape gets its
own throwaway CollectorRegistry holding a single collector that yields
the families built here, and generate_latest() serializes it.  That
gives us the library's quoting rules for label values (backslash,
double quote and newline are escaped) for free.

What prometheus_client does NOT check is whether a sample set is
coherent, because normally it builds the samples itself.  We build them
from controller data, so render() validates first:

  - metric and label names are legal
  - label names don't use the reserved "__" prefix
  - label values are strings that encode as UTF-8
  - counters end in _total
  - every sample of one name has the same type and the same label keys
  - no (name, label values) pair appears twice

Any violation is a RenderFailure.  It means the translator has a bug, and
the scrape fails rather than shipping output Prometheus would reject.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from unifi_exporter.core.errors import RenderFailure
from unifi_exporter.models.sample import MetricSample

# The exposition format always carries version=0.0.4; prometheus_client's
# own CONTENT_TYPE_LATEST moved on to newer format versions.
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _family_name(sample: MetricSample) -> str:
    if sample.type == "counter":
        return sample.name[: -len("_total")]
    return sample.name


def _check_sample(sample: MetricSample) -> None:
    if not _METRIC_NAME_RE.match(sample.name):
        raise RenderFailure(f"invalid metric name {sample.name!r}")
    if sample.type not in ("counter", "gauge"):
        raise RenderFailure(f"{sample.name}: unsupported metric type {sample.type!r}")
    if sample.type == "counter" and not sample.name.endswith("_total"):
        raise RenderFailure(f"counter {sample.name!r} must end in _total")

    keys = sample.label_keys
    if len(set(keys)) != len(keys):
        raise RenderFailure(f"{sample.name}: repeated label key in {keys}")
    for key in keys:
        if not _LABEL_NAME_RE.match(key) or key.startswith("__"):
            raise RenderFailure(f"{sample.name}: invalid label name {key!r}")
    for value in sample.label_values:
        if not isinstance(value, str):
            raise RenderFailure(f"{sample.name}: label value {value!r} is not a string")
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise RenderFailure(f"{sample.name}: label value {value!a} is not valid UTF-8") from None


def group_samples(samples: Iterable[MetricSample]) -> dict[str, list[MetricSample]]:
    """Group samples by metric name, validating as we go.

    Groups keep first-seen order, and samples keep insertion order within
    a group, so rendering is reproducible.
    """
    groups: dict[str, list[MetricSample]] = {}
    families: dict[str, str] = {}
    seen: set[tuple[str, tuple[str, ...]]] = set()

    for sample in samples:
        _check_sample(sample)

        group = groups.get(sample.name)
        if group is None:
            family = _family_name(sample)
            if family in families:
                raise RenderFailure(
                    f"{sample.name} and {families[family]} collide as family {family!r}"
                )
            families[family] = sample.name
            group = groups[sample.name] = []
        else:
            first = group[0]
            if sample.type != first.type:
                raise RenderFailure(
                    f"{sample.name}: mixed types {first.type!r} and {sample.type!r}"
                )
            if sample.label_keys != first.label_keys:
                raise RenderFailure(
                    f"{sample.name}: label keys {sample.label_keys} "
                    f"differ from {first.label_keys}"
                )

        identity = (sample.name, sample.label_values)
        if identity in seen:
            raise RenderFailure(f"duplicate series {sample.name}{dict(sample.labels)}")
        seen.add(identity)
        group.append(sample)

    return groups


def _build_family(name: str, group: Sequence[MetricSample]) -> Metric:
    first = group[0]
    help_text = first.help or name
    labels = list(first.label_keys)
    family: Metric
    try:
        if first.type == "counter":
            family = CounterMetricFamily(name, help_text, labels=labels)
        else:
            family = GaugeMetricFamily(name, help_text, labels=labels)
    except ValueError as exc:
        raise RenderFailure(f"{name}: {exc}") from exc
    for sample in group:
        family.add_metric(list(sample.label_values), sample.value)
    return family


class _SampleCollector:
    """A one-shot collector over an already-validated sample set."""

    def __init__(self, groups: dict[str, list[MetricSample]]) -> None:
        self._groups = groups

    def collect(self) -> Iterator[Metric]:
        for name, group in self._groups.items():
            yield _build_family(name, group)


def render(samples: Iterable[MetricSample]) -> str:
    """Serialize samples to exposition text.

    An empty sample set renders to an empty string, which is a valid
    (if uninteresting) scrape body.

    Raises:
        RenderFailure: the sample set violates an exposition-format rule
    """
    groups = group_samples(samples)
    if not groups:
        return ""

    registry = CollectorRegistry(auto_describe=False)
    registry.register(_SampleCollector(groups))  # type: ignore[arg-type]
    try:
        return generate_latest(registry).decode("utf-8")
    except UnicodeEncodeError as exc:
        raise RenderFailure(f"exposition text is not valid UTF-8: {exc.reason}") from exc
