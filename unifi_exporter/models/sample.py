from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

MetricType = Literal["counter", "gauge"]


@dataclass(frozen=True, slots=True)
class MetricSample:
    """One line of exposition output before it is rendered.

    labels is an ordered tuple of (key, value) pairs so the rendered
    label order is the order the translator chose.  Counter names carry
    the conventional _total suffix.
    """

    name: str
    labels: tuple[tuple[str, str], ...]
    value: float
    type: MetricType
    help: str = ""

    @property
    def label_keys(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.labels)

    @property
    def label_values(self) -> tuple[str, ...]:
        return tuple(value for _, value in self.labels)
