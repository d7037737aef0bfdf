"""Capabilities components expose to each other.

A capability is a single attribute holding runtime-derived values (URLs,
ports, service names). Components satisfy a capability structurally: any
object carrying the attribute qualifies, so dependents never import the
concrete component that produces the value.

- **ScrapeTarget**: ``metrics`` - services that expose Prometheus metrics
- **Notifier**: ``notification_urls`` - endpoints that accept alerts
- **GrafanaDS**: ``datasource`` - how Grafana should query the component
- **Prometheus**: ``prometheus`` - remote read/write endpoints
- **IngressController**: ``ingress_class`` - class served by the controller
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar, runtime_checkable

import pulumi

from .errors import CapabilityError

T = TypeVar("T")


@dataclass(frozen=True)
class ScrapeTargetItem:
    """Service endpoint metrics can be collected from."""

    endpoint: pulumi.Input[str]
    port: pulumi.Input[str]
    namespace: pulumi.Input[str]


@dataclass(frozen=True)
class GrafanaDSItem:
    """Grafana datasource definition."""

    name: str
    type: str
    url: pulumi.Input[str]
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PrometheusItem:
    """Prometheus-compatible remote read/write endpoints (may be equal)."""

    remote_read_url: pulumi.Input[str]
    remote_write_url: pulumi.Input[str]


@runtime_checkable
class ScrapeTarget(Protocol):
    """Component can be scraped to collect prometheus metrics."""

    metrics: list[ScrapeTargetItem]


@runtime_checkable
class Notifier(Protocol):
    """Component exposes urls for receiving notifications."""

    notification_urls: list[pulumi.Input[str]]


@runtime_checkable
class GrafanaDS(Protocol):
    """Component can be used to create a grafana datasource."""

    datasource: GrafanaDSItem


@runtime_checkable
class Prometheus(Protocol):
    """Component exposes prometheus-compatible read/write endpoints."""

    prometheus: PrometheusItem


@runtime_checkable
class IngressController(Protocol):
    """Component serves Ingress objects of a given class."""

    ingress_class: str


def require(capability: type[T], value: Any, field_name: str) -> T:
    """Return ``value`` if it provides ``capability``, raise otherwise."""
    if not isinstance(value, capability):
        raise CapabilityError(capability.__name__, field_name, value)
    return value


def capability_names(value: Any) -> list[str]:
    """Names of the capabilities ``value`` provides, in a fixed order."""
    return [
        c.__name__
        for c in (ScrapeTarget, Notifier, GrafanaDS, Prometheus, IngressController)
        if isinstance(value, c)
    ]
