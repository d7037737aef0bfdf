"""olly - Pulumi components for a Kubernetes monitoring stack.

Components expose capabilities (see ``olly.pluggable``) that other
components consume as constructor arguments:

    metrics = VictoriaMetrics("victoria")
    alertmanager = AlertManager("alertmanager")
    VMAlert("vmalert", VMAlertArgs(notifiers=[alertmanager], storage=metrics))
"""

from .base import (
    ComponentArgs,
    ComponentResource,
    ComponentType,
    WorkloadArgs,
    component_labels,
    replica_hosts,
)
from .errors import CapabilityError, OllyError
from .pluggable import (
    GrafanaDS,
    GrafanaDSItem,
    IngressController,
    Notifier,
    Prometheus,
    PrometheusItem,
    ScrapeTarget,
    ScrapeTargetItem,
)

__version__ = "0.1.0"

__all__ = [
    "ComponentArgs",
    "ComponentResource",
    "ComponentType",
    "WorkloadArgs",
    "component_labels",
    "replica_hosts",
    "CapabilityError",
    "OllyError",
    "GrafanaDS",
    "GrafanaDSItem",
    "IngressController",
    "Notifier",
    "Prometheus",
    "PrometheusItem",
    "ScrapeTarget",
    "ScrapeTargetItem",
]
