"""Monitoring stack components.

- **Loki**: log store
- **Tempo**: trace store
- **VictoriaMetrics**: metrics store
- **Grafana**: dashboards over the stores above
- **AlertManager**: alert routing
- **VMAlert**: alert rule evaluation
- **Nginx**: ingress controller

Usage:
    from olly.components import Loki, Grafana, GrafanaArgs

    logs = Loki("loki")
    Grafana("grafana", GrafanaArgs(datasources=[logs]))
"""

from .alertmanager import AlertManager, AlertManagerArgs
from .grafana import Grafana, GrafanaArgs
from .loki import Loki, LokiArgs
from .nginx import Nginx, NginxArgs
from .tempo import Tempo, TempoArgs
from .victoria import VictoriaMetrics, VictoriaMetricsArgs
from .vmalert import VMAlert, VMAlertArgs

# Stack configuration section -> component class
COMPONENTS = {
    "nginx": Nginx,
    "loki": Loki,
    "tempo": Tempo,
    "victoria": VictoriaMetrics,
    "grafana": Grafana,
    "alertmanager": AlertManager,
    "vmalert": VMAlert,
}

COMPONENT_ARGS = {
    "nginx": NginxArgs,
    "loki": LokiArgs,
    "tempo": TempoArgs,
    "victoria": VictoriaMetricsArgs,
    "grafana": GrafanaArgs,
    "alertmanager": AlertManagerArgs,
    "vmalert": VMAlertArgs,
}

__all__ = [
    "AlertManager",
    "AlertManagerArgs",
    "Grafana",
    "GrafanaArgs",
    "Loki",
    "LokiArgs",
    "Nginx",
    "NginxArgs",
    "Tempo",
    "TempoArgs",
    "VictoriaMetrics",
    "VictoriaMetricsArgs",
    "VMAlert",
    "VMAlertArgs",
    "COMPONENTS",
    "COMPONENT_ARGS",
]
