"""Composition of the monitoring stack.

Components receive their dependencies as constructor arguments, so they
are created in dependency order: ingress, stores, dashboard, alerting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pulumi

from .base import ComponentResource
from .components import (
    AlertManager,
    AlertManagerArgs,
    Grafana,
    GrafanaArgs,
    Loki,
    LokiArgs,
    Nginx,
    NginxArgs,
    Tempo,
    TempoArgs,
    VictoriaMetrics,
    VictoriaMetricsArgs,
    VMAlert,
    VMAlertArgs,
)
from .config import StackConfig, stack_config_from_pulumi
from .pluggable import ScrapeTargetItem, capability_names


@dataclass
class Stack:
    """Components of a deployed monitoring stack."""

    ingress: Nginx
    logs: Loki
    traces: Tempo
    metrics: VictoriaMetrics
    grafana: Grafana
    alertmanager: AlertManager
    alert: VMAlert

    def components(self) -> list[ComponentResource]:
        return [
            self.ingress,
            self.logs,
            self.traces,
            self.metrics,
            self.grafana,
            self.alertmanager,
            self.alert,
        ]

    def scrape_targets(self) -> list[ScrapeTargetItem]:
        """Scrape targets of every component, in creation order."""
        return [item for c in self.components() for item in c.metrics]


def build_stack(config: StackConfig) -> Stack:
    """Instantiate every component of the stack."""
    # setup ingress controller
    ingress = Nginx("nginx", config.args_for("nginx", NginxArgs))

    # create databases
    logs = Loki("loki", config.args_for("loki", LokiArgs))
    traces = Tempo("tempo", config.args_for("tempo", TempoArgs))
    metrics = VictoriaMetrics("victoria", config.args_for("victoria", VictoriaMetricsArgs))

    # launch UI
    grafana = Grafana("grafana", config.args_for(
        "grafana", GrafanaArgs,
        datasources=[logs, traces, metrics],
        ingress=ingress if config.grafana.external else None,
    ))

    # create alerting layer
    alertmanager = AlertManager("alertmanager", config.args_for("alertmanager", AlertManagerArgs))
    alert = VMAlert("vmalert", config.args_for(
        "vmalert", VMAlertArgs,
        notifiers=[alertmanager],
        storage=metrics,
    ))

    return Stack(
        ingress=ingress,
        logs=logs,
        traces=traces,
        metrics=metrics,
        grafana=grafana,
        alertmanager=alertmanager,
        alert=alert,
    )


def _scrape_target_output(item: ScrapeTargetItem) -> dict[str, Any]:
    return {"endpoint": item.endpoint, "port": item.port, "namespace": item.namespace}


def main() -> None:
    """Pulumi program entry point."""
    config = stack_config_from_pulumi()
    stack = build_stack(config)

    for component in stack.components():
        pulumi.log.info(f"{component.name}: {', '.join(capability_names(component))}")

    pulumi.export("datasources", {
        c.datasource.name: c.datasource.url for c in (stack.logs, stack.traces, stack.metrics)
    })
    pulumi.export("prometheus_read_url", stack.metrics.prometheus.remote_read_url)
    pulumi.export("notification_urls", stack.alertmanager.notification_urls)
    pulumi.export("scrape_targets", [_scrape_target_output(t) for t in stack.scrape_targets()])
    pulumi.export("grafana_host", config.grafana.hostname)
