"""VictoriaMetrics single-node metrics store."""

from __future__ import annotations

import pulumi
from pydantic import Field

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..pluggable import GrafanaDS, GrafanaDSItem, Prometheus, PrometheusItem, ScrapeTarget

HTTP_PORT = 8428
DATA_PATH = "/victoria-metrics-data"


class VictoriaMetricsArgs(ComponentArgs):
    retention_months: int = Field(default=12, gt=0, description="Retention period in months")


class VictoriaMetrics(ComponentResource):
    """Metrics store with Prometheus-compatible read and write endpoints."""

    component_type = ComponentType.DATABASE
    provides = (GrafanaDS, Prometheus, ScrapeTarget)
    image = "victoriametrics/victoria-metrics"
    ports = {"http": HTTP_PORT}

    def __init__(
        self,
        name: str,
        args: VictoriaMetricsArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or VictoriaMetricsArgs()
        super().__init__(name, args, opts)
        self.args = args

        self.workload = self._create_workload()
        self.service = self.create_service(
            [{"name": "http", "port": HTTP_PORT, "targetPort": "http"}],
            self.workload.spec.selector.match_labels,
        )

        url = self.service_url(self.service)
        self.prometheus = PrometheusItem(remote_read_url=url, remote_write_url=url)
        self.datasource = GrafanaDSItem(name=self.name, type="prometheus", url=url)
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    def _create_workload(self):
        container = {
            "name": "victoria",
            "image": f"{self.image}:{self.args.tag}",
            "ports": [{"name": "http", "containerPort": HTTP_PORT}],
            "args": [
                f"--retentionPeriod={self.args.retention_months}",
                "-loggerFormat=json",
                f"--storageDataPath={DATA_PATH}",
            ],
            "readinessProbe": {"httpGet": {"port": "http", "path": "/health"}},
            "livenessProbe": {"tcpSocket": {"port": "http"}},
            "volumeMounts": [{"name": "storage", "mountPath": DATA_PATH}],
        }

        return self.stateful_workload(self.name, WorkloadArgs(
            name=self.name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            containers=[container],
            volumes=[{"name": "storage", "emptyDir": {}}],
        ))
