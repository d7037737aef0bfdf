"""Prometheus Alertmanager."""

from __future__ import annotations

from typing import Any

import pulumi
from pydantic import Field

from ..base import (
    ComponentArgs,
    ComponentResource,
    ComponentType,
    WorkloadArgs,
    stateful_hosts,
)
from ..encoding import dump_yaml
from ..pluggable import Notifier, ScrapeTarget

HTTP_PORT = 9093
CLUSTER_PORT = 9094

CONFIG_FILE = "alertmanager.yaml"
CONFIG_PATH = f"/etc/alertmanager/{CONFIG_FILE}"
DATA_PATH = "/data"

DEFAULT_RECEIVER = "devnull"


class AlertManagerArgs(ComponentArgs):
    replicas: int = Field(default=1, gt=0, description="Clustered alertmanager replicas")
    receivers: list[dict[str, Any]] = Field(
        default_factory=list, description="Receivers in addition to 'devnull'"
    )
    routes: list[dict[str, Any]] = Field(
        default_factory=list, description="Child routes of the root route"
    )
    inhibit_rules: list[dict[str, Any]] = Field(default_factory=list)


def build_config(args: AlertManagerArgs) -> dict[str, Any]:
    """Route everything to a receiver that drops alerts unless a route matches."""
    return {
        "global": {"resolve_timeout": "5m"},
        "route": {
            "group_by": ["alertname"],
            "group_wait": "10s",
            "group_interval": "10s",
            "repeat_interval": "1h",
            "receiver": DEFAULT_RECEIVER,
            "routes": list(args.routes),
        },
        "receivers": [{"name": DEFAULT_RECEIVER}, *args.receivers],
        "inhibit_rules": list(args.inhibit_rules),
    }


class AlertManager(ComponentResource):
    """Receives alerts and routes them to receivers.

    Every replica is exposed as a notification URL; senders are expected to
    deliver to all of them, as alertmanager deduplicates across the cluster.
    """

    component_type = ComponentType.NOTIFIER
    provides = (Notifier, ScrapeTarget)
    image = "prom/alertmanager"
    ports = {"http": HTTP_PORT, "cluster": CLUSTER_PORT}

    def __init__(
        self,
        name: str,
        args: AlertManagerArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or AlertManagerArgs()
        super().__init__(name, args, opts)
        self.args = args
        self.replicas = args.replicas

        self.config_map = self.create_config_map(self.documents(args))
        self.workload = self._create_workload()
        self.service = self.create_service(
            [
                {"name": "http", "port": HTTP_PORT, "targetPort": "http"},
                {"name": "cluster", "port": CLUSTER_PORT, "targetPort": "cluster"},
            ],
            self.workload.spec.selector.match_labels,
        )

        self.notification_urls = self.stateful_replica_urls(
            self.workload, self.replicas, HTTP_PORT
        )
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    @classmethod
    def documents(cls, args: AlertManagerArgs) -> dict[str, str]:
        return {CONFIG_FILE: dump_yaml(build_config(args))}

    def _cluster_args(self, workload_name: str) -> list[pulumi.Input[str]]:
        if self.replicas == 1:
            return []
        peers = stateful_hosts(workload_name, self.replicas)
        return [
            f"--cluster.listen-address=0.0.0.0:{CLUSTER_PORT}",
            *(pulumi.Output.concat("--cluster.peer=", peer, f":{CLUSTER_PORT}") for peer in peers),
        ]

    def _create_workload(self):
        # peers resolve through the same names the stateful template declares
        workload_name = self.name
        container = {
            "name": "alertmanager",
            "image": f"{self.image}:{self.args.tag}",
            "args": [
                f"--config.file={CONFIG_PATH}",
                f"--storage.path={DATA_PATH}",
                *self._cluster_args(workload_name),
            ],
            "ports": [
                {"name": "http", "containerPort": HTTP_PORT},
                {"name": "cluster", "containerPort": CLUSTER_PORT},
            ],
            "readinessProbe": {"httpGet": {"port": "http", "path": "/-/ready"}},
            "livenessProbe": {"httpGet": {"port": "http", "path": "/-/healthy"}},
            "volumeMounts": [
                {"name": "storage", "mountPath": DATA_PATH},
                {
                    "name": "config",
                    "mountPath": CONFIG_PATH,
                    "subPath": CONFIG_FILE,
                    "readOnly": True,
                },
            ],
        }

        return self.stateful_workload(self.name, WorkloadArgs(
            name=workload_name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            replicas=self.replicas,
            containers=[container],
            volumes=[
                {"name": "storage", "emptyDir": {}},
                {"name": "config", "configMap": {"name": self.config_map.metadata.name}},
            ],
        ))
