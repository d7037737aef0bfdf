"""Grafana Loki log store."""

from __future__ import annotations

from typing import Any

import pulumi
from pydantic import Field

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..encoding import dump_yaml
from ..pluggable import GrafanaDS, GrafanaDSItem, ScrapeTarget

HTTP_PORT = 3100
GOSSIP_PORT = 7946

CONFIG_FILE = "config.yaml"
CONFIG_PATH = f"/etc/loki/{CONFIG_FILE}"
DATA_PATH = "/data"


class LokiArgs(ComponentArgs):
    retention_period: str = Field(
        default="0s", description="Table manager retention, 0s keeps data forever"
    )


def build_config(args: LokiArgs) -> dict[str, Any]:
    """Single-binary Loki with filesystem chunks and a boltdb-shipper index."""
    retention_enabled = args.retention_period != "0s"
    return {
        "auth_enabled": False,
        "server": {
            "http_listen_port": HTTP_PORT,
        },
        "ingester": {
            "lifecycler": {
                "address": "127.0.0.1",
                "ring": {
                    "kvstore": {"store": "inmemory"},
                    "replication_factor": 1,
                },
                "final_sleep": "0s",
            },
            "chunk_idle_period": "1h",
            "max_chunk_age": "1h",
            "chunk_target_size": 1048576,
            "chunk_retain_period": "30s",
            "max_transfer_retries": 0,
        },
        "schema_config": {
            "configs": [{
                "from": "2020-10-24",
                "store": "boltdb-shipper",
                "object_store": "filesystem",
                "schema": "v11",
                "index": {"prefix": "index_", "period": "24h"},
            }],
        },
        "storage_config": {
            "boltdb_shipper": {
                "active_index_directory": f"{DATA_PATH}/boltdb-shipper-active",
                "cache_location": f"{DATA_PATH}/boltdb-shipper-cache",
                "cache_ttl": "24h",
                "shared_store": "filesystem",
            },
            "filesystem": {"directory": f"{DATA_PATH}/chunks"},
        },
        "compactor": {
            "working_directory": f"{DATA_PATH}/boltdb-shipper-compactor",
            "shared_store": "filesystem",
        },
        "limits_config": {
            "reject_old_samples": True,
            "reject_old_samples_max_age": "168h",
        },
        "chunk_store_config": {
            "max_look_back_period": args.retention_period,
        },
        "table_manager": {
            "retention_deletes_enabled": retention_enabled,
            "retention_period": args.retention_period,
        },
        "ruler": {
            "storage": {
                "type": "local",
                "local": {"directory": f"{DATA_PATH}/rules"},
            },
            "rule_path": f"{DATA_PATH}/rules-temp",
            "alertmanager_url": "http://localhost:9093",
            "ring": {"kvstore": {"store": "inmemory"}},
            "enable_api": True,
        },
    }


class Loki(ComponentResource):
    """Log store, usable as a Grafana datasource."""

    component_type = ComponentType.DATABASE
    provides = (GrafanaDS, ScrapeTarget)
    image = "grafana/loki"
    ports = {"http": HTTP_PORT, "gossip": GOSSIP_PORT}

    def __init__(
        self,
        name: str,
        args: LokiArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or LokiArgs()
        super().__init__(name, args, opts)
        self.args = args

        self.config_map = self.create_config_map(self.documents(args))
        self.workload = self._create_workload()
        self.service = self.create_service(
            [{"name": "http", "port": HTTP_PORT, "targetPort": "http"}],
            self.workload.spec.selector.match_labels,
        )

        self.datasource = GrafanaDSItem(
            name=self.name,
            type="loki",
            url=self.service_url(self.service),
        )
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    @classmethod
    def documents(cls, args: LokiArgs) -> dict[str, str]:
        return {CONFIG_FILE: dump_yaml(build_config(args))}

    def _create_workload(self):
        container = {
            "name": "loki",
            "image": f"{self.image}:{self.args.tag}",
            "args": [f"-config.file={CONFIG_PATH}"],
            "ports": [
                {"name": "http", "containerPort": HTTP_PORT},
                {"name": "gossip", "containerPort": GOSSIP_PORT},
            ],
            "readinessProbe": {"httpGet": {"port": "http", "path": "/ready"}},
            "livenessProbe": {"tcpSocket": {"port": "http"}},
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

        return self.stateless_workload(self.name, WorkloadArgs(
            name=self.name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            containers=[container],
            volumes=[
                {"name": "storage", "emptyDir": {}},
                {"name": "config", "configMap": {"name": self.config_map.metadata.name}},
            ],
        ))
