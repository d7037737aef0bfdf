"""Grafana Tempo trace store with the Jaeger query frontend."""

from __future__ import annotations

from typing import Any

import pulumi
from pydantic import Field

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..encoding import dump_yaml
from ..pluggable import GrafanaDS, GrafanaDSItem, ScrapeTarget

HTTP_PORT = 3100
OTLP_GRPC_PORT = 55680
QUERY_PORT = 16686

TEMPO_CONFIG_FILE = "tempo.yaml"
QUERY_CONFIG_FILE = "query.yaml"
CONFIG_DIR = "/etc/tempo"
DATA_PATH = "/var/tempo"


class TempoArgs(ComponentArgs):
    block_retention: str = Field(default="1h", description="How long trace blocks are kept")


def build_config(args: TempoArgs) -> dict[str, Any]:
    return {
        "auth_enabled": False,
        "server": {
            "http_listen_port": HTTP_PORT,
        },
        "distributor": {
            "receivers": {
                "otlp": {
                    "protocols": {
                        "grpc": {"endpoint": f"0.0.0.0:{OTLP_GRPC_PORT}"},
                    },
                },
            },
        },
        "ingester": {
            "trace_idle_period": "10s",
            "traces_per_block": 100,
            "max_block_duration": "5m",
        },
        "compactor": {
            "compaction": {
                "compaction_window": "1h",
                "max_compaction_objects": 1000000,
                "block_retention": args.block_retention,
                "compacted_block_retention": "10m",
            },
        },
        "storage": {
            "trace": {
                "backend": "local",
                "wal": {
                    "path": f"{DATA_PATH}/wal",
                    "bloom_filter_false_positive": 0.05,
                    "index_downsample": 10,
                },
                "local": {"path": f"{DATA_PATH}/blocks"},
                "pool": {"max_workers": 100, "queue_depth": 10000},
            },
        },
    }


def build_query_config() -> dict[str, Any]:
    # tempo-query proxies Jaeger UI requests to tempo's http port
    return {"backend": f"localhost:{HTTP_PORT}"}


class Tempo(ComponentResource):
    """Trace store, usable as a Grafana datasource."""

    component_type = ComponentType.DATABASE
    provides = (GrafanaDS, ScrapeTarget)
    image = "grafana/tempo"
    ports = {"http-query": QUERY_PORT, "grpc-otlp": OTLP_GRPC_PORT}

    def __init__(
        self,
        name: str,
        args: TempoArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or TempoArgs()
        super().__init__(name, args, opts)
        self.args = args

        self.config_map = self.create_config_map(self.documents(args))
        self.workload = self._create_workload()
        # NOTE: the query port goes first, the datasource URL is built from it
        self.service = self.create_service(
            [
                {"name": "http-query", "port": QUERY_PORT, "targetPort": "http-query"},
                {"name": "grpc-otlp", "port": OTLP_GRPC_PORT, "targetPort": "grpc-otlp"},
            ],
            self.workload.spec.selector.match_labels,
        )

        self.datasource = GrafanaDSItem(
            name=self.name,
            type="tempo",
            url=self.service_url(self.service),
        )
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    @classmethod
    def documents(cls, args: TempoArgs) -> dict[str, str]:
        return {
            TEMPO_CONFIG_FILE: dump_yaml(build_config(args)),
            QUERY_CONFIG_FILE: dump_yaml(build_query_config()),
        }

    def _config_mount(self, filename: str) -> dict[str, Any]:
        return {
            "name": "config",
            "mountPath": f"{CONFIG_DIR}/{filename}",
            "subPath": filename,
            "readOnly": True,
        }

    def _create_workload(self):
        tempo = {
            "name": "tempo",
            "image": f"{self.image}:{self.args.tag}",
            "args": [f"-config.file={CONFIG_DIR}/{TEMPO_CONFIG_FILE}"],
            "ports": [{"name": "grpc-otlp", "containerPort": OTLP_GRPC_PORT}],
            "volumeMounts": [
                {"name": "storage", "mountPath": DATA_PATH},
                self._config_mount(TEMPO_CONFIG_FILE),
            ],
        }
        query = {
            "name": "query",
            "image": f"grafana/tempo-query:{self.args.tag}",
            "args": [f"--grpc-storage-plugin.configuration-file={CONFIG_DIR}/{QUERY_CONFIG_FILE}"],
            "ports": [{"name": "http-query", "containerPort": QUERY_PORT}],
            "volumeMounts": [
                {"name": "storage", "mountPath": DATA_PATH},
                self._config_mount(QUERY_CONFIG_FILE),
            ],
        }

        return self.stateless_workload(self.name, WorkloadArgs(
            name=self.name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            containers=[tempo, query],
            volumes=[
                {"name": "storage", "emptyDir": {}},
                {"name": "config", "configMap": {"name": self.config_map.metadata.name}},
            ],
        ))
