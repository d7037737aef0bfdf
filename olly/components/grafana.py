"""Grafana dashboard UI."""

from __future__ import annotations

from typing import Any

import pulumi
import pulumi_kubernetes as k8s
from pydantic import Field, field_validator

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..encoding import dump_ini, dump_yaml
from ..pluggable import GrafanaDS, GrafanaDSItem, IngressController, ScrapeTarget, require

HTTP_PORT = 3000

INI_FILE = "grafana.ini"
INI_PATH = f"/etc/grafana/{INI_FILE}"
DATASOURCES_FILE = "datasources.yaml"
DATASOURCES_PATH = f"/etc/grafana/provisioning/datasources/{DATASOURCES_FILE}"
DATA_PATH = "/var/lib/grafana"


class GrafanaArgs(ComponentArgs):
    datasources: list[GrafanaDS] = Field(
        default_factory=list, description="Components provisioned as datasources"
    )
    ingress: IngressController | None = Field(
        default=None, description="Controller that exposes the UI outside the cluster"
    )
    hostname: str = "grafana.domain.tld"
    external: bool = Field(
        default=False, description="UI is served at hostname, implied by an ingress"
    )
    admin_user: str = "admin"
    admin_password: str = "admin"

    @field_validator("datasources", mode="before")
    @classmethod
    def _require_datasources(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [require(GrafanaDS, v, f"datasources[{i}]") for i, v in enumerate(value)]
        return value

    @field_validator("ingress", mode="before")
    @classmethod
    def _require_ingress(cls, value: Any) -> Any:
        if value is None:
            return value
        return require(IngressController, value, "ingress")


# https://grafana.com/docs/grafana/latest/setup-grafana/configure-grafana/
def build_config(args: GrafanaArgs) -> dict[str, Any]:
    external = args.external or args.ingress is not None
    root_url = f"http://{args.hostname}/" if external else f"http://localhost:{HTTP_PORT}"
    return {
        "analytics": {
            "reporting_enabled": False,
        },
        "server": {
            "root_url": root_url,
            "router_logging": False,
            "enable_gzip": True,
        },
        "security": {
            "cookie_secure": True,
            "disable_brute_force_login_protection": True,
            "x_xss_protection": True,
            "admin_user": args.admin_user,
            "admin_password": args.admin_password,
        },
        "dataproxy": {
            "timeout": 300,
            "send_user_header": True,
        },
        "log": {
            "mode": "console",
            "console": {"level": "warn", "format": "text"},
        },
        "auth": {
            "disable_login_form": True,
            "disable_signout_menu": True,
            "anonymous": {"enabled": True, "org_role": "Admin"},
        },
        "panels": {
            "enable_alpha": True,
        },
        "tracing": {
            "jaeger": {
                "address": "localhost:6831",
                "sampler_type": "const",
                "sampler_param": "1",
            },
        },
    }


def build_datasources(items: list[GrafanaDSItem], urls: list[str]) -> dict[str, Any]:
    """Datasource provisioning document, one entry per item in order."""
    return {
        "apiVersion": 1,
        "datasources": [
            {
                "name": item.name,
                "type": item.type,
                "access": "proxy",
                "editable": False,
                "jsonData": item.data,
                "url": url,
            }
            for item, url in zip(items, urls)
        ],
    }


class Grafana(ComponentResource):
    """Dashboard UI provisioned with the datasources of other components."""

    component_type = ComponentType.DASHBOARD
    provides = (ScrapeTarget,)
    image = "grafana/grafana"
    ports = {"http": HTTP_PORT}

    def __init__(
        self,
        name: str,
        args: GrafanaArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or GrafanaArgs()
        super().__init__(name, args, opts)
        self.args = args

        self.config_map = self.create_config_map({
            **self.documents(args),
            DATASOURCES_FILE: self._datasources_document(),
        })
        self.workload = self._create_workload()
        self.service = self.create_service(
            [{"name": "http", "port": HTTP_PORT, "targetPort": "http"}],
            self.workload.spec.selector.match_labels,
        )
        self.ingress = self._create_ingress() if args.ingress is not None else None
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    @classmethod
    def documents(cls, args: GrafanaArgs) -> dict[str, str]:
        return {INI_FILE: dump_ini(build_config(args))}

    def _datasources_document(self) -> pulumi.Output[str]:
        items = [c.datasource for c in self.args.datasources]
        return pulumi.Output.all(*[item.url for item in items]).apply(
            lambda urls: dump_yaml(build_datasources(items, urls))
        )

    def _create_workload(self):
        container = {
            "name": "grafana",
            "image": f"{self.image}:{self.args.tag}",
            "ports": [{"name": "http", "containerPort": HTTP_PORT}],
            "readinessProbe": {"httpGet": {"port": "http", "path": "/api/health"}},
            "livenessProbe": {"tcpSocket": {"port": "http"}},
            "volumeMounts": [
                {"name": "storage", "mountPath": DATA_PATH},
                {
                    "name": "config",
                    "mountPath": DATASOURCES_PATH,
                    "subPath": DATASOURCES_FILE,
                    "readOnly": True,
                },
                {
                    "name": "config",
                    "mountPath": INI_PATH,
                    "subPath": INI_FILE,
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

    def _create_ingress(self) -> k8s.networking.v1.Ingress:
        return k8s.networking.v1.Ingress(
            self.name,
            metadata={
                "name": self.name,
                "namespace": self.service.metadata.namespace,
                "labels": self.labels,
            },
            spec={
                "ingressClassName": self.args.ingress.ingress_class,
                "rules": [{
                    "host": self.args.hostname,
                    "http": {
                        "paths": [{
                            "path": "/",
                            "pathType": "Prefix",
                            "backend": {
                                "service": {
                                    "name": self.service.metadata.name,
                                    "port": {"name": "http"},
                                },
                            },
                        }],
                    },
                }],
            },
            opts=self._child_opts(),
        )
