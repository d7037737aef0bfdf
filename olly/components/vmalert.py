"""vmalert rule evaluator."""

from __future__ import annotations

from typing import Any

import pulumi
from pydantic import Field, field_validator

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..encoding import dump_yaml
from ..pluggable import Notifier, Prometheus, ScrapeTarget, require

HTTP_PORT = 8880

CONFIG_FILE = "alerts.yaml"
RULES_DIR = "/etc/vmalert"


class VMAlertArgs(ComponentArgs):
    notifiers: list[Notifier] = Field(min_length=1, description="Where alerts are sent")
    storage: Prometheus = Field(description="Queried for rules, stores alert state")
    alerts: list[dict[str, Any]] = Field(
        default_factory=list, description="Rule groups, as in a vmalert rules file"
    )
    evaluation_interval: str = "1m"

    @field_validator("notifiers", mode="before")
    @classmethod
    def _require_notifiers(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        notifiers = [require(Notifier, v, f"notifiers[{i}]") for i, v in enumerate(value)]
        if notifiers and not any(n.notification_urls for n in notifiers):
            raise ValueError("notifiers expose no notification URLs")
        return notifiers

    @field_validator("storage", mode="before")
    @classmethod
    def _require_storage(cls, value: Any) -> Any:
        return require(Prometheus, value, "storage")


def build_rules(alerts: list[dict[str, Any]]) -> dict[str, Any]:
    return {"groups": list(alerts)}


def notifier_flags(notifiers: list[Notifier]) -> list[pulumi.Output[str]]:
    """One ``-notifier.url`` flag per URL, in notifier order."""
    return [
        pulumi.Output.concat("-notifier.url=", url)
        for notifier in notifiers
        for url in notifier.notification_urls
    ]


class VMAlert(ComponentResource):
    """Evaluates alerting rules against the metrics store.

    Notifications are sent to every URL of every notifier at the same time.
    """

    component_type = ComponentType.NOTIFIER
    provides = (ScrapeTarget,)
    image = "victoriametrics/vmalert"
    ports = {"http": HTTP_PORT}

    def __init__(
        self,
        name: str,
        args: VMAlertArgs,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(name, args, opts)
        self.args = args

        self.config_map = self.create_config_map(self.documents(args))
        self.workload = self._create_workload()
        self.service = self.create_service(
            [{"name": "http", "port": HTTP_PORT, "targetPort": "http"}],
            self.workload.spec.selector.match_labels,
        )
        self.metrics = [self.scrape_target(self.service)]

        self.register_outputs({})

    @classmethod
    def documents(cls, args: VMAlertArgs) -> dict[str, str]:
        return {CONFIG_FILE: dump_yaml(build_rules(args.alerts))}

    def _create_workload(self):
        prometheus = self.args.storage.prometheus

        container = {
            "name": "vmalert",
            "image": f"{self.image}:{self.args.tag}",
            "args": [
                *notifier_flags(self.args.notifiers),
                pulumi.Output.concat("-datasource.url=", prometheus.remote_read_url),
                pulumi.Output.concat("-remoteRead.url=", prometheus.remote_read_url),
                pulumi.Output.concat("-remoteWrite.url=", prometheus.remote_write_url),
                f"-rule={RULES_DIR}/*.yaml",
                "-rule.validateExpressions=true",
                "-rule.validateTemplates=true",
                f"-evaluationInterval={self.args.evaluation_interval}",
                "-loggerFormat=json",
            ],
            "ports": [{"name": "http", "containerPort": HTTP_PORT}],
            "readinessProbe": {"httpGet": {"port": "http", "path": "/health"}},
            "livenessProbe": {"tcpSocket": {"port": "http"}},
            "volumeMounts": [{
                "name": "config",
                "mountPath": f"{RULES_DIR}/{CONFIG_FILE}",
                "subPath": CONFIG_FILE,
                "readOnly": True,
            }],
        }

        return self.stateless_workload(self.name, WorkloadArgs(
            name=self.name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            containers=[container],
            volumes=[
                {"name": "config", "configMap": {"name": self.config_map.metadata.name}},
            ],
        ))
