"""Component base class and shared workload templates.

Every component is a Pulumi ComponentResource with a fixed identity (type and
instance name) and a label set derived from it. Components build their
workloads from two templates:

- stateless: a Deployment with rolling updates
- stateful: a StatefulSet with parallel pod management and a headless
  discovery service, so each replica is addressable as
  ``<workload>-<index>.<workload>-headless``

Both templates create a service account when none is given and spread pods
across hosts with a preferred (advisory) anti-affinity term.

The ``*_spec`` functions are pure and build the manifests the templates
declare.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

import pulumi
import pulumi_kubernetes as k8s
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .pluggable import ScrapeTargetItem

LABEL_NAME = "app.kubernetes.io/name"
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_COMPONENT = "app.kubernetes.io/component"

HOSTNAME_TOPOLOGY_KEY = "kubernetes.io/hostname"


class ComponentType(str, Enum):
    """Role a component plays in the stack."""

    DATABASE = "database"
    NOTIFIER = "notifier"
    COLLECTOR = "collector"
    DASHBOARD = "dashboard"
    INGRESS = "ingress"


class ComponentArgs(BaseModel):
    """Arguments shared by every component."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    namespace: str = Field(default="default", description="Kubernetes namespace")
    tag: str = Field(default="latest", description="Container image tag")


class WorkloadArgs(BaseModel):
    """Input to the stateless and stateful workload templates."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    namespace: str = "default"
    labels: dict[str, Any]
    label_selector: dict[str, Any]
    containers: list[dict[str, Any]] = Field(min_length=1)
    replicas: int = Field(default=1, gt=0)
    volumes: list[dict[str, Any]] = Field(default_factory=list)
    service_account_name: Any = None

    @field_validator("replicas", mode="before")
    @classmethod
    def _unset_replicas(cls, value: Any) -> Any:
        # None means "not set"; zero and negatives are rejected by gt=0
        return 1 if value is None else value


def component_labels(component_type: ComponentType, name: str) -> dict[str, str]:
    """Label set identifying a component instance."""
    return {
        LABEL_NAME: component_type.value,
        LABEL_INSTANCE: name,
        LABEL_COMPONENT: component_type.value,
    }


def headless_service_name(name: str) -> str:
    return f"{name}-headless"


def pod_anti_affinity(selector: dict[str, Any]) -> dict[str, Any]:
    """Prefer scheduling pods matching ``selector`` on different hosts."""
    return {
        "podAntiAffinity": {
            "preferredDuringSchedulingIgnoredDuringExecution": [{
                "weight": 1,
                "podAffinityTerm": {
                    "topologyKey": HOSTNAME_TOPOLOGY_KEY,
                    "labelSelector": {"matchLabels": selector},
                },
            }],
        },
    }


def _pod_template(args: WorkloadArgs, service_account_name: Any) -> dict[str, Any]:
    return {
        "metadata": {"labels": {**args.labels, **args.label_selector}},
        "spec": {
            "serviceAccountName": service_account_name,
            "containers": args.containers,
            "affinity": pod_anti_affinity(args.label_selector),
            "volumes": args.volumes,
        },
    }


def deployment_spec(args: WorkloadArgs, service_account_name: Any) -> dict[str, Any]:
    """Spec of a Deployment running ``args.replicas`` pods."""
    return {
        "replicas": args.replicas,
        "selector": {"matchLabels": args.label_selector},
        "strategy": {"type": "RollingUpdate"},
        "template": _pod_template(args, service_account_name),
    }


def statefulset_spec(
    args: WorkloadArgs, service_account_name: Any, service_name: str
) -> dict[str, Any]:
    """Spec of a StatefulSet whose pods start and stop in parallel."""
    return {
        "podManagementPolicy": "Parallel",
        "replicas": args.replicas,
        "selector": {"matchLabels": args.label_selector},
        "serviceName": service_name,
        "updateStrategy": {"type": "RollingUpdate"},
        "template": _pod_template(args, service_account_name),
    }


def headless_service_spec(selector: dict[str, Any]) -> dict[str, Any]:
    return {
        "clusterIP": "None",
        "selector": selector,
    }


def replica_hosts(
    name: pulumi.Input[str], service_name: pulumi.Input[str], replicas: int
) -> list[pulumi.Output[str]]:
    """Stable DNS names of the pods of a StatefulSet, ordered by index."""
    return [
        pulumi.Output.concat(name, f"-{index}.", service_name)
        for index in range(replicas)
    ]


def stateful_hosts(name: str, replicas: int) -> list[pulumi.Output[str]]:
    """DNS names the pods of the stateful workload ``name`` resolve to."""
    return replica_hosts(name, headless_service_name(name), replicas)


class ComponentResource(pulumi.ComponentResource):
    """Base class for olly components.

    Subclasses set ``component_type`` and declare the capabilities they
    implement in ``provides``. Every component is a ScrapeTarget; the
    default ``metrics`` list is empty.

    Example:
        class Cache(ComponentResource):
            component_type = ComponentType.DATABASE

            def __init__(self, name, args, opts=None):
                super().__init__(name, args, opts)
                self.workload = self.stateless_workload(name, WorkloadArgs(...))
    """

    component_type: ClassVar[ComponentType]
    provides: ClassVar[tuple[type, ...]] = ()
    image: ClassVar[str] = ""
    ports: ClassVar[dict[str, int]] = {}

    def __init__(
        self,
        name: str,
        args: ComponentArgs,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__(f"olly:service:{self.component_type.value}", name, None, opts)
        self.name = name
        self.namespace = args.namespace
        self._labels = component_labels(self.component_type, name)
        self.metrics: list[ScrapeTargetItem] = []

    @property
    def labels(self) -> dict[str, str]:
        return dict(self._labels)

    @classmethod
    def documents(cls, args: ComponentArgs) -> dict[str, str]:
        """Configuration files mounted into the component's containers.

        Only documents fully determined by ``args``; documents that embed
        values of other components are built by the component itself.
        """
        return {}

    def _child_opts(self) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(parent=self)

    def _metadata(self, name: str) -> dict[str, Any]:
        return {"name": name, "namespace": self.namespace, "labels": self.labels}

    def create_service_account(
        self, name: str, automount_token: bool = False
    ) -> k8s.core.v1.ServiceAccount:
        return k8s.core.v1.ServiceAccount(
            name,
            metadata=self._metadata(name),
            automount_service_account_token=automount_token,
            opts=self._child_opts(),
        )

    def create_config_map(self, data: dict[str, pulumi.Input[str]]) -> k8s.core.v1.ConfigMap:
        return k8s.core.v1.ConfigMap(
            self.name,
            metadata=self._metadata(self.name),
            data=data,
            opts=self._child_opts(),
        )

    def create_service(
        self,
        ports: list[dict[str, Any]],
        selector: pulumi.Input[dict[str, str]],
        service_type: str | None = None,
    ) -> k8s.core.v1.Service:
        spec: dict[str, Any] = {"ports": ports, "selector": selector}
        if service_type:
            spec["type"] = service_type
        return k8s.core.v1.Service(
            self.name,
            metadata=self._metadata(self.name),
            spec=spec,
            opts=self._child_opts(),
        )

    def _resolve_service_account(self, name: str, args: WorkloadArgs) -> Any:
        if args.service_account_name is not None:
            return args.service_account_name
        return self.create_service_account(name).metadata.name

    def stateless_workload(self, name: str, args: WorkloadArgs) -> k8s.apps.v1.Deployment:
        """Declare a Deployment, creating a service account if none is given."""
        account = self._resolve_service_account(name, args)
        pulumi.log.debug(f"{self.name}: deployment {args.name} with {args.replicas} replica(s)")

        return k8s.apps.v1.Deployment(
            name,
            metadata={"name": args.name, "namespace": args.namespace, "labels": args.labels},
            spec=deployment_spec(args, account),
            opts=self._child_opts(),
        )

    def stateful_workload(self, name: str, args: WorkloadArgs) -> k8s.apps.v1.StatefulSet:
        """Declare a StatefulSet and the headless service its pods resolve through."""
        account = self._resolve_service_account(name, args)
        service_name = headless_service_name(args.name)
        pulumi.log.debug(
            f"{self.name}: statefulset {args.name} with {args.replicas} replica(s) "
            f"behind {service_name}"
        )

        k8s.core.v1.Service(
            headless_service_name(name),
            metadata={"name": service_name, "namespace": args.namespace, "labels": args.labels},
            spec=headless_service_spec(args.label_selector),
            opts=self._child_opts(),
        )

        return k8s.apps.v1.StatefulSet(
            name,
            metadata={"name": args.name, "namespace": args.namespace, "labels": args.labels},
            spec=statefulset_spec(args, account, service_name),
            opts=self._child_opts(),
        )

    @staticmethod
    def stateful_replica_urls(
        workload: k8s.apps.v1.StatefulSet, replicas: int, port: int, scheme: str = "http"
    ) -> list[pulumi.Output[str]]:
        """URL of every replica, built from the generated workload and service names."""
        hosts = replica_hosts(workload.metadata.name, workload.spec.service_name, replicas)
        return [pulumi.Output.concat(f"{scheme}://", host, f":{port}") for host in hosts]

    @staticmethod
    def service_url(service: k8s.core.v1.Service, scheme: str = "http") -> pulumi.Output[str]:
        """In-cluster URL of the service's first port."""
        return pulumi.Output.concat(
            f"{scheme}://",
            service.metadata.name,
            ".",
            service.metadata.namespace,
            ":",
            service.spec.ports[0].port.apply(str),
        )

    @staticmethod
    def scrape_target(
        service: k8s.core.v1.Service, port: pulumi.Input[str] | None = None
    ) -> ScrapeTargetItem:
        """Scrape target for ``port`` of the service (its first port by default)."""
        return ScrapeTargetItem(
            endpoint=service.metadata.name,
            port=port if port is not None else service.spec.ports[0].name,
            namespace=service.metadata.namespace,
        )
