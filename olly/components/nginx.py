"""ingress-nginx controller."""

from __future__ import annotations

import pulumi
import pulumi_kubernetes as k8s
from pydantic import Field

from ..base import ComponentArgs, ComponentResource, ComponentType, WorkloadArgs
from ..pluggable import IngressController, ScrapeTarget

HTTP_PORT = 80
HTTPS_PORT = 443
# if this port is changed, change --healthz-port accordingly
METRICS_PORT = 10254

CONTROLLER_CLASS = "k8s.io/ingress-nginx"
RUN_AS_USER = 101


class NginxArgs(ComponentArgs):
    tag: str = "v1.11.3"
    ingress_class: str = Field(default="nginx", description="IngressClass served by this controller")
    replicas: int = Field(default=1, gt=0)
    service_type: str = Field(default="LoadBalancer", description="Type of the public service")


def cluster_role_rules() -> list[dict[str, object]]:
    """Permissions the controller needs to watch ingresses cluster-wide."""
    read = ["get", "list", "watch"]
    return [
        {"apiGroups": [""], "resources": ["configmaps", "endpoints", "nodes", "pods", "secrets", "namespaces"], "verbs": read},
        {"apiGroups": [""], "resources": ["services"], "verbs": read},
        {"apiGroups": [""], "resources": ["events"], "verbs": ["create", "patch"]},
        {"apiGroups": ["networking.k8s.io"], "resources": ["ingresses", "ingressclasses"], "verbs": read},
        {"apiGroups": ["networking.k8s.io"], "resources": ["ingresses/status"], "verbs": ["update"]},
        {"apiGroups": ["discovery.k8s.io"], "resources": ["endpointslices"], "verbs": read},
        {"apiGroups": ["coordination.k8s.io"], "resources": ["leases"], "verbs": [*read, "create", "update"]},
    ]


class Nginx(ComponentResource):
    """Ingress controller serving the ``nginx`` IngressClass."""

    component_type = ComponentType.INGRESS
    provides = (IngressController, ScrapeTarget)
    image = "registry.k8s.io/ingress-nginx/controller"
    ports = {"http": HTTP_PORT, "https": HTTPS_PORT, "metrics": METRICS_PORT}

    def __init__(
        self,
        name: str,
        args: NginxArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        args = args or NginxArgs()
        super().__init__(name, args, opts)
        self.args = args
        self.ingress_class = args.ingress_class

        # the controller talks to the API server, so its token is mounted
        account = self.create_service_account(self.name, automount_token=True)
        self._create_rbac(account)
        self.class_resource = k8s.networking.v1.IngressClass(
            self.name,
            metadata={"name": self.ingress_class, "labels": self.labels},
            spec={"controller": CONTROLLER_CLASS},
            opts=self._child_opts(),
        )

        self.workload = self._create_workload(account)
        self.service = self.create_service(
            [
                {"name": "http", "port": HTTP_PORT, "targetPort": "http"},
                {"name": "https", "port": HTTPS_PORT, "targetPort": "https"},
                {"name": "metrics", "port": METRICS_PORT, "targetPort": "metrics"},
            ],
            self.workload.spec.selector.match_labels,
            service_type=args.service_type,
        )
        self.metrics = [self.scrape_target(self.service, port="metrics")]

        self.register_outputs({})

    def _create_rbac(self, account: k8s.core.v1.ServiceAccount) -> None:
        role = k8s.rbac.v1.ClusterRole(
            self.name,
            metadata={"name": f"{self.namespace}-{self.name}", "labels": self.labels},
            rules=cluster_role_rules(),
            opts=self._child_opts(),
        )
        k8s.rbac.v1.ClusterRoleBinding(
            self.name,
            metadata={"name": f"{self.namespace}-{self.name}", "labels": self.labels},
            role_ref={
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": role.metadata.name,
            },
            subjects=[{
                "kind": "ServiceAccount",
                "name": account.metadata.name,
                "namespace": self.namespace,
            }],
            opts=self._child_opts(),
        )

    def _create_workload(self, account: k8s.core.v1.ServiceAccount):
        container = {
            "name": "controller",
            "image": f"{self.image}:{self.args.tag}",
            "args": [
                "/nginx-ingress-controller",
                f"--ingress-class={self.ingress_class}",
                f"--controller-class={CONTROLLER_CLASS}",
                f"--publish-service={self.namespace}/{self.name}",
                f"--election-id={self.name}-leader",
                f"--healthz-port={METRICS_PORT}",
            ],
            "env": [
                {"name": "POD_NAME", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}},
                {"name": "POD_NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}},
            ],
            "ports": [
                {"name": "http", "containerPort": HTTP_PORT},
                {"name": "https", "containerPort": HTTPS_PORT},
                {"name": "metrics", "containerPort": METRICS_PORT},
            ],
            "readinessProbe": {"httpGet": {"port": "metrics", "path": "/healthz"}},
            "livenessProbe": {"httpGet": {"port": "metrics", "path": "/healthz"}},
            "securityContext": {
                "runAsUser": RUN_AS_USER,
                "allowPrivilegeEscalation": True,
                "capabilities": {"add": ["NET_BIND_SERVICE"], "drop": ["ALL"]},
            },
        }

        return self.stateless_workload(self.name, WorkloadArgs(
            name=self.name,
            namespace=self.namespace,
            labels=self.labels,
            label_selector=self.labels,
            replicas=self.args.replicas,
            containers=[container],
            service_account_name=account.metadata.name,
        ))
