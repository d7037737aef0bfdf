"""Stack configuration.

The stack is configured with a single object, read from the Pulumi stack
configuration (``olly:stack``) or from a YAML file:

    namespace: monitoring
    tag: latest
    grafana:
      hostname: grafana.example.com
    alertmanager:
      replicas: 3

Every component section accepts a ``tag`` overriding the global one.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

import pulumi
import yaml
from pydantic import BaseModel, Field

from .base import ComponentArgs

CONFIG_NAMESPACE = "olly"
CONFIG_KEY = "stack"

A = TypeVar("A", bound=ComponentArgs)


class ComponentConfig(BaseModel):
    """Settings shared by every component section."""

    tag: str | None = Field(default=None, description="Image tag, overrides the stack tag")


class NginxConfig(ComponentConfig):
    # ingress-nginx does not publish a 'latest' tag
    tag: str | None = "v1.11.3"
    ingress_class: str = "nginx"
    replicas: int = Field(default=1, gt=0)
    service_type: str = "LoadBalancer"


class LokiConfig(ComponentConfig):
    retention_period: str = "0s"


class TempoConfig(ComponentConfig):
    block_retention: str = "1h"


class VictoriaConfig(ComponentConfig):
    retention_months: int = Field(default=12, gt=0)


class GrafanaConfig(ComponentConfig):
    hostname: str = "grafana.domain.tld"
    # exposed through the stack ingress controller
    external: bool = True
    admin_user: str = "admin"
    admin_password: str = "admin"


class AlertManagerConfig(ComponentConfig):
    replicas: int = Field(default=1, gt=0)
    receivers: list[dict[str, Any]] = Field(default_factory=list)
    routes: list[dict[str, Any]] = Field(default_factory=list)
    inhibit_rules: list[dict[str, Any]] = Field(default_factory=list)


class VMAlertConfig(ComponentConfig):
    alerts: list[dict[str, Any]] = Field(default_factory=list)
    evaluation_interval: str = "1m"


class StackConfig(BaseModel):
    """Root configuration model."""

    namespace: str = Field(default="default", description="Namespace for all components")
    tag: str = Field(default="latest", description="Default image tag")

    nginx: NginxConfig = Field(default_factory=NginxConfig)
    loki: LokiConfig = Field(default_factory=LokiConfig)
    tempo: TempoConfig = Field(default_factory=TempoConfig)
    victoria: VictoriaConfig = Field(default_factory=VictoriaConfig)
    grafana: GrafanaConfig = Field(default_factory=GrafanaConfig)
    alertmanager: AlertManagerConfig = Field(default_factory=AlertManagerConfig)
    vmalert: VMAlertConfig = Field(default_factory=VMAlertConfig)

    def args_for(self, section: str, args_type: type[A], **extra: Any) -> A:
        """Build component arguments from a config section.

        Args:
            section: Name of the component section, e.g. 'grafana'
            args_type: Argument model of the component
            extra: Arguments that are not configuration, e.g. dependencies

        Returns:
            Validated argument model
        """
        settings: ComponentConfig = getattr(self, section)
        values = settings.model_dump(exclude={"tag"})
        values.update(extra)
        return args_type(
            namespace=self.namespace,
            tag=settings.tag or self.tag,
            **values,
        )

    def to_yaml(self) -> str:
        return yaml.dump(
            self.model_dump(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


def load_stack_config(path: str | Path | None = None) -> StackConfig:
    """Load the stack configuration from a YAML file.

    Returns defaults when no path is given or the file does not exist.
    Raises pydantic.ValidationError when the file is invalid.
    """
    if path is None:
        return StackConfig()

    path = Path(path)
    if not path.exists():
        return StackConfig()

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return StackConfig.model_validate(data)


def stack_config_from_pulumi() -> StackConfig:
    """Load the stack configuration from the current Pulumi stack."""
    data = pulumi.Config(CONFIG_NAMESPACE).get_object(CONFIG_KEY) or {}
    return StackConfig.model_validate(data)
