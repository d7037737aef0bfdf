"""Tests for the stack components, run against Pulumi mocks."""

from types import SimpleNamespace

import pulumi
import pytest
import yaml
from pydantic import ValidationError

from olly.base import ComponentArgs, ComponentResource, ComponentType
from olly.components import (
    COMPONENTS,
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
    VMAlert,
    VMAlertArgs,
)
from olly.components import alertmanager, grafana, loki, vmalert
from olly.pluggable import GrafanaDSItem, PrometheusItem, capability_names

CONFIG_MAP = "kubernetes:core/v1:ConfigMap"
DEPLOYMENT = "kubernetes:apps/v1:Deployment"
STATEFULSET = "kubernetes:apps/v1:StatefulSet"
INGRESS = "kubernetes:networking.k8s.io/v1:Ingress"
INGRESS_CLASS = "kubernetes:networking.k8s.io/v1:IngressClass"


def _container_args(inputs: dict) -> list[str]:
    return inputs["spec"]["template"]["spec"]["containers"][0]["args"]


def _storage() -> SimpleNamespace:
    return SimpleNamespace(prometheus=PrometheusItem("http://vm:8428", "http://vm:8428"))


class Blue(ComponentResource):
    component_type = ComponentType.COLLECTOR


class Green(ComponentResource):
    component_type = ComponentType.DASHBOARD


def _under(parent: ComponentResource) -> pulumi.ResourceOptions:
    return pulumi.ResourceOptions(parent=parent)


# ---------------------------------------------------------------------------
# Configuration documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_loki_retention(self):
        config = loki.build_config(LokiArgs(retention_period="744h"))
        assert config["table_manager"]["retention_period"] == "744h"
        assert config["table_manager"]["retention_deletes_enabled"] is True
        assert config["server"]["http_listen_port"] == loki.HTTP_PORT

    def test_loki_keeps_data_by_default(self):
        config = loki.build_config(LokiArgs())
        assert config["table_manager"]["retention_deletes_enabled"] is False

    def test_tempo_documents(self):
        docs = Tempo.documents(TempoArgs(block_retention="24h"))
        assert set(docs) == {"tempo.yaml", "query.yaml"}
        config = yaml.safe_load(docs["tempo.yaml"])
        assert config["compactor"]["compaction"]["block_retention"] == "24h"
        assert yaml.safe_load(docs["query.yaml"]) == {"backend": "localhost:3100"}

    def test_alertmanager_default_receiver(self):
        config = alertmanager.build_config(AlertManagerArgs(
            receivers=[{"name": "ops"}],
            routes=[{"receiver": "ops", "matchers": ["severity=critical"]}],
        ))
        assert config["route"]["receiver"] == "devnull"
        assert config["receivers"] == [{"name": "devnull"}, {"name": "ops"}]
        assert config["route"]["routes"][0]["receiver"] == "ops"

    def test_vmalert_rules(self):
        group = {"name": "up", "rules": [{"alert": "Down", "expr": "up == 0"}]}
        assert vmalert.build_rules([group]) == {"groups": [group]}

    def test_grafana_root_url(self):
        ingress = SimpleNamespace(ingress_class="nginx")
        assert grafana.build_config(GrafanaArgs())["server"]["root_url"] == "http://localhost:3000"
        with_ingress = grafana.build_config(GrafanaArgs(ingress=ingress, hostname="g.example.com"))
        assert with_ingress["server"]["root_url"] == "http://g.example.com/"
        external = grafana.build_config(GrafanaArgs(external=True, hostname="g.example.com"))
        assert external["server"]["root_url"] == "http://g.example.com/"

    def test_grafana_ini(self):
        ini = Grafana.documents(GrafanaArgs(admin_user="root"))["grafana.ini"]
        assert "[security]\n" in ini
        assert "admin_user = root\n" in ini
        assert "[auth.anonymous]\nenabled = true\norg_role = Admin\n" in ini

    def test_grafana_datasources(self):
        items = [
            GrafanaDSItem(name="loki", type="loki", url="ignored"),
            GrafanaDSItem(name="vm", type="prometheus", url="ignored", data={"timeInterval": "15s"}),
        ]
        doc = grafana.build_datasources(items, ["http://loki:3100", "http://vm:8428"])
        assert doc["apiVersion"] == 1
        assert [d["name"] for d in doc["datasources"]] == ["loki", "vm"]
        assert doc["datasources"][0]["url"] == "http://loki:3100"
        assert doc["datasources"][1]["jsonData"] == {"timeInterval": "15s"}

    def test_base_has_no_documents(self):
        assert ComponentResource.documents(ComponentArgs()) == {}


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------


class TestArgumentValidation:
    def test_vmalert_storage_without_prometheus(self):
        notifier = SimpleNamespace(notification_urls=["http://am:9093"])
        with pytest.raises(ValidationError) as exc:
            VMAlertArgs(notifiers=[notifier], storage=SimpleNamespace(metrics=[]))
        assert "Prometheus" in str(exc.value)

    def test_vmalert_requires_a_notifier(self):
        with pytest.raises(ValidationError):
            VMAlertArgs(notifiers=[], storage=_storage())

    def test_vmalert_rejects_non_notifier(self):
        with pytest.raises(ValidationError) as exc:
            VMAlertArgs(notifiers=[_storage()], storage=_storage())
        assert "notifiers[0]" in str(exc.value)

    def test_vmalert_rejects_notifiers_without_urls(self):
        empty = SimpleNamespace(notification_urls=[])
        with pytest.raises(ValidationError) as exc:
            VMAlertArgs(notifiers=[empty, empty], storage=_storage())
        assert "no notification URLs" in str(exc.value)

    def test_vmalert_accepts_one_empty_notifier(self):
        empty = SimpleNamespace(notification_urls=[])
        full = SimpleNamespace(notification_urls=["http://am:9093"])
        args = VMAlertArgs(notifiers=[empty, full], storage=_storage())
        assert args.notifiers == [empty, full]

    def test_grafana_rejects_non_datasource(self):
        with pytest.raises(ValidationError) as exc:
            GrafanaArgs(datasources=[SimpleNamespace(metrics=[])])
        assert "GrafanaDS" in str(exc.value)

    def test_grafana_rejects_non_ingress(self):
        with pytest.raises(ValidationError):
            GrafanaArgs(ingress=SimpleNamespace(metrics=[]))

    def test_alertmanager_replicas(self):
        with pytest.raises(ValidationError):
            AlertManagerArgs(replicas=0)

    def test_args_are_frozen(self):
        args = LokiArgs()
        with pytest.raises(ValidationError):
            args.retention_period = "1h"


# ---------------------------------------------------------------------------
# Declared capabilities
# ---------------------------------------------------------------------------


class TestProvides:
    @pytest.mark.parametrize("section", list(COMPONENTS))
    def test_every_component_is_a_scrape_target(self, section):
        assert "ScrapeTarget" in [c.__name__ for c in COMPONENTS[section].provides]

    @pulumi.runtime.test
    def test_provides_matches_instances(self):
        components = [
            Loki("loki-provides"),
            Tempo("tempo-provides"),
            VictoriaMetrics("vm-provides"),
            AlertManager("am-provides"),
            Nginx("nginx-provides", NginxArgs(ingress_class="nginx-provides")),
            Grafana("grafana-provides"),
        ]
        for component in components:
            declared = {c.__name__ for c in type(component).provides}
            assert set(capability_names(component)) == declared

        return pulumi.Output.all(*[c.urn for c in components])


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class TestStores:
    @pulumi.runtime.test
    def test_loki_datasource(self, mocks):
        logs = Loki("loki-ds", LokiArgs(namespace="obs"))
        assert logs.datasource.name == "loki-ds"
        assert logs.datasource.type == "loki"

        def check(args):
            url, endpoint, port = args
            assert url == "http://loki-ds.obs:3100"
            assert endpoint == "loki-ds"
            assert port == "http"
            assert "config.yaml" in mocks.inputs(CONFIG_MAP, "loki-ds")["data"]

        return pulumi.Output.all(
            logs.datasource.url, logs.metrics[0].endpoint, logs.metrics[0].port,
        ).apply(check)

    @pulumi.runtime.test
    def test_tempo_datasource_uses_query_port(self):
        traces = Tempo("tempo-ds")
        assert traces.datasource.type == "tempo"

        def check(url):
            assert url == "http://tempo-ds.default:16686"

        return traces.datasource.url.apply(check)

    @pulumi.runtime.test
    def test_victoria_endpoints(self, mocks):
        metrics = VictoriaMetrics("vm-endpoints")
        assert metrics.datasource.type == "prometheus"

        def check(args):
            read, write, ds = args
            assert read == write == ds == "http://vm-endpoints.default:8428"
            assert "--retentionPeriod=12" in _container_args(
                mocks.inputs(STATEFULSET, "vm-endpoints")
            )

        return pulumi.Output.all(
            metrics.prometheus.remote_read_url,
            metrics.prometheus.remote_write_url,
            metrics.datasource.url,
        ).apply(check)


# ---------------------------------------------------------------------------
# Alerting
# ---------------------------------------------------------------------------


class TestAlertManager:
    @pulumi.runtime.test
    def test_single_replica(self, mocks):
        am = AlertManager("am-single")
        assert len(am.notification_urls) == 1

        def check(args):
            url, _ = args
            assert url == "http://am-single-0.am-single-headless:9093"
            flags = _container_args(mocks.inputs(STATEFULSET, "am-single"))
            assert not any(f.startswith("--cluster.") for f in flags)

        return pulumi.Output.all(am.notification_urls[0], am.workload.urn).apply(check)

    @pulumi.runtime.test
    def test_clustered(self, mocks):
        am = AlertManager("am-cluster", AlertManagerArgs(replicas=3))

        def check(args):
            urls = args[:3]
            assert urls == [
                "http://am-cluster-0.am-cluster-headless:9093",
                "http://am-cluster-1.am-cluster-headless:9093",
                "http://am-cluster-2.am-cluster-headless:9093",
            ]
            inputs = mocks.inputs(STATEFULSET, "am-cluster")
            assert inputs["spec"]["replicas"] == 3
            peers = [f for f in _container_args(inputs) if f.startswith("--cluster.peer=")]
            assert peers == [
                "--cluster.peer=am-cluster-0.am-cluster-headless:9094",
                "--cluster.peer=am-cluster-1.am-cluster-headless:9094",
                "--cluster.peer=am-cluster-2.am-cluster-headless:9094",
            ]

        return pulumi.Output.all(*am.notification_urls, am.workload.urn).apply(check)

    @pulumi.runtime.test
    def test_peers_are_replica_hosts(self, mocks):
        am = AlertManager("am-peers", AlertManagerArgs(replicas=2))

        def check(args):
            urls = args[:2]
            flags = _container_args(mocks.inputs(STATEFULSET, "am-peers"))
            peers = [f.removeprefix("--cluster.peer=") for f in flags if f.startswith("--cluster.peer=")]
            hosts = [url.removeprefix("http://").removesuffix(":9093") for url in urls]
            assert [p.removesuffix(":9094") for p in peers] == hosts

        return pulumi.Output.all(*am.notification_urls, am.workload.urn).apply(check)


# ---------------------------------------------------------------------------
# Generated names
# ---------------------------------------------------------------------------


class TestDeterminism:
    """Identical arguments yield identical labels and resource names."""

    @pulumi.runtime.test
    def test_loki(self):
        # two parents of different types keep the child URNs apart
        args = LokiArgs(namespace="obs")
        first = Loki("loki-twice", args, _under(Blue("blue-loki", ComponentArgs())))
        second = Loki("loki-twice", args, _under(Green("green-loki", ComponentArgs())))
        assert first.labels == second.labels

        def names(c):
            return [
                c.config_map.metadata.name,
                c.workload.metadata.name,
                c.service.metadata.name,
                c.datasource.url,
            ]

        def check(values):
            assert values[:4] == values[4:]
            assert values[:3] == ["loki-twice", "loki-twice", "loki-twice"]

        return pulumi.Output.all(*names(first), *names(second)).apply(check)

    @pulumi.runtime.test
    def test_alertmanager(self):
        args = AlertManagerArgs(replicas=2)
        first = AlertManager("am-twice", args, _under(Blue("blue-am", ComponentArgs())))
        second = AlertManager("am-twice", args, _under(Green("green-am", ComponentArgs())))
        assert first.labels == second.labels

        def names(c):
            return [
                c.config_map.metadata.name,
                c.workload.metadata.name,
                c.workload.spec.service_name,
                c.service.metadata.name,
                *c.notification_urls,
            ]

        def check(values):
            assert values[:6] == values[6:]
            assert values[:4] == ["am-twice", "am-twice", "am-twice-headless", "am-twice"]

        return pulumi.Output.all(*names(first), *names(second)).apply(check)


class TestVMAlert:
    @pulumi.runtime.test
    def test_one_flag_per_notification_url(self, mocks):
        am = AlertManager("am-vmalert")
        alert = VMAlert("vmalert-single", VMAlertArgs(notifiers=[am], storage=_storage()))

        def check(_):
            flags = _container_args(mocks.inputs(DEPLOYMENT, "vmalert-single"))
            notifiers = [f for f in flags if f.startswith("-notifier.url=")]
            assert notifiers == ["-notifier.url=http://am-vmalert-0.am-vmalert-headless:9093"]
            assert "-datasource.url=http://vm:8428" in flags
            assert "-remoteRead.url=http://vm:8428" in flags
            assert "-remoteWrite.url=http://vm:8428" in flags
            assert "-evaluationInterval=1m" in flags

        return alert.workload.urn.apply(check)

    @pulumi.runtime.test
    def test_notifiers_in_order(self, mocks):
        first = SimpleNamespace(notification_urls=["http://a:9093", "http://b:9093"])
        second = SimpleNamespace(notification_urls=["http://c:9093"])
        alert = VMAlert("vmalert-many", VMAlertArgs(notifiers=[first, second], storage=_storage()))

        def check(_):
            flags = _container_args(mocks.inputs(DEPLOYMENT, "vmalert-many"))
            assert flags[:3] == [
                "-notifier.url=http://a:9093",
                "-notifier.url=http://b:9093",
                "-notifier.url=http://c:9093",
            ]

        return alert.workload.urn.apply(check)

    @pulumi.runtime.test
    def test_rules_document(self, mocks):
        group = {"name": "up", "rules": [{"alert": "Down", "expr": "up == 0"}]}
        alert = VMAlert("vmalert-rules", VMAlertArgs(
            notifiers=[SimpleNamespace(notification_urls=["http://am:9093"])],
            storage=_storage(),
            alerts=[group],
        ))

        def check(_):
            data = mocks.inputs(CONFIG_MAP, "vmalert-rules")["data"]
            assert yaml.safe_load(data["alerts.yaml"]) == {"groups": [group]}

        return alert.config_map.urn.apply(check)


# ---------------------------------------------------------------------------
# Dashboard and ingress
# ---------------------------------------------------------------------------


class TestGrafana:
    @pulumi.runtime.test
    def test_provisions_datasources_in_order(self, mocks):
        logs = Loki("loki-grafana")
        traces = Tempo("tempo-grafana")
        metrics = VictoriaMetrics("vm-grafana")
        dashboard = Grafana("grafana-ds", GrafanaArgs(datasources=[logs, traces, metrics]))
        assert dashboard.ingress is None

        def check(_):
            data = mocks.inputs(CONFIG_MAP, "grafana-ds")["data"]
            assert "grafana.ini" in data
            datasources = yaml.safe_load(data["datasources.yaml"])["datasources"]
            assert [(d["name"], d["type"], d["url"]) for d in datasources] == [
                ("loki-grafana", "loki", "http://loki-grafana.default:3100"),
                ("tempo-grafana", "tempo", "http://tempo-grafana.default:16686"),
                ("vm-grafana", "prometheus", "http://vm-grafana.default:8428"),
            ]

        return dashboard.config_map.urn.apply(check)

    @pulumi.runtime.test
    def test_ingress(self, mocks):
        controller = SimpleNamespace(ingress_class="public")
        dashboard = Grafana("grafana-ingress", GrafanaArgs(
            ingress=controller, hostname="grafana.example.com",
        ))

        def check(_):
            spec = mocks.inputs(INGRESS, "grafana-ingress")["spec"]
            assert spec["ingressClassName"] == "public"
            rule = spec["rules"][0]
            assert rule["host"] == "grafana.example.com"
            backend = rule["http"]["paths"][0]["backend"]["service"]
            assert backend["name"] == "grafana-ingress"
            assert backend["port"] == {"name": "http"}

        return dashboard.ingress.urn.apply(check)


class TestNginx:
    @pulumi.runtime.test
    def test_ingress_class(self, mocks):
        controller = Nginx("nginx-class", NginxArgs(ingress_class="edge"))
        assert controller.ingress_class == "edge"

        def check(args):
            _, port, _ = args
            assert port == "metrics"
            ingress_class = mocks.inputs(INGRESS_CLASS, "nginx-class")
            assert ingress_class["metadata"]["name"] == "edge"
            assert ingress_class["spec"]["controller"] == "k8s.io/ingress-nginx"
            assert "--ingress-class=edge" in _container_args(mocks.inputs(DEPLOYMENT, "nginx-class"))

        return pulumi.Output.all(
            controller.class_resource.urn, controller.metrics[0].port, controller.workload.urn,
        ).apply(check)
